"""
Global pytest configuration and fixtures for test isolation.

Settings, the tracing manager and the metrics collector are process-wide
singletons; every test starts from a clean slate so environment overrides or
collectors installed by one test never leak into another.
"""

import os

import pytest

from forge.config.settings import get_settings
from forge.observability import metrics, tracing


def reset_global_state():
    get_settings.cache_clear()
    tracing._tracing_manager = None
    metrics._metrics_collector = None


@pytest.fixture(autouse=True)
def test_isolation(monkeypatch):
    """Per-test isolation from FORGE_* environment and cached singletons."""
    for key in list(os.environ):
        if key.startswith("FORGE_"):
            monkeypatch.delenv(key)
    reset_global_state()
    yield
    reset_global_state()


@pytest.fixture
def event_types():
    """List collecting event ``type`` tags; pass ``.sink`` as the event sink."""

    class Recorder(list):
        def sink(self, event):
            self.append(event.type)

    return Recorder()
