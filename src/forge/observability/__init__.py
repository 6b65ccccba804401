"""
Observability for forge: structured logging, OpenTelemetry tracing and metrics.

Usage:
    >>> from forge.observability import get_logger, setup_logging
    >>> setup_logging("DEBUG")
    >>> logger = get_logger(__name__)
    >>> logger.info("Sampling finished", step="plan", attempts=3)
"""

from .logging import get_logger, setup_logging
from .metrics import MetricsCollector, get_metrics_collector, setup_metrics
from .tracing import TracingManager, get_tracing_manager, trace_span

__all__ = [
    "get_logger",
    "setup_logging",
    "MetricsCollector",
    "get_metrics_collector",
    "setup_metrics",
    "TracingManager",
    "get_tracing_manager",
    "trace_span",
]
