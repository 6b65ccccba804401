"""
Forge - consensus sampling for non-deterministic generators.

Wrap an LLM call (or any flaky generator) in a ``Step`` that samples it
repeatedly, validates every sample against a schema, drops red-flagged
samples and picks the majority answer, stopping early once one answer leads
by ``k`` votes. Compose steps into a ``Pipeline`` that threads a state value
through them and streams a structured event for every decision.

Quick Start:
    >>> from pydantic import BaseModel
    >>> import forge
    >>>
    >>> class Echo(BaseModel):
    ...     text: str
    >>>
    >>> echo = forge.step(
    ...     name="echo",
    ...     input=Echo,
    ...     output=Echo,
    ...     handler=lambda value: {"text": value.text},
    ...     strategy={"initial_samples": 2, "k": 1, "max_samples": 5},
    ... )
    >>> result = await echo.execute({"text": "hi"}, print)
    >>> result.output
    Echo(text='hi')

Configuration:
    Defaults come from environment variables:
    - FORGE_STRATEGY__INITIAL_SAMPLES=1
    - FORGE_STRATEGY__K=1
    - FORGE_VOTING__CANONICAL_KEYS=true
    - FORGE_OBSERVABILITY__LOG_LEVEL=INFO
"""

__version__ = "0.1.0"

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from .config.settings import Settings, get_settings
from .core.errors import (
    ForgeError,
    InputValidationError,
    NoValidSamplesError,
    SampleValidationError,
)
from .core.events import Event, EventSink
from .core.pipeline import Pipeline, Stage, Transition
from .core.schema import Schema
from .core.step import RedFlagRule, Step, StepResult
from .core.strategy import ConsensusStrategy


def step(
    name: str,
    input: Any,
    output: Any,
    handler: Callable[[Any], Any],
    strategy: ConsensusStrategy | Mapping[str, Any] | None = None,
    red_flags: Iterable[RedFlagRule | Mapping[str, Any]] = (),
    prompt: Callable[[Any], str] | None = None,
) -> Step:
    """Build a ``Step``; see :class:`forge.core.step.Step`."""
    return Step(
        name=name,
        input=input,
        output=output,
        handler=handler,
        strategy=strategy,
        red_flags=red_flags,
        prompt=prompt,
    )


def pipeline(name: str = "pipeline") -> Pipeline:
    """Start an empty ``Pipeline`` to be extended with ``.step(...)``."""
    return Pipeline(name)


__all__ = [
    "step",
    "pipeline",
    "Step",
    "StepResult",
    "RedFlagRule",
    "Pipeline",
    "Stage",
    "Transition",
    "Schema",
    "ConsensusStrategy",
    "Event",
    "EventSink",
    "Settings",
    "get_settings",
    "ForgeError",
    "InputValidationError",
    "NoValidSamplesError",
    "SampleValidationError",
]
