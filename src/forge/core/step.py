"""
Consensus-sampling step.

A ``Step`` wraps a non-deterministic handler (typically an LLM call) with an
input schema, an output schema, red-flag rules and a ``ConsensusStrategy``.
``execute`` samples the handler sequentially, discards invalid and
red-flagged samples, and stops once one value leads the vote tally by ``k``
after at least ``initial_samples`` attempts, or when ``max_samples`` attempts
have been spent.
"""

import inspect
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from ..observability.logging import get_logger
from ..observability.metrics import get_metrics_collector
from ..observability.tracing import add_span_attributes, trace_span
from .errors import InputValidationError, NoValidSamplesError, SampleValidationError
from .events import (
    EventSink,
    InvalidSampleEvent,
    PromptEvent,
    RedFlagEvent,
    SampleEvent,
    StepDecidedEvent,
    StepStartEvent,
    VoteUpdateEvent,
    emit,
)
from .schema import Schema, as_schema, format_issues
from .strategy import ConsensusStrategy, resolve_strategy
from .voting import VoteTally, canonical_key

logger = get_logger(__name__)

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")

# Handlers may return the output directly or an awaitable of it
Handler = Callable[[InputT], Any]


@dataclass(frozen=True)
class RedFlagRule(Generic[OutputT]):
    """A named predicate; a sample for which ``test`` is true is discarded."""

    description: str
    test: Callable[[OutputT], bool]


@dataclass(frozen=True)
class StepResult(Generic[OutputT]):
    """Winning output plus every accepted sample, in acceptance order."""

    output: OutputT
    samples: list[OutputT] = field(default_factory=list)
    attempts: int = 0


class Step(Generic[InputT, OutputT]):
    """Reliability wrapper sampling a handler until a consensus emerges.

    Instances hold configuration only; all per-call state lives inside
    ``execute``, so one step can serve concurrent executions.
    """

    def __init__(
        self,
        name: str,
        input: Schema[InputT] | type[InputT] | Any,
        output: Schema[OutputT] | type[OutputT] | Any,
        handler: Handler,
        strategy: ConsensusStrategy | Mapping[str, Any] | None = None,
        red_flags: Iterable[RedFlagRule[OutputT] | Mapping[str, Any]] = (),
        prompt: Callable[[InputT], str] | None = None,
        canonical_keys: bool | None = None,
    ):
        self.name = name
        self.input_schema: Schema[InputT] = as_schema(input)
        self.output_schema: Schema[OutputT] = as_schema(output)
        self.handler = handler
        self.strategy = resolve_strategy(strategy)
        self.red_flags: tuple[RedFlagRule[OutputT], ...] = tuple(
            rule if isinstance(rule, RedFlagRule) else RedFlagRule(**rule) for rule in red_flags
        )
        self.prompt = prompt
        if canonical_keys is None:
            from ..config.settings import get_settings

            canonical_keys = get_settings().voting.canonical_keys
        self.canonical_keys = canonical_keys

    def __repr__(self) -> str:
        return f"Step(name={self.name!r}, strategy={self.strategy!r})"

    def first_red_flag(self, sample: OutputT) -> RedFlagRule[OutputT] | None:
        """Return the first rule (in declaration order) matching ``sample``."""
        for rule in self.red_flags:
            if rule.test(sample):
                return rule
        return None

    def tally_key(self, sample: OutputT) -> str:
        return canonical_key(self.output_schema.dump(sample), sort_keys=self.canonical_keys)

    @trace_span("forge.step.execute")
    async def execute(
        self, raw_input: Any, emit_event: EventSink | None = None
    ) -> StepResult[OutputT]:
        """Sample the handler and return the consensus output.

        Raises:
            InputValidationError: ``raw_input`` fails the input schema. No
                events are emitted in that case.
            NoValidSamplesError: every attempt was invalid or red-flagged.
        """
        checked = self.input_schema.try_validate(raw_input)
        if not checked.ok:
            logger.warning(
                f"Step '{self.name}' rejected input", issues=format_issues(checked.issues)
            )
            raise InputValidationError(self.name, checked.issues)
        value = checked.value

        started = time.perf_counter()
        metrics = get_metrics_collector()
        emit(emit_event, StepStartEvent())
        if self.prompt is not None:
            emit(emit_event, PromptEvent(prompt=self.prompt(value)))

        initial_count = self.strategy.initial_count
        max_count = self.strategy.max_count
        samples: list[OutputT] = []
        tally: VoteTally[OutputT] = VoteTally()
        attempts = 0

        for index in range(max_count):
            attempts = index + 1
            try:
                sample = await self._create_validated_sample(value, index)
            except SampleValidationError as e:
                logger.debug("Invalid sample", step=self.name, index=index, reason=e.reason)
                metrics.record_sample(self.name, "invalid")
                emit(emit_event, InvalidSampleEvent(index=index, reason=e.reason))
                continue

            rule = self.first_red_flag(sample)
            if rule is not None:
                logger.debug("Red-flagged sample", step=self.name, index=index, rule=rule.description)
                metrics.record_sample(self.name, "red_flag")
                emit(emit_event, RedFlagEvent(index=index, rule=rule.description))
                continue

            samples.append(sample)
            metrics.record_sample(self.name, "accepted")
            emit(emit_event, SampleEvent(index=index, sample=sample))
            tally.add(self.tally_key(sample), sample)
            emit(emit_event, VoteUpdateEvent(index=index, tally=tally.snapshot()))

            margin = tally.margin()
            if index + 1 >= initial_count and margin >= self.strategy.k:
                logger.debug("Early stop", step=self.name, index=index, margin=margin)
                break

        duration = time.perf_counter() - started
        if not samples:
            metrics.record_step(self.name, duration, attempts, 0, success=False)
            logger.warning(f"Step '{self.name}' produced no valid samples", attempts=attempts)
            raise NoValidSamplesError(self.name, attempts)

        # The leader wins even if it never reached the required margin
        leading, _ = tally.leaders()
        output = leading.sample
        emit(emit_event, StepDecidedEvent(output=output, samples=list(samples)))

        metrics.record_step(self.name, duration, attempts, len(samples), success=True)
        add_span_attributes(
            **{"step.name": self.name, "step.attempts": attempts, "step.accepted": len(samples)}
        )
        logger.timed(
            f"Step '{self.name}' decided",
            duration * 1000,
            attempts=attempts,
            accepted=len(samples),
            votes=leading.count,
            candidates=len(tally),
        )
        return StepResult(output=output, samples=samples, attempts=attempts)

    async def _create_validated_sample(self, value: InputT, index: int) -> OutputT:
        try:
            raw = self.handler(value)
            if inspect.isawaitable(raw):
                raw = await raw
        except Exception as e:
            raise SampleValidationError(self.name, index, str(e) or type(e).__name__) from e

        checked = self.output_schema.try_validate(raw)
        if not checked.ok:
            raise SampleValidationError(self.name, index, format_issues(checked.issues))
        return checked.value
