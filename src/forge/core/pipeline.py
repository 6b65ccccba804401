"""
Pipeline orchestration threading a state value through consensus steps.

Each stage pairs a ``Step`` with a ``Transition``:
- ``input`` projects the current state to the step's raw input
- ``apply`` folds the step output back into a new state
- ``condition`` (optional) decides whether the stage runs at all

Stages run strictly in declaration order. A stage whose condition is false
is skipped silently: no events, state unchanged. Fatal step errors propagate
out of ``run`` unchanged and no later stage executes.
"""

import asyncio
import time
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from ..observability.logging import get_logger
from ..observability.metrics import get_metrics_collector
from ..observability.tracing import trace_span
from .events import (
    Event,
    EventSink,
    PipelineEndEvent,
    PipelineStartEvent,
    PipelineStepEndEvent,
    PipelineStepStartEvent,
    StepEventEnvelope,
    emit,
)
from .step import Step

logger = get_logger(__name__)

S = TypeVar("S")


@dataclass(frozen=True)
class Transition(Generic[S]):
    """Mapping between pipeline state and one step's input/output."""

    input: Callable[[S], Any]
    apply: Callable[[S, Any], S]
    condition: Callable[[S], bool] | None = None

    def should_run(self, state: S) -> bool:
        if self.condition is None:
            return True
        return bool(self.condition(state))


@dataclass(frozen=True)
class Stage(Generic[S]):
    name: str
    step: Step
    transition: Transition[S]


class Pipeline(Generic[S]):
    """Ordered, conditionally-branching sequence of consensus steps.

    Build with the fluent ``step`` method::

        pipeline = (
            Pipeline[State]("plan-and-code")
            .step(plan, Transition(input=..., apply=...))
            .step(code, Transition(input=..., apply=..., condition=...))
        )
        final_state = await pipeline.run(initial_state, events.append)
    """

    def __init__(self, name: str = "pipeline", stages: list[Stage[S]] | None = None):
        self.name = name
        self.stages: list[Stage[S]] = list(stages or [])

    def step(
        self, step: Step, transition: Transition[S] | dict[str, Any], *, name: str | None = None
    ) -> "Pipeline[S]":
        """Append a stage for ``step`` and return the pipeline for chaining."""
        if not isinstance(transition, Transition):
            transition = Transition(**transition)
        self.add_stage(Stage(name=name or step.name, step=step, transition=transition))
        return self

    def add_stage(self, stage: Stage[S]) -> None:
        self.stages.append(stage)

    def get_stage_names(self) -> list[str]:
        return [stage.name for stage in self.stages]

    def _stage_sink(self, stage_name: str, sink: EventSink | None) -> EventSink | None:
        if sink is None:
            return None

        def forward(event: Event) -> None:
            sink(StepEventEnvelope(step=stage_name, event=event))

        return forward

    @trace_span("forge.pipeline.run")
    async def run(self, initial_state: S, emit_event: EventSink | None = None) -> S:
        """Run every stage once, in order, and return the final state."""
        started = time.perf_counter()
        metrics = get_metrics_collector()
        state = initial_state
        stages_run = 0

        logger.info(f"Starting pipeline '{self.name}' with {len(self.stages)} stages")
        emit(emit_event, PipelineStartEvent(state=state))

        try:
            for stage in self.stages:
                if not stage.transition.should_run(state):
                    logger.debug(f"Skipping stage '{stage.name}'", reason="condition not met")
                    continue

                emit(emit_event, PipelineStepStartEvent(step=stage.name, state=state))
                step_input = stage.transition.input(state)
                result = await stage.step.execute(
                    step_input, self._stage_sink(stage.name, emit_event)
                )
                state = stage.transition.apply(state, result.output)
                stages_run += 1
                emit(emit_event, PipelineStepEndEvent(step=stage.name, state=state))
        except Exception as e:
            duration = time.perf_counter() - started
            metrics.record_pipeline(self.name, duration, success=False, stages_run=stages_run)
            logger.error(f"Pipeline '{self.name}' failed: {e}", stages_run=stages_run)
            raise

        emit(emit_event, PipelineEndEvent(state=state))

        duration = time.perf_counter() - started
        metrics.record_pipeline(self.name, duration, success=True, stages_run=stages_run)
        logger.timed(f"Pipeline '{self.name}' completed", duration * 1000, stages_run=stages_run)
        return state

    async def stream(self, initial_state: S) -> AsyncIterator[Event]:
        """Run the pipeline, yielding each event as it is emitted.

        The final state arrives with the ``pipeline_end`` event. If a stage
        fails, the events emitted before the failure are yielded first and the
        error is then raised to the consumer.
        """
        queue: asyncio.Queue = asyncio.Queue()
        finished = object()

        async def produce() -> S:
            try:
                return await self.run(initial_state, queue.put_nowait)
            finally:
                queue.put_nowait(finished)

        task = asyncio.create_task(produce())
        try:
            while True:
                item = await queue.get()
                if item is finished:
                    break
                yield item
        finally:
            if not task.done():
                task.cancel()
        await task
