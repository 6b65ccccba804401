"""
Event types emitted by steps and pipelines.

Events are delivered synchronously to an optional sink, in this order per
step execution::

    step_start, [prompt], then per attempt one of
    invalid_sample | red_flag | (sample, vote_update), and finally step_decided

A pipeline run wraps each step's events::

    pipeline_start, then per executed stage
    step_start, step_event*, step_end, and finally pipeline_end

Each event is a frozen pydantic model carrying a literal ``type`` tag;
``to_dict()`` gives a JSON-compatible payload for streaming consumers.
"""

from typing import Annotated, Any, Callable, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


# Step-level events


class StepStartEvent(Event):
    type: Literal["step_start"] = "step_start"


class PromptEvent(Event):
    type: Literal["prompt"] = "prompt"
    prompt: str


class InvalidSampleEvent(Event):
    type: Literal["invalid_sample"] = "invalid_sample"
    index: int
    reason: str


class SampleEvent(Event):
    type: Literal["sample"] = "sample"
    index: int
    sample: Any


class RedFlagEvent(Event):
    type: Literal["red_flag"] = "red_flag"
    index: int
    rule: str


class VoteUpdateEvent(Event):
    type: Literal["vote_update"] = "vote_update"
    index: int
    tally: dict[str, int]


class StepDecidedEvent(Event):
    type: Literal["step_decided"] = "step_decided"
    output: Any
    samples: list[Any]


StepEvent = Annotated[
    Union[
        StepStartEvent,
        PromptEvent,
        InvalidSampleEvent,
        SampleEvent,
        RedFlagEvent,
        VoteUpdateEvent,
        StepDecidedEvent,
    ],
    Field(discriminator="type"),
]


# Pipeline-level events


class PipelineStartEvent(Event):
    type: Literal["pipeline_start"] = "pipeline_start"
    state: Any


class PipelineStepStartEvent(Event):
    type: Literal["step_start"] = "step_start"
    step: str
    state: Any


class StepEventEnvelope(Event):
    type: Literal["step_event"] = "step_event"
    step: str
    event: StepEvent


class PipelineStepEndEvent(Event):
    type: Literal["step_end"] = "step_end"
    step: str
    state: Any


class PipelineEndEvent(Event):
    type: Literal["pipeline_end"] = "pipeline_end"
    state: Any


PipelineEvent = Annotated[
    Union[
        PipelineStartEvent,
        PipelineStepStartEvent,
        StepEventEnvelope,
        PipelineStepEndEvent,
        PipelineEndEvent,
    ],
    Field(discriminator="type"),
]

EventSink = Callable[[Event], None]


def emit(sink: "EventSink | None", event: Event) -> None:
    """Deliver ``event`` to ``sink`` if one was supplied."""
    if sink is not None:
        sink(event)
