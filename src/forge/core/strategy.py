"""Consensus strategy configuration and its field-wise default merge."""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ConsensusStrategy(BaseModel):
    """How many samples a step draws and when it may stop early."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    initial_samples: int = Field(1, ge=1, description="Samples taken before early stop may trigger")
    k: int = Field(1, ge=0, description="Lead margin required to stop early")
    max_samples: int | None = Field(
        None, ge=1, description="Hard cap on attempts; defaults to initial_samples"
    )

    @model_validator(mode="after")
    def _check_bounds(self) -> "ConsensusStrategy":
        if self.max_samples is not None and self.max_samples < self.initial_samples:
            raise ValueError(
                f"max_samples ({self.max_samples}) must be >= "
                f"initial_samples ({self.initial_samples})"
            )
        return self

    @property
    def initial_count(self) -> int:
        return max(1, self.initial_samples)

    @property
    def max_count(self) -> int:
        initial = self.initial_count
        return max(initial, self.max_samples if self.max_samples is not None else initial)

    def merge(self, override: "ConsensusStrategy | Mapping[str, Any] | None") -> "ConsensusStrategy":
        """Return a strategy with the override's explicitly given fields applied.

        Fields the override leaves unset keep this strategy's values, so
        ``base.merge({"initial_samples": 3})`` keeps ``base.k``. An inherited
        ``max_samples`` is raised to the override's ``initial_samples`` when it
        would otherwise fall below it.
        """
        if override is None:
            return self
        if isinstance(override, ConsensusStrategy):
            changes = {name: getattr(override, name) for name in override.model_fields_set}
        else:
            changes = dict(override)
        merged = {**self.model_dump(), **changes}
        if (
            "max_samples" not in changes
            and merged["max_samples"] is not None
            and isinstance(merged["initial_samples"], int)
        ):
            merged["max_samples"] = max(merged["max_samples"], merged["initial_samples"])
        return ConsensusStrategy.model_validate(merged)


def resolve_strategy(
    override: ConsensusStrategy | Mapping[str, Any] | None = None,
) -> ConsensusStrategy:
    """Merge ``override`` over the configured default strategy."""
    from ..config.settings import get_settings

    return get_settings().strategy.merge(override)
