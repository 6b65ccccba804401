"""
Consensus sampling core.

- ``Step``: samples a handler until one validated answer leads the vote
- ``Pipeline``: threads a state value through steps, wrapping their events
"""

from .errors import ForgeError, InputValidationError, NoValidSamplesError, SampleValidationError
from .pipeline import Pipeline, Stage, Transition
from .schema import Schema, ValidationIssue, ValidationOutcome
from .step import RedFlagRule, Step, StepResult
from .strategy import ConsensusStrategy
from .voting import VoteTally

__all__ = [
    "Step",
    "StepResult",
    "RedFlagRule",
    "Pipeline",
    "Stage",
    "Transition",
    "Schema",
    "ValidationIssue",
    "ValidationOutcome",
    "ConsensusStrategy",
    "VoteTally",
    "ForgeError",
    "InputValidationError",
    "NoValidSamplesError",
    "SampleValidationError",
]
