"""Error taxonomy for steps and pipelines.

Only fatal conditions are raised out of ``Step.execute``/``Pipeline.run``.
``SampleValidationError`` is raised and caught inside the sampling loop and is
reported through an ``invalid_sample`` event instead.
"""

from .schema import ValidationIssue, format_issues


class ForgeError(Exception):
    """Base class for forge errors; ``step`` names the failing step when known."""

    def __init__(self, message: str, step: str | None = None):
        super().__init__(message)
        self.step = step


class InputValidationError(ForgeError):
    """Raw step input failed the step's input schema."""

    def __init__(self, step: str, issues: list[ValidationIssue]):
        super().__init__(f"Step {step} received invalid input: {format_issues(issues)}", step)
        self.issues = issues


class SampleValidationError(ForgeError):
    """A single generator attempt failed or produced output failing the schema."""

    def __init__(self, step: str, index: int, reason: str):
        super().__init__(f"Step {step} sample {index} rejected: {reason}", step)
        self.index = index
        self.reason = reason


class NoValidSamplesError(ForgeError):
    """Every sampling attempt was invalid or red-flagged."""

    def __init__(self, step: str, attempts: int):
        super().__init__(
            f"Step {step} produced no valid samples after {attempts} attempts", step
        )
        self.attempts = attempts
