"""
Schema validation adapter built on pydantic.

A ``Schema`` wraps any type pydantic can validate: ``BaseModel`` subclasses,
``TypedDict``s, dataclasses, builtin generics such as ``list[str]``.
"""

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter, ValidationError

T = TypeVar("T")


@dataclass(frozen=True)
class ValidationIssue:
    """One field-level validation problem."""

    loc: tuple[str | int, ...]
    message: str
    kind: str = "value_error"

    def __str__(self) -> str:
        path = ".".join(str(part) for part in self.loc)
        return f"{path}: {self.message}" if path else self.message


@dataclass(frozen=True)
class ValidationOutcome(Generic[T]):
    """Result of a non-raising validation."""

    ok: bool
    value: T | None = None
    issues: list[ValidationIssue] = field(default_factory=list)


def issues_from_error(error: ValidationError) -> list[ValidationIssue]:
    return [
        ValidationIssue(loc=tuple(item["loc"]), message=item["msg"], kind=item["type"])
        for item in error.errors()
    ]


def format_issues(issues: list[ValidationIssue]) -> str:
    """Render issues as a single human readable line."""
    if not issues:
        return "validation failed"
    return "; ".join(str(issue) for issue in issues)


class Schema(Generic[T]):
    """Validator for one type, with raising and non-raising forms."""

    def __init__(self, type_: type[T] | Any):
        self.type_ = type_
        self._adapter: TypeAdapter[T] = TypeAdapter(type_)

    def validate(self, raw: Any) -> T:
        """Validate ``raw``; raises ``pydantic.ValidationError`` on failure."""
        return self._adapter.validate_python(raw)

    def try_validate(self, raw: Any) -> ValidationOutcome[T]:
        try:
            value = self._adapter.validate_python(raw)
        except ValidationError as e:
            return ValidationOutcome(ok=False, issues=issues_from_error(e))
        return ValidationOutcome(ok=True, value=value)

    def dump(self, value: T) -> Any:
        """JSON-compatible representation of a validated value."""
        return self._adapter.dump_python(value, mode="json")

    def __repr__(self) -> str:
        return f"Schema({getattr(self.type_, '__name__', self.type_)!r})"


def as_schema(obj: "Schema[T] | type[T] | Any") -> Schema[T]:
    """Return ``obj`` unchanged if it already is a Schema, otherwise wrap it."""
    if isinstance(obj, Schema):
        return obj
    return Schema(obj)
