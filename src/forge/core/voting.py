"""Vote tally for consensus sampling."""

import json
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


def _normalize_numbers(value: Any) -> Any:
    # 1.0 and 1 must vote together
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return int(value)
    if isinstance(value, dict):
        return {key: _normalize_numbers(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize_numbers(item) for item in value]
    return value


def canonical_key(value: Any, *, sort_keys: bool = True) -> str:
    """Serialize a JSON-compatible value into a tally key.

    With ``sort_keys`` the key is independent of mapping field order, so
    ``{"a": 1, "b": 2}`` and ``{"b": 2, "a": 1}`` vote together. Without it
    keys follow field order. Integral floats are written as integers in
    either mode.
    """
    return json.dumps(
        _normalize_numbers(value), sort_keys=sort_keys, separators=(",", ":"), ensure_ascii=False
    )


@dataclass
class TallyEntry(Generic[T]):
    key: str
    count: int
    sample: T


class VoteTally(Generic[T]):
    """Counts accepted samples by canonical key.

    Ties on count are broken in favour of the key that entered the tally
    first, i.e. the earliest accepted value.
    """

    def __init__(self) -> None:
        self._entries: dict[str, TallyEntry[T]] = {}

    def add(self, key: str, sample: T) -> TallyEntry[T]:
        entry = self._entries.get(key)
        if entry is None:
            entry = TallyEntry(key=key, count=1, sample=sample)
            self._entries[key] = entry
        else:
            entry.count += 1
            entry.sample = sample
        return entry

    def snapshot(self) -> dict[str, int]:
        return {key: entry.count for key, entry in self._entries.items()}

    def leaders(self) -> tuple[TallyEntry[T] | None, TallyEntry[T] | None]:
        """Return the leading entry and the runner-up (either may be None)."""
        # sorted() is stable, so equal counts keep insertion order
        ranked = sorted(self._entries.values(), key=lambda entry: -entry.count)
        leading = ranked[0] if ranked else None
        runner_up = ranked[1] if len(ranked) > 1 else None
        return leading, runner_up

    def margin(self) -> int:
        leading, runner_up = self.leaders()
        if leading is None:
            return 0
        return leading.count - (runner_up.count if runner_up else 0)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __getitem__(self, key: str) -> TallyEntry[T]:
        return self._entries[key]
