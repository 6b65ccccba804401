"""Tests for consensus strategy configuration and the vote tally."""

import pytest
from pydantic import ValidationError

import forge
from forge.core.strategy import ConsensusStrategy, resolve_strategy
from forge.core.voting import VoteTally, canonical_key

from support import Empty, Value


class TestConsensusStrategy:
    """Test strategy defaults, bounds and merging."""

    def test_defaults(self):
        strategy = ConsensusStrategy()

        assert strategy.initial_samples == 1
        assert strategy.k == 1
        assert strategy.max_samples is None
        assert strategy.max_count == 1

    def test_max_count_defaults_to_initial(self):
        assert ConsensusStrategy(initial_samples=4).max_count == 4
        assert ConsensusStrategy(initial_samples=2, max_samples=6).max_count == 6

    @pytest.mark.parametrize(
        "fields",
        [
            {"initial_samples": 0},
            {"k": -1},
            {"initial_samples": 3, "max_samples": 2},
            {"unknown": 1},
        ],
    )
    def test_invalid_strategies_rejected(self, fields):
        with pytest.raises(ValidationError):
            ConsensusStrategy(**fields)

    def test_merge_mapping_keeps_unset_fields(self):
        base = ConsensusStrategy(initial_samples=2, k=3, max_samples=9)

        merged = base.merge({"initial_samples": 5})

        assert merged == ConsensusStrategy(initial_samples=5, k=3, max_samples=9)

    def test_merge_strategy_uses_fields_set(self):
        """Only fields explicitly given on the override apply."""
        base = ConsensusStrategy(initial_samples=2, k=3, max_samples=9)

        merged = base.merge(ConsensusStrategy(k=0))

        assert merged == ConsensusStrategy(initial_samples=2, k=0, max_samples=9)

    def test_merge_none_returns_base(self):
        base = ConsensusStrategy(k=2)

        assert base.merge(None) is base

    def test_resolve_uses_settings_default(self, monkeypatch):
        from forge.config.settings import get_settings

        monkeypatch.setenv("FORGE_STRATEGY__K", "2")
        get_settings.cache_clear()

        assert resolve_strategy({"initial_samples": 3}) == ConsensusStrategy(initial_samples=3, k=2)

    def test_merge_lifts_inherited_max_samples(self):
        """An inherited cap below the new initial_samples is raised to it."""
        base = ConsensusStrategy(initial_samples=1, max_samples=3)

        assert base.merge({"initial_samples": 5}) == ConsensusStrategy(
            initial_samples=5, max_samples=5
        )
        assert base.merge({"initial_samples": 2}).max_samples == 3

    def test_merge_explicit_max_samples_still_validated(self):
        base = ConsensusStrategy(max_samples=3)

        with pytest.raises(ValidationError):
            base.merge({"initial_samples": 5, "max_samples": 4})

    def test_step_strategy_over_configured_max_samples(self, monkeypatch):
        """A per-step initial_samples above the configured cap still builds."""
        from forge.config.settings import get_settings

        monkeypatch.setenv("FORGE_STRATEGY__MAX_SAMPLES", "3")
        get_settings.cache_clear()

        step = forge.step(
            name="wide",
            input=Empty,
            output=Value,
            handler=lambda value: {"value": 1},
            strategy={"initial_samples": 5},
        )

        assert step.strategy.initial_count == 5
        assert step.strategy.max_count == 5


class TestCanonicalKey:
    """Test tally key serialization."""

    def test_sorted_keys_ignore_field_order(self):
        assert canonical_key({"b": 1, "a": [1, {"d": 2, "c": 3}]}) == '{"a":[1,{"c":3,"d":2}],"b":1}'

    def test_unsorted_keys_follow_field_order(self):
        assert canonical_key({"b": 1, "a": 2}, sort_keys=False) == '{"b":1,"a":2}'

    def test_non_ascii_preserved(self):
        assert canonical_key({"text": "héllo"}) == '{"text":"héllo"}'

    def test_integral_floats_share_key_with_ints(self):
        assert canonical_key({"v": 1.0, "w": [2.0, 2.5]}) == canonical_key({"v": 1, "w": [2, 2.5]})
        assert canonical_key({"v": 1.0}) == '{"v":1}'
        assert canonical_key([True, 1.0], sort_keys=False) == "[true,1]"


class TestVoteTally:
    """Test counting, leaders and margins."""

    def test_empty_tally(self):
        tally = VoteTally()

        assert tally.leaders() == (None, None)
        assert tally.margin() == 0
        assert len(tally) == 0

    def test_add_counts_and_replaces_representative(self):
        tally = VoteTally()
        first = {"id": 1}
        second = {"id": 1}

        tally.add("k", first)
        entry = tally.add("k", second)

        assert entry.count == 2
        assert entry.sample is second
        assert tally.snapshot() == {"k": 2}

    def test_single_candidate_margin_is_count(self):
        tally = VoteTally()
        tally.add("a", 1)
        tally.add("a", 1)

        leading, runner_up = tally.leaders()

        assert leading.key == "a"
        assert runner_up is None
        assert tally.margin() == 2

    def test_leaders_and_margin(self):
        tally = VoteTally()
        for key in ["a", "b", "b", "c", "b", "a"]:
            tally.add(key, key)

        leading, runner_up = tally.leaders()

        assert (leading.key, leading.count) == ("b", 3)
        assert (runner_up.key, runner_up.count) == ("a", 2)
        assert tally.margin() == 1

    def test_ties_favour_first_inserted(self):
        tally = VoteTally()
        for key in ["x", "y", "y", "x"]:
            tally.add(key, key)

        leading, runner_up = tally.leaders()

        assert leading.key == "x"
        assert runner_up.key == "y"
        assert tally.margin() == 0

    def test_snapshot_is_a_copy(self):
        tally = VoteTally()
        tally.add("a", 1)

        snapshot = tally.snapshot()
        tally.add("a", 1)

        assert snapshot == {"a": 1}
        assert "a" in tally
        assert tally["a"].count == 2
