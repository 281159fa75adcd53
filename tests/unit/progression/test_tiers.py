"""Tests for realm/layer progression."""

from __future__ import annotations

import copy

import pytest

from economy.content import Catalog, load_catalog
from economy.costs import advancement_reward, tier_cost
from economy.ledger import ResourceLedger
from economy.modifiers import ModifierState, recompute
from economy.outcomes import Category, Reason
from progression.tiers import (
    ProgressionState,
    attempt_advance,
    next_cost,
    progression_snapshot,
    secondary_costs,
)


def _advance(state: ProgressionState, ledger: ResourceLedger, catalog: Catalog, mods: ModifierState | None = None):
    rates = recompute(mods or ModifierState(), state, catalog)
    return attempt_advance(state, ledger, rates, catalog)


class TestCosts:
    def test_first_layer_costs_one_hundred(self):
        assert tier_cost(0, 0) == 100

    def test_cost_doubles_per_layer_and_scales_per_realm(self):
        assert tier_cost(0, 3) == 800
        assert tier_cost(2, 1) == 20000

    def test_discount_is_floored(self):
        assert tier_cost(0, 0, discount=0.5) == pytest.approx(50)
        assert tier_cost(0, 0, discount=3.0) == pytest.approx(20)

    def test_reward_formula(self):
        assert advancement_reward(1_000_000) == 7
        assert advancement_reward(tier_cost(0, 8)) == 0

    def test_secondary_costs_waived_in_first_realm(self):
        assert secondary_costs(0) == {}
        assert secondary_costs(2) == {"herbs": 400, "spirit_stones": 400, "beasts": 200, "jade": 4}

    def test_next_cost_uses_progression_discount(self):
        catalog = load_catalog()
        mods = ModifierState(research={"ascension_theory": 10})
        state = ProgressionState()
        assert next_cost(state, recompute(mods, state, catalog)) == pytest.approx(80)


class TestBreakthrough:
    def test_layer_advance(self):
        catalog = load_catalog()
        state = ProgressionState()
        ledger = ResourceLedger(qi=150, capacity=1e12)
        result = _advance(state, ledger, catalog)
        assert result.ok
        assert (state.major, state.minor) == (0, 1)
        assert state.layer_mult == pytest.approx(1.02)
        assert state.advancements == 1
        assert ledger.qi == 50
        assert result.notifications[0].category is Category.PROGRESSION

    def test_not_enough_qi(self):
        catalog = load_catalog()
        state = ProgressionState()
        ledger = ResourceLedger(qi=99, capacity=1e12)
        result = _advance(state, ledger, catalog)
        assert result.reason is Reason.INSUFFICIENT_FUNDS
        assert result.data["required"] == {"qi": 100}
        assert state == ProgressionState()


class TestAscension:
    def test_first_realm_ascension(self):
        catalog = load_catalog()
        state = ProgressionState(minor=8)
        ledger = ResourceLedger(qi=30000, herbs=5, capacity=1e12)
        result = _advance(state, ledger, catalog)
        assert result.ok
        assert (state.major, state.minor) == (1, 0)
        assert result.data["reward"] == 0
        assert state.advancement_points == 1
        assert ledger.qi == 0
        assert ledger.herbs == 5
        assert state.layer_mult == pytest.approx(1.10)

        unlocks = [n.message for n in result.notifications if n.category is Category.UNLOCK]
        assert len(unlocks) == 4
        assert unlocks[0].startswith("The Scripture Pavilion opens")

    def test_missing_secondary_resource_changes_nothing(self):
        catalog = load_catalog()
        state = ProgressionState(major=1, minor=8, layer_mult=1.3)
        ledger = ResourceLedger(qi=256000, herbs=200, spirit_stones=200, beasts=100, jade=1, capacity=1e12)
        state_before = copy.deepcopy(state)
        ledger_before = ledger.as_dict()

        result = _advance(state, ledger, catalog)
        assert result.reason is Reason.INSUFFICIENT_FUNDS
        assert result.data["required"]["jade"] == 2
        assert state == state_before
        assert ledger.as_dict() == ledger_before

    def test_reward_bonus_and_points(self):
        catalog = load_catalog()
        state = ProgressionState(major=3, minor=8)
        cost = tier_cost(3, 8)
        ledger = ResourceLedger(qi=cost, capacity=1e12, **secondary_costs(3))
        mods = ModifierState(skills={"soul_refinement": 10})

        result = _advance(state, ledger, catalog, mods)
        assert result.ok
        base = advancement_reward(cost)
        assert result.data["reward"] == int(base * 2)
        assert result.data["points"] == max(1, result.data["reward"] // 10)
        assert ledger.spirit_stones == result.data["reward"]

    def test_peak_is_terminal(self):
        catalog = load_catalog()
        state = ProgressionState(major=10, minor=8)
        ledger = ResourceLedger(qi=1e15, capacity=1e15)
        result = _advance(state, ledger, catalog)
        assert result.reason is Reason.PEAK_REACHED
        assert result.invalid_state
        assert ledger.qi == 1e15


class TestSnapshot:
    def test_snapshot_reports_next_costs(self):
        catalog = load_catalog()
        state = ProgressionState(major=1, minor=8)
        snap = progression_snapshot(state, recompute(ModifierState(), state, catalog), catalog)
        assert snap["realm"] == "Foundation Establishment"
        assert snap["layer"] == 9
        assert snap["next_cost"] == tier_cost(1, 8)
        assert snap["secondary_costs"]["jade"] == 2
        assert not snap["terminal"]

    def test_snapshot_at_peak(self):
        catalog = load_catalog()
        state = ProgressionState(major=10, minor=8)
        snap = progression_snapshot(state, recompute(ModifierState(), state, catalog), catalog)
        assert snap["terminal"]
        assert snap["next_cost"] is None
        assert snap["secondary_costs"] == {}


def test_from_dict_clamps_layer():
    state = ProgressionState.from_dict({"major": 2, "minor": 40})
    assert state.minor == 8
    assert state.layer_mult == 1.0
