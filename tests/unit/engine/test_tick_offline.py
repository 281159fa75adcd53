"""Tests for the tick loop, wandering events and offline catch-up."""

from __future__ import annotations

import random

import pytest

from economy.content import Catalog, load_catalog
from economy.modifiers import HelperUnit
from economy.outcomes import Category
from economy.purchases import use_elixir
from engine.config import GameSettings
from engine.core import GameSession
from engine.offline import AFTERGLOW_SOURCE, catch_up, offline_cap_seconds
from engine.state import GameState
from engine.tick import maybe_random_event, run_tick

QUIET = GameSettings(random_events=False)


def _fresh(catalog: Catalog) -> GameState:
    state = GameState()
    state.refresh(catalog)
    return state


def _offline_catalog() -> Catalog:
    return Catalog.from_config(
        {
            "realms": ["Mortal"],
            "research": [
                {
                    "id": "rift",
                    "base_cost": 1,
                    "effects": [
                        {"kind": "flat_add", "channel": "offline_hours", "magnitude": 1},
                        {"kind": "flat_add", "channel": "offline_bonus", "magnitude": 0.25},
                    ],
                }
            ],
            "structures": [
                {"id": "garden", "base_cost": 1, "effects": [{"kind": "flat_add", "channel": "herbs_rate", "magnitude": 1}]}
            ],
            "random_events": [{"weight": 1, "grants": {"jade": 1}, "message": "Jade falls from the sky."}],
        }
    )


class TestTick:
    def test_production_over_interval(self):
        catalog = load_catalog()
        state = _fresh(catalog)
        run_tick(state, catalog, 10, random.Random(0), QUIET)
        assert state.ledger.qi == pytest.approx(0.5)
        assert state.last_tick == 10

    def test_qi_is_clamped_to_capacity(self):
        catalog = load_catalog()
        state = _fresh(catalog)
        state.ledger.qi = 999.99
        run_tick(state, catalog, 100, random.Random(0), QUIET)
        assert state.ledger.qi == 1000

    def test_qi_stays_within_capacity_across_many_ticks(self):
        session = GameSession(load_catalog(), QUIET, seed=3)
        state = session.state
        state.last_tick = 1
        state.elixir_inventory["qi_draft"] = 50
        state.ledger.add("spirit_stones", 10_000)
        actions = [
            lambda t: session.tap(t),
            lambda t: session.buy_upgrade("meditation"),
            lambda t: session.use_elixir("qi_draft", t),
            lambda t: state.ledger.add("qi", 5_000),
            lambda t: session.advance(),
            lambda t: session.recruit_helper(),
        ]

        for step in range(1, 300):
            now = 1 + step * 7
            actions[step % len(actions)](now)
            session.tick(now)
            assert 0 <= state.ledger.qi <= state.ledger.capacity
            assert state.ledger.capacity == session.get_final_rates().capacity
        assert state.progression.major >= 1

    def test_time_going_backwards_produces_nothing(self):
        catalog = load_catalog()
        state = _fresh(catalog)
        state.last_tick = 50
        run_tick(state, catalog, 40, random.Random(0), QUIET)
        assert state.ledger.qi == 0

    def test_buffs_apply_during_tick_but_not_after_expiry(self):
        catalog = load_catalog()
        state = _fresh(catalog)
        state.elixir_inventory["qi_draft"] = 1
        use_elixir(state.modifiers, state.elixir_inventory, state.rates, catalog, "qi_draft", now=0)
        run_tick(state, catalog, 10, random.Random(0), QUIET)
        assert state.ledger.qi == pytest.approx(0.625)
        run_tick(state, catalog, 70, random.Random(0), QUIET)
        assert state.modifiers.buffs == []
        assert state.ledger.qi == pytest.approx(0.625 + 3.0)

    def test_auto_send_restarts_expeditions(self):
        catalog = load_catalog()
        state = _fresh(catalog)
        state.modifiers.helpers.append(HelperUnit("Li", "sword"))
        state.refresh(catalog)
        state.auto_send.add("herb")
        rng = random.Random(0)

        notes = run_tick(state, catalog, 1, rng, QUIET)
        assert "herb" in state.missions
        assert notes[0].category is Category.MISSION

        run_tick(state, catalog, 61, rng, QUIET)
        assert state.missions_completed == 1
        assert state.ledger.herbs == 50
        assert state.missions["herb"].enqueued_at == 61


class TestRandomEvents:
    def test_event_fires_once_per_interval(self):
        catalog = _offline_catalog()
        state = _fresh(catalog)
        settings = GameSettings(random_event_chance=1.0, random_event_interval=300)
        rng = random.Random(0)

        assert maybe_random_event(state, catalog, 299, rng, settings) == []
        notes = maybe_random_event(state, catalog, 300, rng, settings)
        assert notes[0].message == "Jade falls from the sky."
        assert notes[0].category is Category.EVENT
        assert state.ledger.jade == 1
        assert maybe_random_event(state, catalog, 400, rng, settings) == []

    def test_disabled_events_never_fire(self):
        catalog = _offline_catalog()
        state = _fresh(catalog)
        settings = GameSettings(random_events=False, random_event_chance=1.0)
        assert maybe_random_event(state, catalog, 10_000, random.Random(0), settings) == []
        assert state.ledger.jade == 0


class TestOffline:
    def test_catch_up_matches_live_rates(self):
        catalog = load_catalog()
        state = _fresh(catalog)
        report = catch_up(state, catalog, 600, QUIET)
        assert report.simulated == 600
        assert report.gains["qi"] == pytest.approx(30)
        assert state.last_tick == 600

    def test_offline_time_is_capped(self):
        catalog = _offline_catalog()
        state = _fresh(catalog)
        state.modifiers.structures["garden"] = 1
        state.modifiers.research["rift"] = 2
        state.refresh(catalog)

        assert offline_cap_seconds(state, catalog, QUIET) == 36000
        report = catch_up(state, catalog, 40_000, QUIET)
        assert report.elapsed == 40_000
        assert report.simulated == 36000
        assert state.ledger.herbs == pytest.approx(36000 * 1.5)

    def test_afterglow_buff_is_granted(self):
        catalog = load_catalog()
        state = _fresh(catalog)
        report = catch_up(state, catalog, 3600, QUIET)
        assert report.notifications[0].category is Category.OFFLINE
        buff = state.modifiers.buffs[0]
        assert buff.source == AFTERGLOW_SOURCE
        assert buff.expires_at == 3600 + 300
        assert buff.effects[0].magnitude == pytest.approx(0.2)

    def test_no_afterglow_for_a_blink(self):
        catalog = load_catalog()
        state = _fresh(catalog)
        state.last_tick = 100
        report = catch_up(state, catalog, 101, QUIET)
        assert report.notifications == []
        assert state.modifiers.buffs == []
