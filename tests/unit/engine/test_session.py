"""Tests for the GameSession controller."""

from __future__ import annotations

import json

import pytest

from economy.content import load_catalog
from economy.outcomes import Category, Reason
from engine.config import GameSettings
from engine.core import GameSession

QUIET = GameSettings(random_events=False)


def _session(seed: int = 1) -> GameSession:
    return GameSession(load_catalog(), QUIET, seed=seed)


class TestQueries:
    def test_new_game(self):
        session = _session()
        assert session.get_resources()["qi"] == 0
        assert session.get_final_rates().qi_per_sec == pytest.approx(0.05)
        prog = session.get_progression_snapshot()
        assert prog["realm"] == "Qi Gathering"
        assert prog["next_cost"] == 100

    def test_effective_rates_include_buffs(self):
        session = _session()
        session.state.elixir_inventory["qi_draft"] = 1
        assert session.use_elixir("qi_draft", now=0).ok
        assert session.get_effective_rates(10)["qi_per_sec"] == pytest.approx(0.0625)
        assert session.get_final_rates().qi_per_sec == pytest.approx(0.05)
        assert session.get_effective_rates(61)["qi_per_sec"] == pytest.approx(0.05)


class TestActions:
    def test_purchase_refreshes_rates(self):
        session = _session()
        session.state.ledger.add("qi", 100)
        assert session.buy_upgrade("meditation").ok
        assert session.get_final_rates().qi_per_sec == pytest.approx(5.05)

    def test_rejection_changes_nothing(self):
        session = _session()
        before = session.serialize()
        result = session.buy_upgrade("meditation")
        assert result.reason is Reason.INSUFFICIENT_FUNDS
        assert session.serialize() == before
        assert session.consume_notifications() == []

    def test_breakthrough_emits_notification(self):
        session = _session()
        session.state.ledger.add("qi", 100)
        assert session.advance().ok
        notes = session.consume_notifications()
        assert [n.category for n in notes] == [Category.PROGRESSION]
        assert session.consume_notifications() == []

    def test_ascension_raises_capacity(self):
        session = _session()
        session.state.progression.minor = 8
        session.state.refresh(session.catalog)
        session.state.ledger.add("qi", 25600)
        assert session.advance().ok
        assert session.get_resources()["capacity"] == 1000 * 10

    def test_auto_send_needs_known_expedition(self):
        session = _session()
        assert session.set_auto_send("moon").reason is Reason.UNKNOWN_ID
        assert session.set_auto_send("herb").ok
        assert session.state.auto_send == {"herb"}
        session.set_auto_send("herb", enabled=False)
        assert session.state.auto_send == set()


class TestTime:
    def test_advance_to_runs_one_second_ticks(self):
        session = _session()
        session.state.last_tick = 100
        session.advance_to(110.5)
        assert session.state.last_tick == 110.5
        assert session.get_resources()["qi"] == pytest.approx(0.525)

    def test_advance_to_on_an_unstarted_clock_starts_it(self):
        session = _session()
        assert session.advance_to(1_700_000_000) == []
        assert session.state.last_tick == 1_700_000_000
        assert session.get_resources()["qi"] == 0

    def test_first_resume_does_not_backfill(self):
        session = _session()
        report = session.resume(1_700_000_000)
        assert report.simulated == 0
        assert session.state.last_tick == 1_700_000_000
        assert session.get_resources()["qi"] == 0

    def test_resume_credits_offline_time(self):
        session = _session()
        session.resume(1000)
        report = session.resume(1000 + 3600)
        assert report.simulated == 3600
        assert session.get_resources()["qi"] == pytest.approx(180)
        assert any(n.category is Category.OFFLINE for n in session.consume_notifications())

    def test_same_seed_same_story(self):
        a, b = _session(seed=42), _session(seed=42)
        for session in (a, b):
            session.state.ledger.add("spirit_stones", 500)
            for _ in range(5):
                session.recruit_helper()
        assert a.serialize() == b.serialize()


class TestPersistence:
    def test_restore_round_trip(self):
        session = _session()
        session.state.ledger.add("qi", 500)
        session.buy_upgrade("meditation")
        snapshot = session.serialize()

        other = _session()
        assert other.restore(snapshot).ok
        assert other.serialize() == snapshot
        assert other.get_final_rates() == session.get_final_rates()

    def test_malformed_restore_starts_fresh(self):
        session = _session()
        session.state.ledger.add("qi", 500)
        result = session.restore("{not json")
        assert result.reason is Reason.MALFORMED_SNAPSHOT
        assert session.get_resources()["qi"] == 0

    def test_overflowing_number_is_malformed(self):
        session = _session()
        result = session.restore(json.loads('{"crafted_count": 1e400}'))
        assert result.reason is Reason.MALFORMED_SNAPSHOT

    def test_nan_multiplier_falls_back_to_a_playable_state(self):
        session = _session()
        result = session.restore({"craft_time_mult": float("nan"), "progression": {"major": 3}})
        assert result.reason is Reason.MALFORMED_SNAPSHOT
        assert session.state.craft_time_mult == 1.0
        session.state.progression.major = 3
        session.state.refresh(session.catalog)
        session.state.ledger.add("spirit_stones", 500)
        assert session.enqueue_craft("qi_talisman", 0).ok

    def test_reset(self):
        session = _session()
        session.state.ledger.add("qi", 500)
        session.reset()
        assert session.get_resources()["qi"] == 0


class TestTaskBoards:
    def test_claim_completed_quests(self):
        session = _session()
        session.state.ledger.add("qi", 150)
        result = session.claim_tasks("quest", now=10)
        assert result.ok
        assert session.get_resources()["spirit_stones"] == 10
        assert [n.category for n in session.consume_notifications()] == [Category.TASK, Category.TASK]

        board = session.get_task_board("quest", now=10)
        gather = next(t for t in board["tasks"] if t["id"] == "gather_qi")
        assert gather["tier"] == 1
        assert gather["amount"] == 200

    def test_ticks_track_progress(self):
        session = _session()
        session.state.ledger.add("qi", 99.9)
        session.tick(1)
        session.tick(3)
        assert session.state.task_boards["quest"].tasks["gather_qi"].completed
        assert session.claim_tasks("quest", now=3).ok

    def test_unknown_board_is_rejected(self):
        session = _session()
        assert session.claim_tasks("daily_chores", now=0).reason is Reason.UNKNOWN_ID
        with pytest.raises(KeyError):
            session.get_task_board("daily_chores", now=0)

    def test_boards_survive_restore(self):
        session = _session()
        session.state.ledger.add("qi", 150)
        session.claim_tasks("quest", now=10)
        other = _session()
        assert other.restore(session.serialize()).ok
        assert other.state.task_boards == session.state.task_boards
