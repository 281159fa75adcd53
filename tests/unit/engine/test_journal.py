"""Tests for journaling session notifications into the history database."""

import asyncio
from pathlib import Path

from economy.content import load_catalog
from engine.config import GameSettings
from engine.core import GameSession
from engine.storage import HistoryDB
from main import _journal


def _session() -> GameSession:
    return GameSession(load_catalog(), GameSettings(random_events=False), seed=1)


def _journal_rows(db_path: Path, session: GameSession) -> tuple[list[dict], list[dict]]:
    async def _run():
        async with HistoryDB(db_path) as db:
            await _journal(db, session, session.consume_notifications(), 5.0)
            return await db.get_recent_advancements(limit=20), await db.get_recent_notifications(limit=20)

    return asyncio.run(_run())


def test_each_breakthrough_keeps_its_own_values(tmp_path: Path):
    session = _session()
    session.state.ledger.add("qi", 1000)
    while session.advance().ok:
        pass

    advancements, notifications = _journal_rows(tmp_path / "history.db", session)
    assert sorted((r["major"], r["minor"], r["cost"], r["reward"]) for r in advancements) == [
        (0, 1, 100.0, 0),
        (0, 2, 200.0, 0),
        (0, 3, 400.0, 0),
    ]
    assert {r["realm"] for r in advancements} == {"Qi Gathering"}
    assert len(notifications) == 3


def test_ascension_is_journaled_once_with_its_cost(tmp_path: Path):
    session = _session()
    session.state.progression.minor = 8
    session.state.refresh(session.catalog)
    session.state.ledger.add("qi", 25600)
    assert session.advance().ok

    advancements, notifications = _journal_rows(tmp_path / "history.db", session)
    assert [(r["major"], r["minor"], r["cost"]) for r in advancements] == [(1, 0, 25600.0)]
    assert advancements[0]["realm"] == session.catalog.realm_name(1)
    assert {r["category"] for r in notifications} == {"progression", "unlock"}
