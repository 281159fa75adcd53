"""Save-file persistence and the progress journal.

State = current game snapshot (JSON file, loaded on resume)
History = append-only journal of notifications and advancements (SQLite database)
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ── Save file (JSON) ────────────────────────────────────────────


class StateManager:
    """Load / save a game snapshot to a JSON file."""

    def __init__(self, state_path: str | Path):
        self._path = Path(state_path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Any | None:
        """Return the decoded snapshot, or None when there is no save yet.

        An unreadable file is returned as its raw text so the session can
        reject it as malformed and start fresh.
        """
        if not self._path.exists():
            logger.info("No save file at %s", self._path)
            return None
        text = self._path.read_text(encoding="utf-8")
        try:
            snapshot = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning("Save file %s is not valid JSON: %s", self._path, e)
            return text
        logger.debug("Loaded save from %s", self._path)
        return snapshot

    def save(self, snapshot: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(snapshot, indent=2), encoding="utf-8")
        tmp.replace(self._path)
        logger.debug("Saved state to %s", self._path)


# ── History Database (SQLite) ───────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS notifications (
    id TEXT PRIMARY KEY,
    category TEXT,
    message TEXT,
    game_time REAL,
    created_at TEXT
);

CREATE TABLE IF NOT EXISTS advancements (
    id TEXT PRIMARY KEY,
    major INTEGER,
    minor INTEGER,
    realm TEXT,
    cost REAL,
    reward INTEGER,
    game_time REAL,
    created_at TEXT
);
"""


class HistoryDB:
    """Append-only journal of what happened in the game."""

    def __init__(self, db_path: str | Path):
        self._path = Path(db_path)
        self._db: aiosqlite.Connection | None = None

    async def open(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(str(self._path))
        await self._db.executescript(_SCHEMA)
        await self._db.commit()
        logger.debug("History DB ready at %s", self._path)

    async def close(self) -> None:
        if self._db:
            await self._db.close()

    async def __aenter__(self) -> HistoryDB:
        await self.open()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    # ── Logging events ──────────────────────────────────────────

    async def log_notification(self, category: str, message: str, game_time: float = 0.0) -> str:
        row_id = str(uuid.uuid4())
        await self._db.execute(
            "INSERT INTO notifications (id, category, message, game_time, created_at) VALUES (?, ?, ?, ?, ?)",
            (row_id, category, message, game_time, _now_iso()),
        )
        await self._db.commit()
        return row_id

    async def log_advancement(
        self,
        major: int,
        minor: int,
        realm: str = "",
        cost: float = 0.0,
        reward: int = 0,
        game_time: float = 0.0,
    ) -> str:
        row_id = str(uuid.uuid4())
        await self._db.execute(
            "INSERT INTO advancements (id, major, minor, realm, cost, reward, game_time, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (row_id, major, minor, realm, cost, reward, game_time, _now_iso()),
        )
        await self._db.commit()
        return row_id

    # ── Queries ─────────────────────────────────────────────────

    async def get_recent_notifications(self, limit: int = 20, category: str | None = None) -> list[dict]:
        if category:
            cursor = await self._db.execute(
                "SELECT * FROM notifications WHERE category = ? ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (category, limit),
            )
        else:
            cursor = await self._db.execute(
                "SELECT * FROM notifications ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (limit,),
            )
        rows = await cursor.fetchall()
        cols = [d[0] for d in cursor.description]
        return [dict(zip(cols, row)) for row in rows]

    async def get_recent_advancements(self, limit: int = 20) -> list[dict]:
        cursor = await self._db.execute(
            "SELECT * FROM advancements ORDER BY created_at DESC, rowid DESC LIMIT ?",
            (limit,),
        )
        rows = await cursor.fetchall()
        cols = [d[0] for d in cursor.description]
        return [dict(zip(cols, row)) for row in rows]

    async def get_advancement_count(self) -> int:
        cursor = await self._db.execute("SELECT COUNT(*) FROM advancements")
        row = await cursor.fetchone()
        return row[0] if row else 0
