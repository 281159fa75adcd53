"""Tests for settings loading, the save file and the history journal."""

import asyncio
from pathlib import Path

import pytest

from engine.config import GameSettings, content_path, load_config, resolve_path
from engine.storage import HistoryDB, StateManager


def _write_settings(config_dir: Path, body: str) -> None:
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "settings.yaml").write_text(body, encoding="utf-8")


class TestConfig:
    def test_load_settings(self, tmp_path: Path, monkeypatch):
        monkeypatch.delenv("IDLE_SEED", raising=False)
        _write_settings(tmp_path, "game:\n  tick_seconds: 2\n  craft_slots: 0\n  seed: 9\n")
        cfg = load_config(tmp_path)
        settings = GameSettings.from_config(cfg)
        assert cfg["_config_dir"] == str(tmp_path)
        assert settings.tick_seconds == 2
        assert settings.craft_slots == 1
        assert settings.seed == 9
        assert settings.base_offline_hours == 8

    def test_missing_settings_raise(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path)

    def test_env_seed_overrides_settings(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("IDLE_SEED", "42")
        _write_settings(tmp_path, "game:\n  seed: 9\n")
        assert GameSettings.from_config(load_config(tmp_path)).seed == 42

    def test_env_state_file_overrides_storage(self, tmp_path: Path, monkeypatch):
        target = tmp_path / "elsewhere" / "save.json"
        monkeypatch.setenv("IDLE_STATE_FILE", str(target))
        _write_settings(tmp_path, "storage:\n  state_file: data/state.json\n")
        assert resolve_path(load_config(tmp_path), "state_file", "data/state.json") == target

    def test_relative_paths_resolve_from_repo_root(self, tmp_path: Path, monkeypatch):
        monkeypatch.delenv("IDLE_HISTORY_DB", raising=False)
        _write_settings(tmp_path, "storage:\n  history_db: data/journal.db\n")
        cfg = load_config(tmp_path)
        path = resolve_path(cfg, "history_db", "data/history.db")
        assert path.is_absolute()
        assert path.parts[-2:] == ("data", "journal.db")
        assert content_path(cfg).name == "content.yaml"

    def test_bundled_settings_load(self):
        settings = GameSettings.from_config(load_config())
        assert settings.afterglow_seconds == 300
        assert settings.random_event_interval == 300


class TestStateManager:
    def test_save_and_load(self, tmp_path: Path):
        mgr = StateManager(tmp_path / "nested" / "state.json")
        assert mgr.load() is None
        mgr.save({"save_version": 2, "resources": {"qi": 12.5}})
        assert mgr.load() == {"save_version": 2, "resources": {"qi": 12.5}}
        assert not (tmp_path / "nested" / "state.json.tmp").exists()

    def test_corrupt_file_returns_raw_text(self, tmp_path: Path):
        path = tmp_path / "state.json"
        path.write_text("{oops", encoding="utf-8")
        assert StateManager(path).load() == "{oops"


def test_history_journal_roundtrip(tmp_path: Path):
    db_path = tmp_path / "history.db"

    async def _run():
        async with HistoryDB(db_path) as db:
            await db.log_notification("progression", "Breakthrough! Qi Gathering, layer 2.", game_time=10)
            await db.log_notification("event", "A vein of spirit stones surfaces near the sect.", game_time=20)
            await db.log_advancement(0, 1, realm="Qi Gathering", cost=100, game_time=10)

            recent = await db.get_recent_notifications(limit=5)
            assert len(recent) == 2
            assert recent[0]["category"] == "event"

            events = await db.get_recent_notifications(limit=5, category="progression")
            assert [row["message"] for row in events] == ["Breakthrough! Qi Gathering, layer 2."]

            assert await db.get_advancement_count() == 1
            rows = await db.get_recent_advancements(limit=1)
            assert rows[0]["realm"] == "Qi Gathering"
            assert rows[0]["minor"] == 1

    asyncio.run(_run())
