"""Configuration loading from settings.yaml and .env."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv


def default_config_dir() -> Path:
    return Path(__file__).resolve().parent.parent / "config"


def load_config(
    config_dir: str | Path | None = None,
) -> dict:
    """Load settings.yaml and .env, return merged config dict."""
    if config_dir is None:
        config_dir = default_config_dir()
    config_dir = Path(config_dir)

    # Load .env (silently skip if missing)
    env_path = config_dir / ".env"
    load_dotenv(env_path)

    # Load settings.yaml
    settings_path = config_dir / "settings.yaml"
    if not settings_path.exists():
        raise FileNotFoundError(f"Config not found: {settings_path}")

    with open(settings_path, encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}

    cfg["_config_dir"] = str(config_dir)

    # Environment overrides for storage paths and the RNG seed
    cfg["_env"] = {
        "state_file": os.getenv("IDLE_STATE_FILE", ""),
        "history_db": os.getenv("IDLE_HISTORY_DB", ""),
        "seed": os.getenv("IDLE_SEED", ""),
    }

    return cfg


@dataclass(frozen=True)
class GameSettings:
    """The ``game:`` section of settings.yaml."""

    tick_seconds: float = 1.0
    base_offline_hours: float = 8.0
    craft_slots: int = 1
    afterglow_bonus: float = 0.2
    afterglow_seconds: float = 300.0
    random_events: bool = True
    random_event_interval: float = 300.0
    random_event_chance: float = 0.05
    autosave_ticks: int = 30
    seed: int | None = None

    @classmethod
    def from_config(cls, cfg: dict[str, Any]) -> GameSettings:
        game = cfg.get("game", {}) or {}
        seed = game.get("seed")
        env_seed = (cfg.get("_env", {}) or {}).get("seed", "")
        if env_seed:
            seed = env_seed
        return cls(
            tick_seconds=float(game.get("tick_seconds", 1)),
            base_offline_hours=float(game.get("base_offline_hours", 8)),
            craft_slots=max(1, int(game.get("craft_slots", 1))),
            afterglow_bonus=float(game.get("afterglow_bonus", 0.2)),
            afterglow_seconds=float(game.get("afterglow_seconds", 300)),
            random_events=bool(game.get("random_events", True)),
            random_event_interval=float(game.get("random_event_interval", 300)),
            random_event_chance=float(game.get("random_event_chance", 0.05)),
            autosave_ticks=max(1, int(game.get("autosave_ticks", 30))),
            seed=int(seed) if seed not in (None, "") else None,
        )


def resolve_path(cfg: dict[str, Any], key: str, default: str) -> Path:
    """Resolve a storage path: env override first, then settings, relative to the repo root."""
    root = Path(__file__).resolve().parent.parent
    override = (cfg.get("_env", {}) or {}).get(key, "")
    raw = override or (cfg.get("storage", {}) or {}).get(key, default)
    path = Path(raw)
    return path if path.is_absolute() else root / path


def content_path(cfg: dict[str, Any]) -> Path:
    root = Path(__file__).resolve().parent.parent
    raw = (cfg.get("content", {}) or {}).get("path", "config/content.yaml")
    path = Path(raw)
    return path if path.is_absolute() else root / path
