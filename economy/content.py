"""Load the content catalog (modifier, queue and mission definitions) from YAML."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .models import (
    ArtifactDef,
    ChapterDef,
    ElixirDef,
    FeatureUnlockDef,
    HelperClassDef,
    MissionDef,
    ModifierDef,
    RandomEventDef,
    RelicDef,
    SynergyDef,
    TaskBoardDef,
    TraitDef,
)

logger = logging.getLogger(__name__)

MODIFIER_CATEGORIES = ("upgrades", "research", "skills", "structures", "perks")

_DEFAULT_CURRENCY = {
    "upgrades": "qi",
    "research": "spirit_stones",
    "skills": "spirit_stones",
    "structures": "spirit_stones",
    "perks": "advancement_points",
}


@dataclass(frozen=True)
class HelperRules:
    recruit_cost: float = 50.0
    training_cost: float = 20.0
    names: tuple[str, ...] = ("Li",)


@dataclass(frozen=True)
class Catalog:
    """Every static definition the core consumes."""

    realms: tuple[str, ...]
    upgrades: dict[str, ModifierDef] = field(default_factory=dict)
    research: dict[str, ModifierDef] = field(default_factory=dict)
    skills: dict[str, ModifierDef] = field(default_factory=dict)
    structures: dict[str, ModifierDef] = field(default_factory=dict)
    perks: dict[str, ModifierDef] = field(default_factory=dict)
    synergies: tuple[SynergyDef, ...] = ()
    helper_classes: dict[str, HelperClassDef] = field(default_factory=dict)
    traits: dict[str, TraitDef] = field(default_factory=dict)
    helpers: HelperRules = field(default_factory=HelperRules)
    artifacts: dict[str, ArtifactDef] = field(default_factory=dict)
    elixirs: dict[str, ElixirDef] = field(default_factory=dict)
    missions: dict[str, MissionDef] = field(default_factory=dict)
    chapters: dict[int, ChapterDef] = field(default_factory=dict)
    relics: tuple[RelicDef, ...] = ()
    random_events: tuple[RandomEventDef, ...] = ()
    feature_unlocks: tuple[FeatureUnlockDef, ...] = ()
    task_boards: dict[str, TaskBoardDef] = field(default_factory=dict)

    @property
    def max_major(self) -> int:
        return len(self.realms) - 1

    def realm_name(self, index: int) -> str:
        if 0 <= index < len(self.realms):
            return self.realms[index]
        return f"Realm {index + 1}"

    def modifier_defs(self, category: str) -> dict[str, ModifierDef]:
        if category not in MODIFIER_CATEGORIES:
            raise KeyError(category)
        return getattr(self, category)

    @classmethod
    def from_config(cls, data: dict[str, Any]) -> Catalog:
        mods = {
            cat: {
                d["id"]: ModifierDef.from_config(d, _DEFAULT_CURRENCY[cat])
                for d in data.get(cat, []) or []
            }
            for cat in MODIFIER_CATEGORIES
        }
        helpers_cfg = data.get("helpers", {}) or {}
        return cls(
            realms=tuple(data.get("realms", []) or ["Realm 1"]),
            synergies=tuple(SynergyDef.from_config(d) for d in data.get("synergies", []) or []),
            helper_classes={d["id"]: HelperClassDef.from_config(d) for d in data.get("helper_classes", []) or []},
            traits={d["id"]: TraitDef.from_config(d) for d in data.get("traits", []) or []},
            helpers=HelperRules(
                recruit_cost=float(helpers_cfg.get("recruit_cost", 50)),
                training_cost=float(helpers_cfg.get("training_cost", 20)),
                names=tuple(helpers_cfg.get("names", []) or ["Li"]),
            ),
            artifacts={d["id"]: ArtifactDef.from_config(d) for d in data.get("artifacts", []) or []},
            elixirs={d["id"]: ElixirDef.from_config(d) for d in data.get("elixirs", []) or []},
            missions={d["id"]: MissionDef.from_config(d) for d in data.get("missions", []) or []},
            chapters={int(d["stage"]): ChapterDef.from_config(d) for d in data.get("chapters", []) or []},
            relics=tuple(RelicDef.from_config(d) for d in data.get("relics", []) or []),
            random_events=tuple(RandomEventDef.from_config(d) for d in data.get("random_events", []) or []),
            feature_unlocks=tuple(FeatureUnlockDef.from_config(d) for d in data.get("feature_unlocks", []) or []),
            task_boards={d["id"]: TaskBoardDef.from_config(d) for d in data.get("task_boards", []) or []},
            **mods,
        )


def default_content_path() -> Path:
    return Path(__file__).resolve().parent.parent / "config" / "content.yaml"


def load_catalog(path: str | Path | None = None) -> Catalog:
    """Parse content.yaml into a Catalog."""
    content_path = Path(path) if path is not None else default_content_path()
    if not content_path.exists():
        raise FileNotFoundError(f"Content not found: {content_path}")

    with open(content_path, encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    catalog = Catalog.from_config(raw)
    logger.debug(
        "Loaded catalog: %d realms, %d upgrades, %d missions",
        len(catalog.realms),
        len(catalog.upgrades),
        len(catalog.missions),
    )
    return catalog
