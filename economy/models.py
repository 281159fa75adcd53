"""Static content definitions: effect descriptors and everything that owns them.

Definitions are plain data loaded from ``config/content.yaml``; the aggregator
interprets effects generically, so no definition carries behaviour of its own.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .ledger import RESOURCES


class EffectKind(str, Enum):
    FLAT_ADD = "flat_add"  # total += magnitude * level
    PERCENT_MULT = "percent_mult"  # product *= (1 + magnitude) ** (level // step)
    LINEAR_PERCENT = "linear_percent"  # product *= 1 + magnitude * level
    PER_LEVEL_GEOMETRIC = "per_level_geometric"  # total += magnitude * ratio ** (level - 1)


class Channel(str, Enum):
    # flat production
    QI_RATE = "qi_rate"
    HERBS_RATE = "herbs_rate"
    SPIRIT_STONES_RATE = "spirit_stones_rate"
    BEASTS_RATE = "beasts_rate"
    JADE_RATE = "jade_rate"
    TAP = "tap"
    # production products
    QI_MULT = "qi_mult"
    HERBS_MULT = "herbs_mult"
    SPIRIT_STONES_MULT = "spirit_stones_mult"
    BEASTS_MULT = "beasts_mult"
    JADE_MULT = "jade_mult"
    TAP_MULT = "tap_mult"
    CAPACITY_MULT = "capacity_mult"
    # disciples
    HELPER_MULT = "helper_mult"
    HELPER_GLOBAL_MULT = "helper_global_mult"
    # discount sums
    UPGRADE_DISCOUNT = "upgrade_discount"
    SKILL_DISCOUNT = "skill_discount"
    RESEARCH_DISCOUNT = "research_discount"
    CRAFT_COST_DISCOUNT = "craft_cost_discount"
    CRAFT_TIME_DISCOUNT = "craft_time_discount"
    BREW_TIME_DISCOUNT = "brew_time_discount"
    PROGRESSION_DISCOUNT = "progression_discount"
    MISSION_BONUS = "mission_bonus"
    # narrative products
    CRAFT_COST_MULT = "craft_cost_mult"
    MISSION_TIME_MULT = "mission_time_mult"
    REWARD_MULT = "reward_mult"
    # misc
    REWARD_BONUS = "reward_bonus"
    OFFLINE_HOURS = "offline_hours"
    OFFLINE_BONUS = "offline_bonus"
    ELIXIR_POTENCY = "elixir_potency"
    ARTIFACT_QI_BONUS = "artifact_qi_bonus"


# Channels folded as running products (start at 1); every other channel is a sum (starts at 0).
PRODUCT_CHANNELS = frozenset(
    {
        Channel.QI_MULT,
        Channel.HERBS_MULT,
        Channel.SPIRIT_STONES_MULT,
        Channel.BEASTS_MULT,
        Channel.JADE_MULT,
        Channel.TAP_MULT,
        Channel.CAPACITY_MULT,
        Channel.HELPER_MULT,
        Channel.HELPER_GLOBAL_MULT,
        Channel.CRAFT_COST_MULT,
        Channel.MISSION_TIME_MULT,
        Channel.REWARD_MULT,
        Channel.REWARD_BONUS,
    }
)

# Additive kinds fold into sum channels, multiplicative kinds into product channels.
ADDITIVE_KINDS = frozenset({EffectKind.FLAT_ADD, EffectKind.PER_LEVEL_GEOMETRIC})

RATE_CHANNELS = {
    "qi": Channel.QI_RATE,
    "herbs": Channel.HERBS_RATE,
    "spirit_stones": Channel.SPIRIT_STONES_RATE,
    "beasts": Channel.BEASTS_RATE,
    "jade": Channel.JADE_RATE,
}

MULT_CHANNELS = {
    "qi": Channel.QI_MULT,
    "herbs": Channel.HERBS_MULT,
    "spirit_stones": Channel.SPIRIT_STONES_MULT,
    "beasts": Channel.BEASTS_MULT,
    "jade": Channel.JADE_MULT,
}


@dataclass(frozen=True)
class Effect:
    kind: EffectKind
    channel: Channel
    magnitude: float
    step: int = 1
    ratio: float = 2.0

    def __post_init__(self):
        additive = self.kind in ADDITIVE_KINDS
        if additive == (self.channel in PRODUCT_CHANNELS):
            raise ValueError(f"{self.kind.value} cannot target the {self.channel.value} channel")

    @classmethod
    def from_config(cls, data: dict[str, Any]) -> Effect:
        return cls(
            kind=EffectKind(data["kind"]),
            channel=Channel(data["channel"]),
            magnitude=finite(data.get("magnitude"), 0.0),
            step=max(1, int(finite(data.get("step") or 1))),
            ratio=finite(data.get("ratio"), 2.0),
        )

    def scaled(self, factor: float) -> Effect:
        return Effect(self.kind, self.channel, self.magnitude * factor, self.step, self.ratio)


def finite(raw: Any, default: float = 0.0) -> float:
    """Parse a number, using ``default`` when ``raw`` is None. NaN and infinities raise ValueError."""
    value = float(default if raw is None else raw)
    if not math.isfinite(value):
        raise ValueError(f"expected a finite number, got {raw!r}")
    return value


def _effects(data: dict[str, Any]) -> tuple[Effect, ...]:
    return tuple(Effect.from_config(e) for e in data.get("effects", []) or [])


def _amounts(raw: Any) -> dict[str, float]:
    if not isinstance(raw, dict):
        return {}
    return {str(k): float(v) for k, v in raw.items()}


@dataclass(frozen=True)
class ModifierDef:
    """An owned-by-level definition: upgrade, research, skill, structure or perk."""

    id: str
    name: str
    base_cost: float
    cost_mult: float
    currency: str
    effects: tuple[Effect, ...] = ()
    max_level: int | None = None
    unlock_stage: int = 0
    prereq: tuple[str, int] | None = None
    description: str = ""

    @classmethod
    def from_config(cls, data: dict[str, Any], currency: str) -> ModifierDef:
        prereq = data.get("prereq")
        max_level = data.get("max_level")
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            base_cost=float(data["base_cost"]),
            cost_mult=float(data.get("cost_mult", 1.0)),
            currency=data.get("currency", currency),
            effects=_effects(data),
            max_level=int(max_level) if max_level is not None else None,
            unlock_stage=int(data.get("unlock_stage", 0)),
            prereq=(prereq["id"], int(prereq["level"])) if prereq else None,
            description=data.get("description", ""),
        )


@dataclass(frozen=True)
class SynergyDef:
    id: str
    requires: tuple[str, ...]
    effects: tuple[Effect, ...]

    @classmethod
    def from_config(cls, data: dict[str, Any]) -> SynergyDef:
        return cls(id=data["id"], requires=tuple(data.get("requires", [])), effects=_effects(data))


@dataclass(frozen=True)
class HelperClassDef:
    id: str
    name: str
    yields: dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_config(cls, data: dict[str, Any]) -> HelperClassDef:
        return cls(id=data["id"], name=data.get("name", data["id"]), yields=_amounts(data.get("yields")))


@dataclass(frozen=True)
class TraitDef:
    id: str
    name: str
    description: str = ""

    @classmethod
    def from_config(cls, data: dict[str, Any]) -> TraitDef:
        return cls(id=data["id"], name=data.get("name", data["id"]), description=data.get("description", ""))


@dataclass(frozen=True)
class ArtifactDef:
    id: str
    name: str
    target: str  # a resource name or "risk_reduction"
    value: float
    base_cost: float
    base_time: float
    unlock_stage: int = 0

    @classmethod
    def from_config(cls, data: dict[str, Any]) -> ArtifactDef:
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            target=data["target"],
            value=float(data["value"]),
            base_cost=float(data["base_cost"]),
            base_time=float(data["base_time"]),
            unlock_stage=int(data.get("unlock_stage", 0)),
        )


@dataclass(frozen=True)
class ElixirDef:
    id: str
    name: str
    costs: dict[str, float]
    brew_time: float
    duration: float
    effects: tuple[Effect, ...] = ()
    unlock_stage: int = 0

    @classmethod
    def from_config(cls, data: dict[str, Any]) -> ElixirDef:
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            costs=_amounts(data.get("costs")),
            brew_time=float(data.get("brew_time", 60)),
            duration=float(data.get("duration", 60)),
            effects=_effects(data),
            unlock_stage=int(data.get("unlock_stage", 0)),
        )


@dataclass(frozen=True)
class MissionDef:
    id: str
    name: str
    base_duration: float
    reward: dict[str, float]
    risk: float = 0.0
    rare_reward: dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_config(cls, data: dict[str, Any]) -> MissionDef:
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            base_duration=float(data["base_duration"]),
            reward=_amounts(data.get("reward")),
            risk=float(data.get("risk", 0.0)),
            rare_reward=_amounts(data.get("rare_reward")),
        )


@dataclass(frozen=True)
class ChoiceDef:
    id: str
    description: str
    effects: tuple[Effect, ...] = ()
    grants: dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_config(cls, data: dict[str, Any]) -> ChoiceDef:
        return cls(
            id=data["id"],
            description=data.get("description", ""),
            effects=_effects(data),
            grants=_amounts(data.get("grants")),
        )


@dataclass(frozen=True)
class ChapterDef:
    stage: int
    title: str
    choices: tuple[ChoiceDef, ...] = ()

    @classmethod
    def from_config(cls, data: dict[str, Any]) -> ChapterDef:
        return cls(
            stage=int(data["stage"]),
            title=data.get("title", ""),
            choices=tuple(ChoiceDef.from_config(c) for c in data.get("choices", [])),
        )


@dataclass(frozen=True)
class RelicDef:
    id: str
    name: str
    threshold: int
    effects: tuple[Effect, ...] = ()

    @classmethod
    def from_config(cls, data: dict[str, Any]) -> RelicDef:
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            threshold=int(data["threshold"]),
            effects=_effects(data),
        )


@dataclass(frozen=True)
class RandomEventDef:
    weight: float
    grants: dict[str, float]
    message: str = ""

    @classmethod
    def from_config(cls, data: dict[str, Any]) -> RandomEventDef:
        return cls(
            weight=float(data.get("weight", 1.0)),
            grants=_amounts(data.get("grants")),
            message=data.get("message", ""),
        )


@dataclass(frozen=True)
class FeatureUnlockDef:
    id: str
    stage: int
    message: str = ""

    @classmethod
    def from_config(cls, data: dict[str, Any]) -> FeatureUnlockDef:
        return cls(id=data["id"], stage=int(data["stage"]), message=data.get("message", ""))


class TaskMetric(str, Enum):
    QI = "qi"  # qi currently held
    UPGRADE_LEVELS = "upgrade_levels"  # upgrade levels owned in total
    ADVANCEMENTS = "advancements"  # breakthroughs since the board was last reset


@dataclass(frozen=True)
class TaskDef:
    """A quest or bounty: reach ``amount`` of a metric, claim ``reward``."""

    id: str
    name: str
    metric: TaskMetric
    amount: float
    reward: dict[str, float]

    @classmethod
    def from_config(cls, data: dict[str, Any]) -> TaskDef:
        amount = float(data["amount"])
        if amount <= 0:
            raise ValueError(f"task {data['id']} needs a positive amount")
        reward = _amounts(data.get("reward"))
        unknown = set(reward) - set(RESOURCES)
        if unknown:
            raise ValueError(f"task {data['id']} rewards unknown resources: {sorted(unknown)}")
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            metric=TaskMetric(data["metric"]),
            amount=amount,
            reward=reward,
        )


@dataclass(frozen=True)
class TaskBoardDef:
    """A chain of tasks wiped and restarted every ``reset_hours``."""

    id: str
    name: str
    reset_hours: float
    tasks: tuple[TaskDef, ...] = ()

    @property
    def reset_seconds(self) -> float:
        return self.reset_hours * 3600

    @classmethod
    def from_config(cls, data: dict[str, Any]) -> TaskBoardDef:
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            reset_hours=float(data.get("reset_hours", 24)),
            tasks=tuple(TaskDef.from_config(t) for t in data.get("tasks", []) or []),
        )
