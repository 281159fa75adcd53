"""Owned modifiers and the aggregator that turns them into production rates.

``recompute`` is a full, pure re-derivation: it never patches a previous
result, so calling it twice on the same state yields identical ``FinalRates``.
Timed buffs are kept out of it and applied through ``buff_factors`` at the
moment production (or a display) needs them.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .content import MODIFIER_CATEGORIES, Catalog
from .costs import capacity_ceiling, unmodified_tier_cost
from .ledger import PRIMARY, RESOURCES, SECONDARY
from .models import MULT_CHANNELS, PRODUCT_CHANNELS, RATE_CHANNELS, Channel, Effect, EffectKind, finite

if TYPE_CHECKING:
    from progression.tiers import ProgressionState

logger = logging.getLogger(__name__)

BASE_QI_RATE = 0.05
BASE_TAP = 1.0
DILIGENT_PER_LEVEL = 0.05

CRAFTED_RESOURCES = ("qi", "herbs", "spirit_stones", "beasts")


# ── Owned state ─────────────────────────────────────────────────


@dataclass
class HelperUnit:
    """A recruited disciple."""

    name: str
    class_id: str
    level: int = 1
    traits: list[str] = field(default_factory=list)
    training_cost: float = 20.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "class_id": self.class_id,
            "level": self.level,
            "traits": list(self.traits),
            "training_cost": self.training_cost,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> HelperUnit:
        if not isinstance(data, Mapping):
            raise TypeError(f"helper must be a mapping, got {type(data).__name__}")
        traits = data.get("traits") or []
        if not isinstance(traits, list):
            raise TypeError("helper traits must be a list")
        return cls(
            name=str(data.get("name", "")),
            class_id=str(data.get("class_id", "")),
            level=max(1, int(finite(data.get("level") or 1))),
            traits=[str(t) for t in traits],
            training_cost=finite(data.get("training_cost"), 20.0),
        )


@dataclass
class Buff:
    """A temporary effect bundle (elixir, afterglow) that expires at ``expires_at``."""

    source: str
    effects: tuple[Effect, ...]
    expires_at: float

    def active(self, now: float) -> bool:
        return self.expires_at > now

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "expires_at": self.expires_at,
            "effects": [
                {
                    "kind": e.kind.value,
                    "channel": e.channel.value,
                    "magnitude": e.magnitude,
                    "step": e.step,
                    "ratio": e.ratio,
                }
                for e in self.effects
            ],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Buff:
        if not isinstance(data, Mapping):
            raise TypeError(f"buff must be a mapping, got {type(data).__name__}")
        return cls(
            source=str(data.get("source", "")),
            effects=tuple(Effect.from_config(e) for e in data.get("effects", []) or []),
            expires_at=finite(data.get("expires_at"), 0.0),
        )


def _levels(raw: Any) -> dict[str, int]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise TypeError(f"level map must be a mapping, got {type(raw).__name__}")
    levels = {str(k): int(finite(v)) for k, v in raw.items()}
    return {k: v for k, v in levels.items() if v > 0}


def _default_crafted() -> dict[str, float]:
    return {res: 1.0 for res in CRAFTED_RESOURCES}


@dataclass
class ModifierState:
    """Everything the player owns that feeds the aggregator."""

    upgrades: dict[str, int] = field(default_factory=dict)
    research: dict[str, int] = field(default_factory=dict)
    skills: dict[str, int] = field(default_factory=dict)
    structures: dict[str, int] = field(default_factory=dict)
    perks: dict[str, int] = field(default_factory=dict)
    helpers: list[HelperUnit] = field(default_factory=list)
    crafted_mults: dict[str, float] = field(default_factory=_default_crafted)
    risk_mult: float = 1.0
    buffs: list[Buff] = field(default_factory=list)
    narrative_flags: set[str] = field(default_factory=set)

    def levels(self, category: str) -> dict[str, int]:
        if category not in MODIFIER_CATEGORIES:
            raise KeyError(category)
        return getattr(self, category)

    def level(self, category: str, def_id: str) -> int:
        return self.levels(category).get(def_id, 0)

    def trait_levels(self, trait: str) -> int:
        """Sum of helper levels carrying ``trait``."""
        return sum(max(1, h.level) for h in self.helpers if trait in h.traits)

    def to_dict(self) -> dict[str, Any]:
        return {
            "upgrades": dict(self.upgrades),
            "research": dict(self.research),
            "skills": dict(self.skills),
            "structures": dict(self.structures),
            "perks": dict(self.perks),
            "helpers": [h.to_dict() for h in self.helpers],
            "crafted_mults": dict(self.crafted_mults),
            "risk_mult": self.risk_mult,
            "buffs": [b.to_dict() for b in self.buffs],
            "narrative_flags": sorted(self.narrative_flags),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ModifierState:
        """Rebuild from a snapshot; raises TypeError/ValueError on wrong-typed fields."""
        helpers = data.get("helpers") or []
        buffs = data.get("buffs") or []
        flags = data.get("narrative_flags") or []
        if not isinstance(helpers, list) or not isinstance(buffs, list) or not isinstance(flags, list):
            raise TypeError("helpers, buffs and narrative_flags must be lists")

        crafted = _default_crafted()
        raw_crafted = data.get("crafted_mults") or {}
        if not isinstance(raw_crafted, Mapping):
            raise TypeError("crafted_mults must be a mapping")
        crafted.update({str(k): finite(v) for k, v in raw_crafted.items()})

        return cls(
            upgrades=_levels(data.get("upgrades")),
            research=_levels(data.get("research")),
            skills=_levels(data.get("skills")),
            structures=_levels(data.get("structures")),
            perks=_levels(data.get("perks")),
            helpers=[HelperUnit.from_dict(h) for h in helpers],
            crafted_mults=crafted,
            risk_mult=finite(data.get("risk_mult"), 1.0),
            buffs=[Buff.from_dict(b) for b in buffs],
            narrative_flags={str(f) for f in flags},
        )


# ── Aggregation ─────────────────────────────────────────────────


def baseline_totals() -> dict[Channel, float]:
    totals = {ch: (1.0 if ch in PRODUCT_CHANNELS else 0.0) for ch in Channel}
    totals[Channel.QI_RATE] = BASE_QI_RATE
    totals[Channel.TAP] = BASE_TAP
    return totals


def fold_effects(totals: dict[Channel, float], effects: Iterable[Effect], level: int) -> None:
    """Fold ``effects`` owned at ``level`` into ``totals`` in place.

    Sum channels only receive additive kinds and product channels only
    multiplicative ones (enforced by ``Effect``), so the result does not
    depend on the order sources are folded in.
    """
    if level <= 0:
        return
    for eff in effects:
        if eff.kind is EffectKind.FLAT_ADD:
            totals[eff.channel] += eff.magnitude * level
        elif eff.kind is EffectKind.PER_LEVEL_GEOMETRIC:
            totals[eff.channel] += eff.magnitude * eff.ratio ** (level - 1)
        elif eff.kind is EffectKind.PERCENT_MULT:
            totals[eff.channel] *= (1 + eff.magnitude) ** (level // eff.step)
        elif eff.kind is EffectKind.LINEAR_PERCENT:
            totals[eff.channel] *= 1 + eff.magnitude * level


def narrative_effects(flag: str, catalog: Catalog) -> tuple[Effect, ...]:
    """Effects recorded by a one-shot narrative flag (chapter choice or relic)."""
    kind, _, rest = flag.partition(":")
    if kind == "chapter":
        stage, _, choice_id = rest.partition(":")
        try:
            chapter = catalog.chapters.get(int(stage))
        except ValueError:
            return ()
        if chapter is None:
            return ()
        for choice in chapter.choices:
            if choice.id == choice_id:
                return choice.effects
        return ()
    if kind == "relic":
        for relic in catalog.relics:
            if relic.id == rest:
                return relic.effects
    return ()


def helper_yields(modifiers: ModifierState, catalog: Catalog, totals: Mapping[Channel, float]) -> dict[str, float]:
    """Per-resource output of the disciple roster, after roster-wide multipliers."""
    out = {res: 0.0 for res in RESOURCES}
    for unit in modifiers.helpers:
        cls = catalog.helper_classes.get(unit.class_id)
        if cls is None:
            continue
        level = max(1, unit.level)
        own = 1 + DILIGENT_PER_LEVEL * level if "diligent" in unit.traits else 1.0
        for res, amount in cls.yields.items():
            if res in out:
                out[res] += amount * level * own

    # Leadership and sect research drive qi output only; story rewards scale everything.
    out[PRIMARY] *= totals[Channel.HELPER_MULT]
    for res in RESOURCES:
        out[res] *= totals[Channel.HELPER_GLOBAL_MULT]
    return out


@dataclass(frozen=True)
class FinalRates:
    qi_per_sec: float
    herbs_per_sec: float
    spirit_stones_per_sec: float
    beasts_per_sec: float
    jade_per_sec: float
    tap_value: float
    capacity: float
    totals: dict[Channel, float] = field(default_factory=dict)

    def rate(self, resource: str) -> float:
        if resource not in RESOURCES:
            raise KeyError(resource)
        return getattr(self, f"{resource}_per_sec")

    @property
    def secondary(self) -> dict[str, float]:
        return {res: self.rate(res) for res in SECONDARY}

    def total(self, channel: Channel) -> float:
        return self.totals.get(channel, 1.0 if channel in PRODUCT_CHANNELS else 0.0)

    def as_dict(self) -> dict[str, float]:
        out = {f"{res}_per_sec": self.rate(res) for res in RESOURCES}
        out["tap_value"] = self.tap_value
        out["capacity"] = self.capacity
        return out


def recompute(modifiers: ModifierState, progression: ProgressionState, catalog: Catalog) -> FinalRates:
    """Derive every production rate, the tap value and the qi capacity."""
    totals = baseline_totals()

    for category in MODIFIER_CATEGORIES:
        owned = modifiers.levels(category)
        for def_id, definition in catalog.modifier_defs(category).items():
            fold_effects(totals, definition.effects, owned.get(def_id, 0))

    for flag in sorted(modifiers.narrative_flags):
        fold_effects(totals, narrative_effects(flag, catalog), 1)

    for synergy in catalog.synergies:
        if all(modifiers.skills.get(skill, 0) > 0 for skill in synergy.requires):
            fold_effects(totals, synergy.effects, 1)

    helpers = helper_yields(modifiers, catalog, totals)
    crafted = modifiers.crafted_mults

    rates = {}
    for res in RESOURCES:
        base = totals[RATE_CHANNELS[res]] + helpers[res]
        rates[res] = base * totals[MULT_CHANNELS[res]] * crafted.get(res, 1.0)
    rates[PRIMARY] *= progression.layer_mult

    capacity = unmodified_tier_cost(progression.major, progression.minor) * 10 * totals[Channel.CAPACITY_MULT]
    capacity = min(capacity, capacity_ceiling(catalog.max_major))

    return FinalRates(
        qi_per_sec=rates["qi"],
        herbs_per_sec=rates["herbs"],
        spirit_stones_per_sec=rates["spirit_stones"],
        beasts_per_sec=rates["beasts"],
        jade_per_sec=rates["jade"],
        tap_value=totals[Channel.TAP] * totals[Channel.TAP_MULT],
        capacity=capacity,
        totals=totals,
    )


# ── Buffs ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class BuffFactors:
    mults: dict[str, float]
    tap_mult: float = 1.0
    tap_flat: float = 0.0

    def mult(self, resource: str) -> float:
        return self.mults.get(resource, 1.0)


def buff_factors(buffs: list[Buff], now: float) -> BuffFactors:
    """Prune expired buffs (in place) and fold the rest into per-resource factors."""
    expired = [b for b in buffs if not b.active(now)]
    if expired:
        buffs[:] = [b for b in buffs if b.active(now)]
        logger.debug("Pruned %d expired buff(s)", len(expired))

    totals = baseline_totals()
    totals[Channel.TAP] = 0.0
    for buff in buffs:
        fold_effects(totals, buff.effects, 1)

    return BuffFactors(
        mults={res: totals[MULT_CHANNELS[res]] for res in RESOURCES},
        tap_mult=totals[Channel.TAP_MULT],
        tap_flat=totals[Channel.TAP],
    )
