"""Timed task queues: forging, alchemy and expeditions.

An entry's resolution time is fixed when it is enqueued, from the discounts
in force at that moment. Entries resolve exactly once, at the first
``resolve_due`` call with ``now >= resolves_at``, and are removed right away.
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from economy.content import Catalog
from economy.models import ArtifactDef, Channel, finite
from economy.modifiers import FinalRates
from economy.outcomes import ActionResult, Category, Notification, Reason

if TYPE_CHECKING:
    from .state import GameState

logger = logging.getLogger(__name__)

MIN_CRAFT_SECONDS = 5
FORGE_MASTER_PER_LEVEL = 0.05
LOYAL_PER_LEVEL = 0.05
BASE_PITY_THRESHOLD = 3


class QueueKind(str, Enum):
    CRAFT = "craft"
    BREW = "brew"
    MISSION = "mission"


@dataclass
class QueueEntry:
    entry_id: int
    kind: QueueKind
    definition_id: str
    enqueued_at: float
    resolves_at: float
    duration: float
    resolved: bool = False
    payload: dict[str, Any] = field(default_factory=dict)

    def due(self, now: float) -> bool:
        return not self.resolved and now >= self.resolves_at

    def remaining(self, now: float) -> float:
        return max(0.0, self.resolves_at - now)

    def progress(self, now: float) -> float:
        if self.duration <= 0:
            return 1.0
        return min(1.0, max(0.0, (now - self.enqueued_at) / self.duration))

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "kind": self.kind.value,
            "definition_id": self.definition_id,
            "enqueued_at": self.enqueued_at,
            "resolves_at": self.resolves_at,
            "duration": self.duration,
            "resolved": self.resolved,
            "payload": dict(self.payload),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> QueueEntry:
        if not isinstance(data, Mapping):
            raise TypeError(f"queue entry must be a mapping, got {type(data).__name__}")
        resolves_at = finite(float(data["resolves_at"]))
        duration = finite(data.get("duration"), 0.0)
        raw_payload = data.get("payload") or {}
        if not isinstance(raw_payload, Mapping):
            raise TypeError("queue entry payload must be a mapping")
        payload = dict(raw_payload)
        reward = payload.get("reward") or {}
        if not isinstance(reward, Mapping):
            raise TypeError("queue entry reward must be a mapping")
        if reward:
            payload["reward"] = {str(res): finite(amount) for res, amount in reward.items()}
        return cls(
            entry_id=int(finite(data.get("entry_id"), 0)),
            kind=QueueKind(data["kind"]),
            definition_id=str(data["definition_id"]),
            enqueued_at=finite(data.get("enqueued_at"), resolves_at - duration),
            resolves_at=resolves_at,
            duration=duration,
            resolved=bool(data.get("resolved", False)),
            payload=payload,
        )


# ── Durations and prices ────────────────────────────────────────


def craft_cost(artifact: ArtifactDef, rates: FinalRates) -> float:
    discount = max(0.1, 1 - rates.total(Channel.CRAFT_COST_DISCOUNT))
    return float(math.ceil(artifact.base_cost * discount * rates.total(Channel.CRAFT_COST_MULT)))


def craft_duration(artifact: ArtifactDef, rates: FinalRates, forge_master_levels: int, time_mult: float) -> float:
    discount = max(0.1, 1 - rates.total(Channel.CRAFT_TIME_DISCOUNT))
    trait = max(0.0, 1 - FORGE_MASTER_PER_LEVEL * forge_master_levels)
    return float(max(MIN_CRAFT_SECONDS, math.ceil(artifact.base_time * discount * trait * time_mult)))


def brew_duration(base: float, rates: FinalRates) -> float:
    return float(math.floor(base * max(0.5, 1 - rates.total(Channel.BREW_TIME_DISCOUNT))))


def mission_duration(base: float, rates: FinalRates, loyal_levels: int) -> float:
    logistics = 1 - rates.total(Channel.MISSION_BONUS)
    loyalty = max(0.5, 1 - LOYAL_PER_LEVEL * loyal_levels)
    return float(math.floor(base * logistics * rates.total(Channel.MISSION_TIME_MULT) * loyalty))


def pity_threshold(lucky_levels: int) -> int:
    return max(1, BASE_PITY_THRESHOLD - lucky_levels)


# ── Enqueue ─────────────────────────────────────────────────────


def enqueue_craft(state: GameState, catalog: Catalog, artifact_id: str, now: float) -> ActionResult:
    artifact = catalog.artifacts.get(artifact_id)
    if artifact is None:
        return ActionResult.reject(Reason.UNKNOWN_ID, f"Unknown artifact: {artifact_id}")
    if artifact.unlock_stage > state.progression.major:
        return ActionResult.reject(Reason.LOCKED, f"{artifact.name} cannot be forged yet")
    if len(state.craft_queue) >= state.craft_slots:
        return ActionResult.reject(Reason.CAPACITY_EXCEEDED, "All forging slots are busy")

    rates = state.current_rates(catalog)
    cost = craft_cost(artifact, rates)
    duration = craft_duration(
        artifact,
        rates,
        state.modifiers.trait_levels("forge_master"),
        state.craft_time_mult,
    )
    if not state.ledger.spend({"spirit_stones": cost}):
        return ActionResult.reject(Reason.INSUFFICIENT_FUNDS, "Not enough spirit stones", cost=cost)

    entry = state.new_entry(QueueKind.CRAFT, artifact_id, now, duration)
    state.craft_queue.append(entry)
    logger.info("Forging %s: %.0fs for %.0f stones", artifact_id, duration, cost)
    return ActionResult.success(
        f"Forging {artifact.name} ({duration:.0f}s).",
        Category.QUEUE,
        entry_id=entry.entry_id,
        resolves_at=entry.resolves_at,
        cost=cost,
    )


def enqueue_brew(state: GameState, catalog: Catalog, elixir_id: str, now: float) -> ActionResult:
    elixir = catalog.elixirs.get(elixir_id)
    if elixir is None:
        return ActionResult.reject(Reason.UNKNOWN_ID, f"Unknown elixir: {elixir_id}")
    if elixir.unlock_stage > state.progression.major:
        return ActionResult.reject(Reason.LOCKED, f"{elixir.name} cannot be brewed yet")

    rates = state.current_rates(catalog)
    duration = brew_duration(elixir.brew_time, rates)
    if not state.ledger.spend(elixir.costs):
        return ActionResult.reject(Reason.INSUFFICIENT_FUNDS, "Not enough ingredients", costs=dict(elixir.costs))

    entry = state.new_entry(QueueKind.BREW, elixir_id, now, duration)
    state.brew_queue.append(entry)
    logger.info("Brewing %s: %.0fs", elixir_id, duration)
    return ActionResult.success(
        f"Brewing {elixir.name} ({duration:.0f}s).",
        Category.QUEUE,
        entry_id=entry.entry_id,
        resolves_at=entry.resolves_at,
    )


def start_mission(state: GameState, catalog: Catalog, mission_id: str, now: float) -> ActionResult:
    mission = catalog.missions.get(mission_id)
    if mission is None:
        return ActionResult.reject(Reason.UNKNOWN_ID, f"Unknown expedition: {mission_id}")
    if mission_id in state.missions:
        return ActionResult.reject(Reason.DUPLICATE_MISSION, f"{mission.name} is already under way")
    if not state.modifiers.helpers:
        return ActionResult.reject(Reason.NO_HELPERS, "You need disciples to go on expeditions")

    rates = state.current_rates(catalog)
    bonus = rates.total(Channel.MISSION_BONUS)
    duration = mission_duration(mission.base_duration, rates, state.modifiers.trait_levels("loyal"))
    reward = {res: amount * (1 + bonus) for res, amount in mission.reward.items()}

    entry = state.new_entry(QueueKind.MISSION, mission_id, now, duration, payload={"reward": reward})
    state.missions[mission_id] = entry
    logger.info("Expedition %s started: %.0fs", mission_id, duration)
    return ActionResult.success(
        f"{mission.name} expedition started.",
        Category.MISSION,
        entry_id=entry.entry_id,
        resolves_at=entry.resolves_at,
    )


def restart_auto_missions(state: GameState, catalog: Catalog, now: float) -> list[Notification]:
    """Re-launch every idle expedition type flagged for auto-send."""
    notes: list[Notification] = []
    for mission_id in sorted(state.auto_send):
        if mission_id in state.missions or mission_id not in catalog.missions:
            continue
        result = start_mission(state, catalog, mission_id, now)
        if not result.ok:
            logger.debug("Auto-send %s skipped: %s", mission_id, result.reason.value)
            continue
        notes.extend(result.notifications)
    return notes


# ── Resolution ──────────────────────────────────────────────────


def _resolve_craft(state: GameState, catalog: Catalog, entry: QueueEntry) -> list[Notification]:
    artifact = catalog.artifacts.get(entry.definition_id)
    if artifact is None:
        logger.warning("Forged artifact %s no longer exists; discarding", entry.definition_id)
        return []

    mods = state.modifiers
    if artifact.target == "risk_reduction":
        mods.risk_mult *= 1 - artifact.value
    else:
        value = artifact.value
        if artifact.target == "qi":
            value *= 1 + state.current_rates(catalog).total(Channel.ARTIFACT_QI_BONUS)
        mods.crafted_mults[artifact.target] = mods.crafted_mults.get(artifact.target, 1.0) * value
    state.crafted_count += 1

    notes = [Notification(f"{artifact.name} forged.", Category.QUEUE)]
    for relic in catalog.relics:
        flag = f"relic:{relic.id}"
        if state.crafted_count >= relic.threshold and flag not in mods.narrative_flags:
            mods.narrative_flags.add(flag)
            logger.info("Relic awarded: %s", relic.id)
            notes.append(Notification(f"You obtained the {relic.name}!", Category.NARRATIVE))
    return notes


def _resolve_brew(state: GameState, catalog: Catalog, entry: QueueEntry) -> list[Notification]:
    inventory = state.elixir_inventory
    inventory[entry.definition_id] = inventory.get(entry.definition_id, 0) + 1
    elixir = catalog.elixirs.get(entry.definition_id)
    name = elixir.name if elixir else entry.definition_id
    return [Notification(f"{name} is ready.", Category.QUEUE)]


def _resolve_mission(
    state: GameState,
    catalog: Catalog,
    entry: QueueEntry,
    rng: random.Random,
) -> list[Notification]:
    mission_id = entry.definition_id
    mission = catalog.missions.get(mission_id)
    name = mission.name if mission else mission_id

    success = True
    risk = mission.risk if mission else 0.0
    if risk > 0:
        actual = max(0.0, risk * state.modifiers.risk_mult)
        success = rng.random() >= actual
    if success:
        for res, amount in (entry.payload.get("reward") or {}).items():
            state.ledger.add(res, amount)

    notes = []
    state.pity[mission_id] = state.pity.get(mission_id, 0) + 1
    rare = False
    if state.pity[mission_id] >= pity_threshold(state.modifiers.trait_levels("lucky")):
        rare = True
        for res, amount in (mission.rare_reward if mission else {}).items():
            state.ledger.add(res, amount)
        state.pity[mission_id] = 0
    state.missions_completed += 1

    if not success:
        notes.append(Notification(f"{name} expedition failed. Your disciples returned empty-handed.", Category.MISSION))
    elif rare:
        notes.append(Notification(f"{name} expedition complete! Rare find discovered.", Category.MISSION))
    else:
        notes.append(Notification(f"{name} expedition complete! Resources gained.", Category.MISSION))
    if rare and not success:
        notes.append(Notification(f"Your disciples still recovered a rare find from {name}.", Category.MISSION))
    logger.info("Expedition %s resolved: success=%s rare=%s", mission_id, success, rare)
    return notes


def resolve_due(state: GameState, catalog: Catalog, now: float, rng: random.Random) -> list[Notification]:
    """Resolve every due entry, forging first, then alchemy, then expeditions."""
    notes: list[Notification] = []

    for entry in sorted(state.craft_queue, key=lambda e: (e.resolves_at, e.entry_id)):
        if entry.due(now):
            entry.resolved = True
            state.craft_queue.remove(entry)
            notes.extend(_resolve_craft(state, catalog, entry))

    for entry in sorted(state.brew_queue, key=lambda e: (e.resolves_at, e.entry_id)):
        if entry.due(now):
            entry.resolved = True
            state.brew_queue.remove(entry)
            notes.extend(_resolve_brew(state, catalog, entry))

    for mission_id, entry in sorted(state.missions.items(), key=lambda kv: (kv[1].resolves_at, kv[1].entry_id)):
        if entry.due(now):
            entry.resolved = True
            del state.missions[mission_id]
            notes.extend(_resolve_mission(state, catalog, entry, rng))

    return notes


def queue_snapshot(state: GameState, kind: QueueKind | str, now: float) -> list[dict[str, Any]]:
    kind = QueueKind(kind)
    if kind is QueueKind.CRAFT:
        entries = state.craft_queue
    elif kind is QueueKind.BREW:
        entries = state.brew_queue
    else:
        entries = list(state.missions.values())
    return [
        {
            "entry_id": e.entry_id,
            "definition_id": e.definition_id,
            "resolves_at": e.resolves_at,
            "duration": e.duration,
            "remaining": e.remaining(now),
            "progress": e.progress(now),
        }
        for e in sorted(entries, key=lambda e: (e.resolves_at, e.entry_id))
    ]
