"""The GameState aggregate and its snapshot format.

Snapshots are plain JSON-safe dicts. Restoring tolerates missing fields and
a few older layouts; anything that cannot be interpreted raises
``MalformedSnapshot`` before a single field is applied.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from economy.content import Catalog
from economy.ledger import ResourceLedger
from economy.models import finite
from economy.modifiers import FinalRates, ModifierState, recompute
from progression.quests import TaskBoard
from progression.tiers import ProgressionState

from .queues import QueueEntry, QueueKind

logger = logging.getLogger(__name__)

SAVE_VERSION = 2


class MalformedSnapshot(ValueError):
    """Raised when a snapshot payload cannot be interpreted."""


@dataclass
class GameState:
    ledger: ResourceLedger = field(default_factory=ResourceLedger)
    modifiers: ModifierState = field(default_factory=ModifierState)
    progression: ProgressionState = field(default_factory=ProgressionState)

    # Queues (missions keyed by type: at most one active per type)
    craft_queue: list[QueueEntry] = field(default_factory=list)
    brew_queue: list[QueueEntry] = field(default_factory=list)
    missions: dict[str, QueueEntry] = field(default_factory=dict)

    pity: dict[str, int] = field(default_factory=dict)
    elixir_inventory: dict[str, int] = field(default_factory=dict)
    auto_send: set[str] = field(default_factory=set)
    task_boards: dict[str, TaskBoard] = field(default_factory=dict)

    # Counters
    crafted_count: int = 0
    missions_completed: int = 0
    next_entry_id: int = 1

    craft_slots: int = 1
    craft_time_mult: float = 1.0
    last_tick: float = 0.0
    last_event_at: float = 0.0

    # Derived, never persisted
    rates: FinalRates | None = field(default=None, repr=False, compare=False)

    def refresh(self, catalog: Catalog) -> FinalRates:
        """Recompute FinalRates and re-apply the capacity they imply."""
        self.rates = recompute(self.modifiers, self.progression, catalog)
        self.ledger.set_capacity(self.rates.capacity)
        return self.rates

    def current_rates(self, catalog: Catalog) -> FinalRates:
        if self.rates is None:
            return self.refresh(catalog)
        return self.rates

    def new_entry(
        self,
        kind: QueueKind,
        definition_id: str,
        now: float,
        duration: float,
        payload: dict[str, Any] | None = None,
    ) -> QueueEntry:
        entry = QueueEntry(
            entry_id=self.next_entry_id,
            kind=kind,
            definition_id=definition_id,
            enqueued_at=now,
            resolves_at=now + duration,
            duration=duration,
            payload=payload or {},
        )
        self.next_entry_id += 1
        return entry

    # ── Snapshots ───────────────────────────────────────────────

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "save_version": SAVE_VERSION,
            "resources": self.ledger.as_dict(),
            "modifiers": self.modifiers.to_dict(),
            "progression": self.progression.to_dict(),
            "queues": {
                "craft": [e.to_dict() for e in self.craft_queue],
                "brew": [e.to_dict() for e in self.brew_queue],
                "mission": [e.to_dict() for e in self.missions.values()],
            },
            "pity": dict(self.pity),
            "elixir_inventory": dict(self.elixir_inventory),
            "auto_send": sorted(self.auto_send),
            "task_boards": {board_id: b.to_dict() for board_id, b in self.task_boards.items()},
            "crafted_count": self.crafted_count,
            "missions_completed": self.missions_completed,
            "next_entry_id": self.next_entry_id,
            "craft_slots": self.craft_slots,
            "craft_time_mult": self.craft_time_mult,
            "last_tick": self.last_tick,
            "last_event_at": self.last_event_at,
        }

    @classmethod
    def from_snapshot(cls, data: Any, default_craft_slots: int = 1) -> GameState:
        if not isinstance(data, Mapping):
            raise MalformedSnapshot(f"snapshot must be a mapping, got {type(data).__name__}")
        try:
            return cls._parse(data, default_craft_slots)
        except (TypeError, ValueError, KeyError, AttributeError, OverflowError) as e:
            raise MalformedSnapshot(str(e)) from e

    @classmethod
    def _parse(cls, data: Mapping[str, Any], default_craft_slots: int) -> GameState:
        data = _migrate(data)

        resources = data.get("resources") or {}
        if not isinstance(resources, Mapping):
            raise TypeError("resources must be a mapping")
        modifiers = data.get("modifiers") or {}
        if not isinstance(modifiers, Mapping):
            raise TypeError("modifiers must be a mapping")

        queues = data.get("queues") or {}
        if not isinstance(queues, Mapping):
            raise TypeError("queues must be a mapping")
        craft = [QueueEntry.from_dict(e) for e in _list(queues.get("craft"))]
        brew = [QueueEntry.from_dict(e) for e in _list(queues.get("brew"))]
        missions: dict[str, QueueEntry] = {}
        for raw in _list(queues.get("mission")):
            entry = QueueEntry.from_dict(raw)
            missions[entry.definition_id] = entry

        entry_ids = [e.entry_id for e in (*craft, *brew, *missions.values())]
        next_entry_id = max(_whole(data.get("next_entry_id"), 1), max(entry_ids, default=0) + 1)

        boards = data.get("task_boards") or {}
        if not isinstance(boards, Mapping):
            raise TypeError("task_boards must be a mapping")

        return cls(
            ledger=ResourceLedger.from_dict(resources),
            modifiers=ModifierState.from_dict(modifiers),
            progression=ProgressionState.from_dict(data.get("progression") or {}),
            craft_queue=craft,
            brew_queue=brew,
            missions=missions,
            pity=_counts(data.get("pity")),
            elixir_inventory=_counts(data.get("elixir_inventory")),
            auto_send={str(m) for m in _list(data.get("auto_send"))},
            task_boards={str(k): TaskBoard.from_dict(v) for k, v in boards.items()},
            crafted_count=_whole(data.get("crafted_count"), 0),
            missions_completed=_whole(data.get("missions_completed"), 0),
            next_entry_id=next_entry_id,
            craft_slots=max(1, _whole(data.get("craft_slots"), default_craft_slots)),
            craft_time_mult=finite(data.get("craft_time_mult") or 1.0),
            last_tick=finite(data.get("last_tick") or 0.0),
            last_event_at=finite(data.get("last_event_at") or 0.0),
        )


def _list(raw: Any) -> list:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise TypeError(f"expected a list, got {type(raw).__name__}")
    return raw


def _whole(raw: Any, default: int) -> int:
    return int(finite(raw or default))


def _counts(raw: Any) -> dict[str, int]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise TypeError(f"expected a mapping, got {type(raw).__name__}")
    return {str(k): int(finite(v)) for k, v in raw.items()}


def _migrate(data: Mapping[str, Any]) -> dict[str, Any]:
    """Lift version-1 layouts into the current shape."""
    out = dict(data)

    # v1 kept a single expedition instead of one per type
    legacy = out.pop("active_expedition", None)
    if legacy:
        if not isinstance(legacy, Mapping):
            raise TypeError("active_expedition must be a mapping")
        queues = dict(out.get("queues") or {})
        missions = list(queues.get("mission") or [])
        end = finite(legacy.get("end_time", legacy.get("resolves_at")), 0.0)
        duration = finite(legacy.get("duration"), 0.0)
        missions.append(
            {
                "entry_id": 0,
                "kind": QueueKind.MISSION.value,
                "definition_id": legacy.get("type") or legacy["definition_id"],
                "enqueued_at": end - duration,
                "resolves_at": end,
                "duration": duration,
                "payload": {"reward": dict(legacy.get("reward") or {})},
            }
        )
        queues["mission"] = missions
        out["queues"] = queues
        logger.info("Migrated legacy single expedition into the mission queue")

    # v1 stored the forged qi bonus as a scalar
    forging = out.pop("forging_buff_mult", None)
    if forging is not None:
        modifiers = dict(out.get("modifiers") or {})
        crafted = dict(modifiers.get("crafted_mults") or {})
        crafted.setdefault("qi", finite(forging))
        modifiers["crafted_mults"] = crafted
        out["modifiers"] = modifiers
        logger.info("Migrated legacy forging multiplier into crafted_mults")

    return out
