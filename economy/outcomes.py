"""Result and notification types shared by every mutating action."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Reason(str, Enum):
    """Reason codes attached to a rejected (or accepted) action."""

    OK = "ok"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    # InvalidState family
    DUPLICATE_MISSION = "duplicate_mission"
    PEAK_REACHED = "peak_reached"
    LOCKED = "locked"
    MAX_LEVEL = "max_level"
    PREREQUISITE = "prerequisite"
    ALREADY_APPLIED = "already_applied"
    NO_HELPERS = "no_helpers"
    UNKNOWN_ID = "unknown_id"
    EMPTY_INVENTORY = "empty_inventory"
    NOTHING_TO_CLAIM = "nothing_to_claim"
    MALFORMED_SNAPSHOT = "malformed_snapshot"


INVALID_STATE = frozenset(
    {
        Reason.DUPLICATE_MISSION,
        Reason.PEAK_REACHED,
        Reason.LOCKED,
        Reason.MAX_LEVEL,
        Reason.PREREQUISITE,
        Reason.ALREADY_APPLIED,
        Reason.NO_HELPERS,
        Reason.UNKNOWN_ID,
        Reason.EMPTY_INVENTORY,
        Reason.NOTHING_TO_CLAIM,
    }
)


class Category(str, Enum):
    PROGRESSION = "progression"
    UNLOCK = "unlock"
    QUEUE = "queue"
    MISSION = "mission"
    NARRATIVE = "narrative"
    OFFLINE = "offline"
    EVENT = "event"
    PURCHASE = "purchase"
    TASK = "task"


@dataclass
class Notification:
    """A discrete event for the presentation layer to show.

    ``data`` carries the facts of the action that emitted it (for a
    breakthrough: major, minor, cost and reward at that moment).
    """

    message: str
    category: Category = Category.PURCHASE
    data: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, str]:
        return {"message": self.message, "category": self.category.value}


@dataclass
class ActionResult:
    """Outcome of a state-mutating action. Never raised, always returned."""

    ok: bool
    reason: Reason = Reason.OK
    message: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    notifications: list[Notification] = field(default_factory=list)

    @property
    def invalid_state(self) -> bool:
        return self.reason in INVALID_STATE

    @classmethod
    def success(cls, message: str = "", category: Category = Category.PURCHASE, **data: Any) -> ActionResult:
        notes = [Notification(message, category, dict(data))] if message else []
        return cls(ok=True, message=message, data=data, notifications=notes)

    @classmethod
    def reject(cls, reason: Reason, message: str = "", **data: Any) -> ActionResult:
        return cls(ok=False, reason=reason, message=message or reason.value, data=data)
