"""Cultivation progression: realms, layers, ascension rewards and task boards."""

from .quests import TaskBoard, claim_completed, refresh_board
from .tiers import (
    ProgressionState,
    attempt_advance,
    progression_snapshot,
    secondary_costs,
)

__all__ = [
    "ProgressionState",
    "TaskBoard",
    "attempt_advance",
    "claim_completed",
    "progression_snapshot",
    "refresh_board",
    "secondary_costs",
]
