"""Quest and bounty boards.

A board holds one progress record per task. Progress is read from the
ledger, the owned upgrades and the advancement counter; a task that reaches
its amount stays completed until claimed. Claiming pays every completed task
on the board at once and moves each one up a tier (amount x2, reward x1.5).
Boards are wiped when their reset period has elapsed.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from typing import Any

from economy.ledger import ResourceLedger
from economy.models import TaskBoardDef, TaskDef, TaskMetric, finite
from economy.modifiers import ModifierState
from economy.outcomes import ActionResult, Category, Notification, Reason

from .tiers import ProgressionState

logger = logging.getLogger(__name__)

AMOUNT_GROWTH = 2.0
REWARD_GROWTH = 1.5


@dataclass
class TaskProgress:
    tier: int = 0
    baseline: float = 0.0
    progress: float = 0.0
    completed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TaskProgress:
        if not isinstance(data, Mapping):
            raise TypeError(f"task progress must be a mapping, got {type(data).__name__}")
        return cls(
            tier=max(0, int(finite(data.get("tier") or 0))),
            baseline=max(0.0, finite(data.get("baseline"), 0.0)),
            progress=max(0.0, finite(data.get("progress"), 0.0)),
            completed=bool(data.get("completed", False)),
        )


@dataclass
class TaskBoard:
    reset_at: float = 0.0
    claimed: int = 0
    tasks: dict[str, TaskProgress] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "reset_at": self.reset_at,
            "claimed": self.claimed,
            "tasks": {task_id: p.to_dict() for task_id, p in self.tasks.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TaskBoard:
        if not isinstance(data, Mapping):
            raise TypeError(f"task board must be a mapping, got {type(data).__name__}")
        tasks = data.get("tasks") or {}
        if not isinstance(tasks, Mapping):
            raise TypeError("task board tasks must be a mapping")
        return cls(
            reset_at=finite(data.get("reset_at"), 0.0),
            claimed=max(0, int(finite(data.get("claimed") or 0))),
            tasks={str(k): TaskProgress.from_dict(v) for k, v in tasks.items()},
        )


def task_amount(task: TaskDef, tier: int) -> float:
    return task.amount * AMOUNT_GROWTH**tier


def task_reward(task: TaskDef, tier: int) -> dict[str, float]:
    return {res: float(math.ceil(amount * REWARD_GROWTH**tier)) for res, amount in task.reward.items()}


def metric_value(
    metric: TaskMetric,
    ledger: ResourceLedger,
    modifiers: ModifierState,
    progression: ProgressionState,
) -> float:
    if metric is TaskMetric.QI:
        return ledger.qi
    if metric is TaskMetric.UPGRADE_LEVELS:
        return float(sum(modifiers.upgrades.values()))
    return float(progression.advancements)


def refresh_board(
    board: TaskBoard,
    board_def: TaskBoardDef,
    ledger: ResourceLedger,
    modifiers: ModifierState,
    progression: ProgressionState,
    now: float,
) -> list[Notification]:
    """Reset the board if its period is over, then update progress.

    Returns one notification per task that completed during this call.
    """
    if not board.tasks or now - board.reset_at >= board_def.reset_seconds:
        if board.tasks:
            logger.info("%s reset", board_def.name)
        board.tasks = {}
        board.reset_at = now

    notes = []
    for task in board_def.tasks:
        entry = board.tasks.get(task.id)
        if entry is None:
            baseline = progression.advancements if task.metric is TaskMetric.ADVANCEMENTS else 0.0
            entry = board.tasks[task.id] = TaskProgress(baseline=float(baseline))
        if entry.completed:
            continue

        amount = task_amount(task, entry.tier)
        value = metric_value(task.metric, ledger, modifiers, progression) - entry.baseline
        entry.progress = min(max(0.0, value), amount)
        if entry.progress >= amount:
            entry.completed = True
            notes.append(Notification(f"{board_def.name}: {task.name} complete.", Category.TASK))
    return notes


def claim_completed(board: TaskBoard, board_def: TaskBoardDef, ledger: ResourceLedger) -> ActionResult:
    """Pay out every completed task on the board and advance each one a tier."""
    ready = [task for task in board_def.tasks if task.id in board.tasks and board.tasks[task.id].completed]
    if not ready:
        return ActionResult.reject(Reason.NOTHING_TO_CLAIM, f"No completed {board_def.name.lower()} to claim.")

    totals: dict[str, float] = {}
    for task in ready:
        for res, amount in task_reward(task, board.tasks[task.id].tier).items():
            totals[res] = totals.get(res, 0.0) + amount

    for task in ready:
        entry = board.tasks[task.id]
        entry.tier += 1
        entry.progress = 0.0
        entry.completed = False
    for res, amount in totals.items():
        ledger.add(res, amount)
    board.claimed += len(ready)

    paid = ", ".join(f"{amount:,.0f} {res.replace('_', ' ')}" for res, amount in totals.items())
    logger.info("Claimed %d %s task(s): %s", len(ready), board_def.id, totals)
    return ActionResult.success(
        f"Claimed {paid} from {board_def.name.lower()}.",
        Category.TASK,
        claimed=[task.id for task in ready],
        rewards=totals,
    )


def board_snapshot(board: TaskBoard, board_def: TaskBoardDef, now: float) -> dict[str, Any]:
    tasks = []
    for task in board_def.tasks:
        entry = board.tasks.get(task.id) or TaskProgress()
        tasks.append(
            {
                "id": task.id,
                "name": task.name,
                "tier": entry.tier,
                "amount": task_amount(task, entry.tier),
                "progress": entry.progress,
                "completed": entry.completed,
                "reward": task_reward(task, entry.tier),
            }
        )
    return {
        "id": board_def.id,
        "name": board_def.name,
        "resets_in": max(0.0, board.reset_at + board_def.reset_seconds - now) if board.tasks else board_def.reset_seconds,
        "claimed": board.claimed,
        "tasks": tasks,
    }
