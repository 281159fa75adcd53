"""Session controller: the single owner and writer of a GameState.

Every mutating call takes the session lock, applies the action, recomputes
FinalRates when something changed and collects notifications for the
presentation layer to consume.
"""

from __future__ import annotations

import logging
import random
import threading
from typing import Any

from economy import purchases
from economy.content import Catalog
from economy.modifiers import FinalRates, buff_factors
from economy.outcomes import ActionResult, Notification, Reason
from progression.quests import TaskBoard, board_snapshot, claim_completed, refresh_board
from progression.tiers import attempt_advance, progression_snapshot

from . import queues
from .config import GameSettings
from .offline import OfflineReport, catch_up
from .queues import QueueKind
from .state import GameState, MalformedSnapshot
from .tick import run_tick

logger = logging.getLogger(__name__)


class GameSession:
    """One player's simulation."""

    def __init__(
        self,
        catalog: Catalog,
        settings: GameSettings | None = None,
        state: GameState | None = None,
        seed: int | None = None,
    ):
        self._catalog = catalog
        self._settings = settings or GameSettings()
        self._lock = threading.RLock()
        seed = seed if seed is not None else self._settings.seed
        self._rng = random.Random(seed)
        self._notifications: list[Notification] = []
        self._state = state or self._fresh_state()
        self._state.refresh(catalog)

    @property
    def state(self) -> GameState:
        return self._state

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    def _fresh_state(self) -> GameState:
        return GameState(craft_slots=self._settings.craft_slots)

    def _apply(self, result: ActionResult) -> ActionResult:
        if result.ok:
            self._state.refresh(self._catalog)
        self._notifications.extend(result.notifications)
        return result

    # ── Queries ─────────────────────────────────────────────────

    def get_final_rates(self) -> FinalRates:
        with self._lock:
            return self._state.current_rates(self._catalog)

    def get_effective_rates(self, now: float) -> dict[str, float]:
        """Per-second rates and tap value with active buffs applied."""
        with self._lock:
            rates = self._state.current_rates(self._catalog)
            factors = buff_factors(self._state.modifiers.buffs, now)
            out = {f"{res}_per_sec": rates.rate(res) * factors.mult(res) for res in factors.mults}
            out["tap_value"] = rates.tap_value * factors.tap_mult + factors.tap_flat
            out["capacity"] = rates.capacity
            return out

    def get_queue_snapshot(self, kind: QueueKind | str, now: float) -> list[dict[str, Any]]:
        with self._lock:
            return queues.queue_snapshot(self._state, kind, now)

    def get_progression_snapshot(self) -> dict[str, Any]:
        with self._lock:
            return progression_snapshot(
                self._state.progression,
                self._state.current_rates(self._catalog),
                self._catalog,
            )

    def get_resources(self) -> dict[str, float]:
        with self._lock:
            return self._state.ledger.as_dict()

    def consume_notifications(self) -> list[Notification]:
        with self._lock:
            notes, self._notifications = self._notifications, []
            return notes

    # ── Purchases ───────────────────────────────────────────────

    def _buy(self, category: str, def_id: str, amount: int = 1) -> ActionResult:
        with self._lock:
            s = self._state
            return self._apply(
                purchases.buy_modifier(
                    category,
                    def_id,
                    s.modifiers,
                    s.progression,
                    s.ledger,
                    s.current_rates(self._catalog),
                    self._catalog,
                    amount,
                )
            )

    def buy_upgrade(self, upgrade_id: str, amount: int = 1) -> ActionResult:
        return self._buy("upgrades", upgrade_id, amount)

    def buy_research(self, research_id: str) -> ActionResult:
        return self._buy("research", research_id)

    def buy_skill(self, skill_id: str) -> ActionResult:
        return self._buy("skills", skill_id)

    def buy_structure(self, structure_id: str) -> ActionResult:
        return self._buy("structures", structure_id)

    def buy_perk(self, perk_id: str) -> ActionResult:
        return self._buy("perks", perk_id)

    def recruit_helper(self) -> ActionResult:
        with self._lock:
            s = self._state
            return self._apply(purchases.recruit_helper(s.modifiers, s.ledger, self._catalog, self._rng))

    def train_helper(self, index: int) -> ActionResult:
        with self._lock:
            s = self._state
            return self._apply(purchases.train_helper(s.modifiers, s.ledger, index))

    def choose_path(self, stage: int, index: int) -> ActionResult:
        with self._lock:
            s = self._state
            return self._apply(purchases.choose_path(s.modifiers, s.progression, s.ledger, self._catalog, stage, index))

    def use_elixir(self, elixir_id: str, now: float) -> ActionResult:
        with self._lock:
            s = self._state
            return self._apply(
                purchases.use_elixir(
                    s.modifiers,
                    s.elixir_inventory,
                    s.current_rates(self._catalog),
                    self._catalog,
                    elixir_id,
                    now,
                )
            )

    def tap(self, now: float) -> ActionResult:
        with self._lock:
            s = self._state
            return purchases.tap(s.modifiers, s.ledger, s.current_rates(self._catalog), now)

    def advance(self) -> ActionResult:
        """Attempt a breakthrough or ascension."""
        with self._lock:
            s = self._state
            return self._apply(attempt_advance(s.progression, s.ledger, s.current_rates(self._catalog), self._catalog))

    # ── Queues ──────────────────────────────────────────────────

    def enqueue_craft(self, artifact_id: str, now: float) -> ActionResult:
        with self._lock:
            return self._apply(queues.enqueue_craft(self._state, self._catalog, artifact_id, now))

    def enqueue_brew(self, elixir_id: str, now: float) -> ActionResult:
        with self._lock:
            return self._apply(queues.enqueue_brew(self._state, self._catalog, elixir_id, now))

    def start_mission(self, mission_id: str, now: float) -> ActionResult:
        with self._lock:
            return self._apply(queues.start_mission(self._state, self._catalog, mission_id, now))

    def set_auto_send(self, mission_id: str, enabled: bool = True) -> ActionResult:
        with self._lock:
            if mission_id not in self._catalog.missions:
                return ActionResult.reject(Reason.UNKNOWN_ID, f"Unknown expedition: {mission_id}")
            if enabled:
                self._state.auto_send.add(mission_id)
            else:
                self._state.auto_send.discard(mission_id)
            return ActionResult.success(mission_id=mission_id, enabled=enabled)

    # ── Quests and bounties ─────────────────────────────────────

    def _board(self, board_id: str, now: float) -> TaskBoard:
        s = self._state
        board = s.task_boards.setdefault(board_id, TaskBoard())
        board_def = self._catalog.task_boards[board_id]
        self._notifications.extend(refresh_board(board, board_def, s.ledger, s.modifiers, s.progression, now))
        return board

    def get_task_board(self, board_id: str, now: float) -> dict[str, Any]:
        with self._lock:
            if board_id not in self._catalog.task_boards:
                raise KeyError(board_id)
            board = self._state.task_boards.get(board_id) or TaskBoard()
            return board_snapshot(board, self._catalog.task_boards[board_id], now)

    def claim_tasks(self, board_id: str, now: float) -> ActionResult:
        """Claim every completed task on a board (``quest`` or ``bounty``)."""
        with self._lock:
            if board_id not in self._catalog.task_boards:
                return ActionResult.reject(Reason.UNKNOWN_ID, f"Unknown task board: {board_id}")
            board = self._board(board_id, now)
            return self._apply(claim_completed(board, self._catalog.task_boards[board_id], self._state.ledger))

    # ── Time ────────────────────────────────────────────────────

    def tick(self, now: float) -> list[Notification]:
        with self._lock:
            notes = run_tick(self._state, self._catalog, now, self._rng, self._settings)
            self._notifications.extend(notes)
            return notes

    def advance_to(self, now: float) -> list[Notification]:
        """Run one-second ticks from ``last_tick`` up to ``now``.

        A state that has never ticked starts its clock at ``now``.
        """
        with self._lock:
            if self._state.last_tick <= 0:
                self._state.last_tick = now
            notes: list[Notification] = []
            step = self._settings.tick_seconds
            t = self._state.last_tick
            while t + step <= now:
                t += step
                notes.extend(self.tick(t))
            if t < now:
                notes.extend(self.tick(now))
            return notes

    def resume(self, now: float) -> OfflineReport:
        """Credit offline progress since the last observed tick."""
        with self._lock:
            if self._state.last_tick <= 0:
                self._state.last_tick = now
            report = catch_up(self._state, self._catalog, now, self._settings)
            self._state.refresh(self._catalog)
            self._notifications.extend(report.notifications)
            return report

    # ── Persistence ─────────────────────────────────────────────

    def serialize(self) -> dict[str, Any]:
        with self._lock:
            return self._state.to_snapshot()

    def restore(self, snapshot: Any) -> ActionResult:
        """Replace the state from a snapshot, or reset to a fresh state if it is malformed."""
        with self._lock:
            try:
                state = GameState.from_snapshot(snapshot, self._settings.craft_slots)
            except MalformedSnapshot as e:
                logger.warning("Malformed snapshot, starting fresh: %s", e)
                self._state = self._fresh_state()
                self._state.refresh(self._catalog)
                return ActionResult.reject(Reason.MALFORMED_SNAPSHOT, f"Save could not be read: {e}")
            self._state = state
            self._state.refresh(self._catalog)
            logger.debug("Restored snapshot (save_version=%s)", snapshot.get("save_version"))
            return ActionResult.success()

    def reset(self) -> None:
        with self._lock:
            self._state = self._fresh_state()
            self._state.refresh(self._catalog)
            self._notifications.clear()
            logger.info("Game reset")
