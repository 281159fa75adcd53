"""The fixed-cadence tick: resolve queues, produce, clamp, track tasks."""

from __future__ import annotations

import logging
import random

from economy.content import Catalog
from economy.ledger import RESOURCES
from economy.modifiers import FinalRates, buff_factors
from economy.outcomes import Category, Notification
from progression.quests import TaskBoard, refresh_board

from .config import GameSettings
from .queues import resolve_due, restart_auto_missions
from .state import GameState

logger = logging.getLogger(__name__)


def apply_production(state: GameState, rates: FinalRates, interval: float, now: float) -> dict[str, float]:
    """Add ``interval`` seconds of production, with active buffs, and return the gains."""
    if interval <= 0:
        return {res: 0.0 for res in RESOURCES}
    factors = buff_factors(state.modifiers.buffs, now)
    gains = {}
    for res in RESOURCES:
        before = state.ledger.get(res)
        state.ledger.add(res, rates.rate(res) * factors.mult(res) * interval)
        gains[res] = state.ledger.get(res) - before
    return gains


def maybe_random_event(
    state: GameState,
    catalog: Catalog,
    now: float,
    rng: random.Random,
    settings: GameSettings,
) -> list[Notification]:
    """Roll for a wandering event at most once per ``random_event_interval``."""
    if not settings.random_events or not catalog.random_events:
        return []
    if now - state.last_event_at < settings.random_event_interval:
        return []
    state.last_event_at = now
    if rng.random() >= settings.random_event_chance:
        return []

    event = rng.choices(catalog.random_events, weights=[e.weight for e in catalog.random_events])[0]
    for res, amount in event.grants.items():
        state.ledger.add(res, amount)
    logger.info("Wandering event: %s", event.grants)
    return [Notification(event.message or "Fortune smiles upon your sect.", Category.EVENT)]


def update_task_boards(state: GameState, catalog: Catalog, now: float) -> list[Notification]:
    """Reset expired boards and record progress on every quest and bounty."""
    notes = []
    for board_id, board_def in catalog.task_boards.items():
        board = state.task_boards.setdefault(board_id, TaskBoard())
        notes.extend(refresh_board(board, board_def, state.ledger, state.modifiers, state.progression, now))
    return notes


def run_tick(
    state: GameState,
    catalog: Catalog,
    now: float,
    rng: random.Random,
    settings: GameSettings,
) -> list[Notification]:
    """One tick. Queues resolve before production is applied for the elapsed interval."""
    notes = resolve_due(state, catalog, now, rng)
    if notes:
        state.refresh(catalog)
    notes.extend(restart_auto_missions(state, catalog, now))

    rates = state.current_rates(catalog)
    interval = max(0.0, now - state.last_tick)
    apply_production(state, rates, interval, now)
    state.ledger.clamp()
    state.last_tick = now

    notes.extend(update_task_boards(state, catalog, now))
    notes.extend(maybe_random_event(state, catalog, now, rng, settings))
    logger.debug("Tick at %.1f: qi=%.2f/%.0f", now, state.ledger.qi, state.ledger.capacity)
    return notes
