"""Offline catch-up, applied once when a session resumes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from economy.content import Catalog
from economy.ledger import RESOURCES
from economy.models import Channel, Effect, EffectKind
from economy.modifiers import Buff
from economy.outcomes import Category, Notification

from .config import GameSettings
from .state import GameState

logger = logging.getLogger(__name__)

AFTERGLOW_SOURCE = "afterglow"


@dataclass
class OfflineReport:
    elapsed: float
    simulated: float
    gains: dict[str, float] = field(default_factory=dict)
    notifications: list[Notification] = field(default_factory=list)


def offline_cap_seconds(state: GameState, catalog: Catalog, settings: GameSettings) -> float:
    rates = state.current_rates(catalog)
    return (settings.base_offline_hours + rates.total(Channel.OFFLINE_HOURS)) * 3600


def catch_up(state: GameState, catalog: Catalog, now: float, settings: GameSettings) -> OfflineReport:
    """Credit production for the time since ``last_tick``, up to the offline cap.

    Uses the same ``FinalRates`` the live tick uses, so an idle hour offline
    and an idle hour online yield the same base amounts.
    """
    rates = state.current_rates(catalog)
    elapsed = max(0.0, now - state.last_tick)
    simulated = min(elapsed, offline_cap_seconds(state, catalog, settings))
    bonus = 1 + rates.total(Channel.OFFLINE_BONUS)

    gains = {}
    for res in RESOURCES:
        before = state.ledger.get(res)
        state.ledger.add(res, rates.rate(res) * simulated * bonus)
        gains[res] = state.ledger.get(res) - before
    state.last_tick = now

    report = OfflineReport(elapsed=elapsed, simulated=simulated, gains=gains)
    if simulated > 1:
        state.modifiers.buffs.append(
            Buff(
                source=AFTERGLOW_SOURCE,
                effects=(Effect(EffectKind.PERCENT_MULT, Channel.QI_MULT, settings.afterglow_bonus),),
                expires_at=now + settings.afterglow_seconds,
            )
        )
        parts = ", ".join(f"{amount:,.0f} {res}" for res, amount in gains.items() if amount > 0)
        report.notifications.append(
            Notification(
                f"While you were away ({simulated / 3600:.1f}h) you gathered {parts or 'nothing'}.",
                Category.OFFLINE,
            )
        )
        logger.info("Offline catch-up: elapsed=%.0fs simulated=%.0fs gains=%s", elapsed, simulated, gains)
    return report
