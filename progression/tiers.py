"""Realm and layer progression.

A cultivator sits at ``(major, minor)``: realm index and layer 0..8. Each
layer breakthrough costs qi; clearing layer 8 ascends to the next realm and
additionally consumes secondary resources (waived in the first realm). The
final layer of the final realm is terminal.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any

from economy.content import Catalog
from economy.costs import MAX_MINOR, advancement_reward, tier_cost
from economy.ledger import ResourceLedger
from economy.models import Channel, finite
from economy.modifiers import FinalRates
from economy.outcomes import ActionResult, Category, Notification, Reason

logger = logging.getLogger(__name__)

LAYER_MULT_STEP = 1.02
REALM_MULT_STEP = 1.10


@dataclass
class ProgressionState:
    major: int = 0
    minor: int = 0
    layer_mult: float = 1.0
    advancements: int = 0
    advancement_points: int = 0

    def is_terminal(self, max_major: int) -> bool:
        return self.major >= max_major and self.minor >= MAX_MINOR

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ProgressionState:
        if not isinstance(data, Mapping):
            raise TypeError(f"progression must be a mapping, got {type(data).__name__}")
        return cls(
            major=max(0, int(finite(data.get("major") or 0))),
            minor=min(MAX_MINOR, max(0, int(finite(data.get("minor") or 0)))),
            layer_mult=finite(data.get("layer_mult") or 1.0),
            advancements=int(finite(data.get("advancements") or 0)),
            advancement_points=int(finite(data.get("advancement_points") or 0)),
        )


def secondary_costs(major: int) -> dict[str, float]:
    """Extra resources consumed when ascending out of realm ``major``."""
    if major <= 0:
        return {}
    scale = 2**major
    return {
        "herbs": 100.0 * scale,
        "spirit_stones": 100.0 * scale,
        "beasts": 50.0 * scale,
        "jade": 1.0 * scale,
    }


def next_cost(state: ProgressionState, rates: FinalRates) -> float:
    return tier_cost(state.major, state.minor, rates.total(Channel.PROGRESSION_DISCOUNT))


def feature_unlocks(catalog: Catalog, major: int) -> list[Notification]:
    return [
        Notification(f.message or f"{f.id} unlocked", Category.UNLOCK)
        for f in catalog.feature_unlocks
        if f.stage == major
    ]


def attempt_advance(
    state: ProgressionState,
    ledger: ResourceLedger,
    rates: FinalRates,
    catalog: Catalog,
) -> ActionResult:
    """Try one breakthrough (layer) or ascension (realm).

    Every precondition is checked before anything is deducted, so a rejected
    attempt leaves ``state`` and ``ledger`` untouched.
    """
    if state.is_terminal(catalog.max_major):
        return ActionResult.reject(Reason.PEAK_REACHED, "You stand at the peak of cultivation.")

    cost = next_cost(state, rates)
    if ledger.qi < cost:
        return ActionResult.reject(Reason.INSUFFICIENT_FUNDS, "Not enough qi", required={"qi": cost})

    if state.minor < MAX_MINOR:
        ledger.spend({"qi": cost})
        state.minor += 1
        state.layer_mult *= LAYER_MULT_STEP
        state.advancements += 1
        logger.info("Breakthrough: %s layer %d (cost %.0f)", catalog.realm_name(state.major), state.minor + 1, cost)
        return ActionResult.success(
            f"Breakthrough! {catalog.realm_name(state.major)}, layer {state.minor + 1}.",
            Category.PROGRESSION,
            major=state.major,
            minor=state.minor,
            cost=cost,
        )

    required = {"qi": cost, **secondary_costs(state.major)}
    if not ledger.can_afford(required):
        return ActionResult.reject(
            Reason.INSUFFICIENT_FUNDS,
            "Insufficient resources to ascend",
            required=required,
        )
    ledger.spend(required)

    reward = advancement_reward(cost)
    reward = math.floor(reward * rates.total(Channel.REWARD_BONUS))
    reward = math.floor(reward * rates.total(Channel.REWARD_MULT))
    points = max(1, reward // 10)

    ledger.add("spirit_stones", reward)
    ledger.qi = 0.0
    state.advancement_points += points
    state.major += 1
    state.minor = 0
    state.layer_mult *= REALM_MULT_STEP
    state.advancements += 1

    realm = catalog.realm_name(state.major)
    logger.info("Ascended to %s: reward=%d stones, +%d points", realm, reward, points)
    result = ActionResult.success(
        f"Ascended to {realm}! Reward: {reward} spirit stones.",
        Category.PROGRESSION,
        major=state.major,
        minor=state.minor,
        cost=cost,
        reward=reward,
        points=points,
    )
    result.notifications.extend(feature_unlocks(catalog, state.major))
    return result


def progression_snapshot(
    state: ProgressionState,
    rates: FinalRates,
    catalog: Catalog,
) -> dict[str, Any]:
    terminal = state.is_terminal(catalog.max_major)
    return {
        "realm": catalog.realm_name(state.major),
        "major": state.major,
        "minor": state.minor,
        "layer": state.minor + 1,
        "next_cost": None if terminal else next_cost(state, rates),
        "secondary_costs": secondary_costs(state.major) if state.minor >= MAX_MINOR and not terminal else {},
        "terminal": terminal,
        "layer_mult": state.layer_mult,
        "advancements": state.advancements,
        "advancement_points": state.advancement_points,
    }
