"""Pricing formulas shared by purchases, progression and the capacity rule."""

from __future__ import annotations

import math

TIER_BASE_COST = 100.0
MAX_MINOR = 8

# Lowest fraction of the list price each discount family may reach.
PROGRESSION_FLOOR = 0.2
UPGRADE_FLOOR = 0.3
RESEARCH_FLOOR = 0.1
SKILL_FLOOR = 0.2


def discount_factor(discount: float, floor: float) -> float:
    """Multiplier for an accumulated discount sum, never below ``floor``."""
    return max(floor, 1.0 - discount)


def tier_cost(major: int, minor: int, discount: float = 0.0) -> float:
    """Qi needed to leave layer ``minor`` of realm ``major``.

    ``100 × 2^minor × 10^major``, reduced by the progression discount but
    never below 20% of the list price.
    """
    return TIER_BASE_COST * (2**minor) * (10**major) * discount_factor(discount, PROGRESSION_FLOOR)


def unmodified_tier_cost(major: int, minor: int) -> float:
    return tier_cost(major, minor, 0.0)


def capacity_ceiling(max_major: int) -> float:
    """Hard cap for the dantian: twice the list price of the final layer."""
    return 2.0 * unmodified_tier_cost(max_major, MAX_MINOR)


def advancement_reward(cost: float) -> int:
    """Base spirit-stone reward for a realm advancement (floors to 0 at low costs)."""
    return math.floor(cost**0.65 / 1000)


def geometric_cost(base: float, ratio: float, level: int, amount: int = 1) -> float:
    """Total price of ``amount`` consecutive levels starting at ``level``.

    ``base × r^L × (r^n - 1) / (r - 1)``; a ratio of 1 is a flat price.
    """
    if amount <= 0:
        return 0.0
    if ratio == 1:
        return base * amount
    return base * ratio**level * (ratio**amount - 1) / (ratio - 1)
