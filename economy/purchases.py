"""Player actions that spend resources.

Every function checks all of its preconditions before touching the ledger,
so a rejected action changes nothing. Callers recompute ``FinalRates`` after
a successful result.
"""

from __future__ import annotations

import logging
import math
import random
from typing import TYPE_CHECKING

from .content import Catalog
from .costs import RESEARCH_FLOOR, SKILL_FLOOR, UPGRADE_FLOOR, discount_factor, geometric_cost
from .ledger import ResourceLedger
from .models import Channel
from .modifiers import Buff, FinalRates, HelperUnit, ModifierState, buff_factors
from .outcomes import ActionResult, Category, Reason

if TYPE_CHECKING:
    from progression.tiers import ProgressionState

logger = logging.getLogger(__name__)

POINTS = "advancement_points"

# category -> (discount channel, floor); categories without an entry pay list price
_DISCOUNTS = {
    "upgrades": (Channel.UPGRADE_DISCOUNT, UPGRADE_FLOOR),
    "research": (Channel.RESEARCH_DISCOUNT, RESEARCH_FLOOR),
    "skills": (Channel.SKILL_DISCOUNT, SKILL_FLOOR),
}


def modifier_cost(
    category: str,
    def_id: str,
    modifiers: ModifierState,
    rates: FinalRates,
    catalog: Catalog,
    amount: int = 1,
) -> float:
    """Price of the next ``amount`` levels of a definition, after discounts."""
    definition = catalog.modifier_defs(category)[def_id]
    level = modifiers.level(category, def_id)
    cost = geometric_cost(definition.base_cost, definition.cost_mult, level, amount)
    if category in _DISCOUNTS:
        channel, floor = _DISCOUNTS[category]
        cost *= discount_factor(rates.total(channel), floor)
    if definition.currency == POINTS:
        return float(math.ceil(cost))
    return cost


def buy_modifier(
    category: str,
    def_id: str,
    modifiers: ModifierState,
    progression: ProgressionState,
    ledger: ResourceLedger,
    rates: FinalRates,
    catalog: Catalog,
    amount: int = 1,
) -> ActionResult:
    definition = catalog.modifier_defs(category).get(def_id)
    if definition is None:
        return ActionResult.reject(Reason.UNKNOWN_ID, f"Unknown {category} id: {def_id}")
    if definition.unlock_stage > progression.major:
        return ActionResult.reject(Reason.LOCKED, f"{definition.name} is locked")

    owned = modifiers.levels(category)
    level = owned.get(def_id, 0)
    amount = max(1, amount)
    if definition.max_level is not None:
        remaining = definition.max_level - level
        if remaining <= 0:
            return ActionResult.reject(Reason.MAX_LEVEL, f"{definition.name} is at max level")
        amount = min(amount, remaining)

    if definition.prereq is not None:
        prereq_id, prereq_level = definition.prereq
        if owned.get(prereq_id, 0) < prereq_level:
            return ActionResult.reject(
                Reason.PREREQUISITE,
                f"{definition.name} requires {prereq_id} level {prereq_level}",
            )

    cost = modifier_cost(category, def_id, modifiers, rates, catalog, amount)
    if definition.currency == POINTS:
        if progression.advancement_points < cost:
            return ActionResult.reject(Reason.INSUFFICIENT_FUNDS, "Not enough ascension points", cost=cost)
        progression.advancement_points -= int(cost)
    elif not ledger.spend({definition.currency: cost}):
        return ActionResult.reject(Reason.INSUFFICIENT_FUNDS, f"Not enough {definition.currency}", cost=cost)

    owned[def_id] = level + amount
    logger.debug("Bought %s/%s x%d -> level %d (cost %.2f)", category, def_id, amount, owned[def_id], cost)
    return ActionResult.success(
        f"{definition.name} reached level {owned[def_id]}.",
        Category.PURCHASE,
        kind=category,
        id=def_id,
        level=owned[def_id],
        cost=cost,
    )


def buy_upgrade(def_id, modifiers, progression, ledger, rates, catalog, amount: int = 1) -> ActionResult:
    return buy_modifier("upgrades", def_id, modifiers, progression, ledger, rates, catalog, amount)


def buy_research(def_id, modifiers, progression, ledger, rates, catalog) -> ActionResult:
    return buy_modifier("research", def_id, modifiers, progression, ledger, rates, catalog)


def buy_skill(def_id, modifiers, progression, ledger, rates, catalog) -> ActionResult:
    return buy_modifier("skills", def_id, modifiers, progression, ledger, rates, catalog)


def buy_structure(def_id, modifiers, progression, ledger, rates, catalog) -> ActionResult:
    return buy_modifier("structures", def_id, modifiers, progression, ledger, rates, catalog)


def buy_perk(def_id, modifiers, progression, ledger, rates, catalog) -> ActionResult:
    return buy_modifier("perks", def_id, modifiers, progression, ledger, rates, catalog)


# ── Disciples ───────────────────────────────────────────────────


def recruit_helper(
    modifiers: ModifierState,
    ledger: ResourceLedger,
    catalog: Catalog,
    rng: random.Random,
) -> ActionResult:
    """Recruit a disciple with a random name, class and trait."""
    if not catalog.helper_classes:
        return ActionResult.reject(Reason.UNKNOWN_ID, "No disciple classes defined")
    cost = catalog.helpers.recruit_cost
    if not ledger.spend({"spirit_stones": cost}):
        return ActionResult.reject(Reason.INSUFFICIENT_FUNDS, "Not enough spirit stones", cost=cost)

    class_id = rng.choice(sorted(catalog.helper_classes))
    traits = [rng.choice(sorted(catalog.traits))] if catalog.traits else []
    unit = HelperUnit(
        name=rng.choice(catalog.helpers.names),
        class_id=class_id,
        traits=traits,
        training_cost=catalog.helpers.training_cost,
    )
    modifiers.helpers.append(unit)
    cls_name = catalog.helper_classes[class_id].name
    logger.info("Recruited %s (%s, traits=%s)", unit.name, class_id, traits)
    return ActionResult.success(
        f"{unit.name} the {cls_name} joins your sect.",
        index=len(modifiers.helpers) - 1,
        name=unit.name,
        class_id=class_id,
        traits=traits,
    )


def train_helper(modifiers: ModifierState, ledger: ResourceLedger, index: int) -> ActionResult:
    if not 0 <= index < len(modifiers.helpers):
        return ActionResult.reject(Reason.UNKNOWN_ID, f"No disciple at index {index}")
    unit = modifiers.helpers[index]
    cost = unit.training_cost
    if not ledger.spend({"spirit_stones": cost}):
        return ActionResult.reject(Reason.INSUFFICIENT_FUNDS, "Not enough spirit stones", cost=cost)
    unit.level += 1
    unit.training_cost = max(1, math.floor(cost * 2))
    return ActionResult.success(f"{unit.name} reached level {unit.level}.", index=index, level=unit.level, cost=cost)


# ── Story ───────────────────────────────────────────────────────


def chapter_flag(stage: int, choice_id: str) -> str:
    return f"chapter:{stage}:{choice_id}"


def choose_path(
    modifiers: ModifierState,
    progression: ProgressionState,
    ledger: ResourceLedger,
    catalog: Catalog,
    stage: int,
    index: int,
) -> ActionResult:
    """Pick one choice of a realm chapter. Each chapter can be decided once."""
    chapter = catalog.chapters.get(stage)
    if chapter is None:
        return ActionResult.reject(Reason.UNKNOWN_ID, f"No chapter for realm {stage}")
    if stage > progression.major:
        return ActionResult.reject(Reason.LOCKED, f"Chapter '{chapter.title}' is not yet unlocked")
    prefix = chapter_flag(stage, "")
    if any(flag.startswith(prefix) for flag in modifiers.narrative_flags):
        return ActionResult.reject(Reason.ALREADY_APPLIED, f"A path was already chosen in '{chapter.title}'")
    if not 0 <= index < len(chapter.choices):
        return ActionResult.reject(Reason.UNKNOWN_ID, f"Chapter '{chapter.title}' has no choice {index}")

    choice = chapter.choices[index]
    for res, amount in choice.grants.items():
        ledger.add(res, amount)
    modifiers.narrative_flags.add(chapter_flag(stage, choice.id))
    logger.info("Chapter %d: chose %s", stage, choice.id)
    return ActionResult.success(choice.description, Category.NARRATIVE, stage=stage, choice=choice.id)


# ── Consumables and tapping ─────────────────────────────────────


def use_elixir(
    modifiers: ModifierState,
    inventory: dict[str, int],
    rates: FinalRates,
    catalog: Catalog,
    elixir_id: str,
    now: float,
) -> ActionResult:
    elixir = catalog.elixirs.get(elixir_id)
    if elixir is None:
        return ActionResult.reject(Reason.UNKNOWN_ID, f"Unknown elixir: {elixir_id}")
    if inventory.get(elixir_id, 0) <= 0:
        return ActionResult.reject(Reason.EMPTY_INVENTORY, f"No {elixir.name} left")

    inventory[elixir_id] -= 1
    potency = 1 + rates.total(Channel.ELIXIR_POTENCY)
    buff = Buff(
        source=f"elixir:{elixir_id}",
        effects=tuple(e.scaled(potency) for e in elixir.effects),
        expires_at=now + elixir.duration,
    )
    modifiers.buffs.append(buff)
    return ActionResult.success(
        f"You drink the {elixir.name}.",
        id=elixir_id,
        expires_at=buff.expires_at,
        remaining=inventory[elixir_id],
    )


def tap(modifiers: ModifierState, ledger: ResourceLedger, rates: FinalRates, now: float) -> ActionResult:
    factors = buff_factors(modifiers.buffs, now)
    gained = rates.tap_value * factors.tap_mult + factors.tap_flat
    before = ledger.qi
    ledger.add("qi", gained)
    return ActionResult.success(gained=ledger.qi - before)
