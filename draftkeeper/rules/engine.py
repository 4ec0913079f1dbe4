"""
Format Rules Engine — Legality and Cost of Draft Items.

Single source of truth for whether an item may be drafted under a format
and what it costs.

INVARIANTS:
- Illegal items are a normal result ({is_legal: False, reason}), never an
  exception. Only an unknown format id raises.
- A banned id or name is illegal regardless of any other attribute.
- Every computed cost (except explicit overrides) is clamped to
  [min_cost, max_cost].

Legality, first match wins:
1. Explicit ban list (id or name, case-insensitive)
2. Special-category policy (banned categories rejected)
3. Generation allow-list (rejected if the item's generation is absent)
4. Explicit allow-list (if non-empty, the item must appear in it)
5. Legal
"""

import math
from dataclasses import dataclass, field

from draftkeeper.models.format import CostConfig, CostKind, Format
from draftkeeper.models.item import DraftItem
from draftkeeper.rules.formats import get_format_by_id


@dataclass(frozen=True, slots=True)
class ItemValidation:
    """Result of validating a single item."""

    is_legal: bool
    cost: int
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class RosterValidation:
    """
    Result of validating a whole roster.

    All violations are collected so a caller can show every one at once.
    """

    is_valid: bool
    errors: tuple[str, ...] = field(default_factory=tuple)
    total_cost: int = 0
    budget_remaining: int = 0


def _matches(item: DraftItem, entries: tuple[str, ...]) -> bool:
    item_id = item.id.lower()
    item_name = item.name.lower()
    return any(entry.lower() in (item_id, item_name) for entry in entries)


def illegality_reason(fmt: Format, item: DraftItem) -> str | None:
    """Why `item` is illegal under `fmt`, or None if it is legal."""
    ruleset = fmt.ruleset

    if _matches(item, ruleset.banned_items):
        return f"{item.name} is banned in {fmt.name}"

    banned = item.categories & ruleset.banned_categories
    if banned:
        category = min(banned, key=lambda c: c.value)
        return f"{category.value.capitalize()} items are not allowed in {fmt.name}"

    if (
        ruleset.allowed_generations
        and item.generation is not None
        and item.generation not in ruleset.allowed_generations
    ):
        return f"{item.name} (generation {item.generation}) is not allowed in {fmt.name}"

    if ruleset.allowed_items and not _matches(item, ruleset.allowed_items):
        return f"{item.name} is not on the {fmt.name} allow list"

    return None


def is_legal(fmt: Format, item: DraftItem) -> bool:
    """Check if an item is legal in a format."""
    return illegality_reason(fmt, item) is None


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _scale_and_clamp(base_cost: int, config: CostConfig) -> int:
    scaled = _round_half_up(base_cost * config.cost_multiplier)
    return min(max(scaled, config.min_cost), config.max_cost)


def get_cost(fmt: Format, item: DraftItem) -> int:
    """
    Cost of an item under a format.

    1. Explicit override (by id, then name) short-circuits, unscaled.
    2. Attribute tiers: first descending threshold <= stat_total wins.
    3. Category tier table (competitive tier name).
    4. min_cost.
    Steps 2 and 3 are scaled by the multiplier and clamped.
    """
    config = fmt.cost_config

    for key in (item.id.lower(), item.name.lower()):
        if key in config.cost_overrides:
            return config.cost_overrides[key]

    if config.kind != CostKind.TIER and config.bst_tiers:
        for threshold in sorted(config.bst_tiers, reverse=True):
            if item.stat_total >= threshold:
                return _scale_and_clamp(config.bst_tiers[threshold], config)

    if config.kind != CostKind.BST and item.tier and item.tier in config.tier_costs:
        return _scale_and_clamp(config.tier_costs[item.tier], config)

    return config.min_cost


def validate_item(fmt: Format, item: DraftItem) -> ItemValidation:
    """Legality and cost of an item. Illegal items cost 0."""
    reason = illegality_reason(fmt, item)
    if reason is not None:
        return ItemValidation(is_legal=False, cost=0, reason=reason)
    return ItemValidation(is_legal=True, cost=get_cost(fmt, item))


def validate_roster(fmt: Format, items: list[DraftItem], budget: int) -> RosterValidation:
    """
    Validate a whole roster against a format and a budget.

    Collects, without short-circuiting:
    - duplicate items (when the species clause is enabled)
    - every illegal item's reason
    - total cost of legal items exceeding the budget
    """
    errors: list[str] = []
    total_cost = 0

    if fmt.ruleset.species_clause:
        seen: set[str] = set()
        duplicates: list[str] = []
        for item in items:
            key = item.id.lower()
            if key in seen and item.name not in duplicates:
                duplicates.append(item.name)
            seen.add(key)
        if duplicates:
            errors.append(f"Roster contains duplicate items (species clause): {', '.join(duplicates)}")

    for item in items:
        result = validate_item(fmt, item)
        if not result.is_legal:
            errors.append(result.reason or f"{item.name} is not legal")
        else:
            total_cost += result.cost

    if total_cost > budget:
        errors.append(f"Roster cost ({total_cost}) exceeds budget ({budget})")

    return RosterValidation(
        is_valid=not errors,
        errors=tuple(errors),
        total_cost=total_cost,
        budget_remaining=budget - total_cost,
    )


class FormatRulesEngine:
    """
    Rules engine bound to one format.

    Construct with a Format or a format id. An unknown id raises
    UnknownFormatError; this is the only failure the engine raises.
    """

    def __init__(self, fmt: Format | str):
        self.format = get_format_by_id(fmt) if isinstance(fmt, str) else fmt

    def is_legal(self, item: DraftItem) -> bool:
        return is_legal(self.format, item)

    def cost(self, item: DraftItem) -> int:
        return get_cost(self.format, item)

    def validate(self, item: DraftItem) -> ItemValidation:
        return validate_item(self.format, item)

    def validate_roster(self, items: list[DraftItem], budget: int) -> RosterValidation:
        return validate_roster(self.format, items, budget)

    @property
    def species_clause(self) -> bool:
        return self.format.ruleset.species_clause
