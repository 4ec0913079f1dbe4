"""
Budget Validator — Affordability of a Prioritized Want List.

Partitions a want list into affordable and unaffordable items and derives
warnings and remediation suggestions.

Affordability is a GREEDY PREFIX, not a knapsack optimization:
available items are visited in ascending priority; an item is affordable
iff the cumulative cost so far (inclusive) fits the remaining budget. The
first item that does not fit, and every later item, is unaffordable.

All thresholds come from BudgetThresholds, which defaults from settings.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from draftkeeper.config import settings


class WarningType(str, Enum):
    OVERAGE = "overage"
    TIGHT = "tight"
    INEFFICIENT = "inefficient"
    UNAVAILABLE = "unavailable"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SuggestionType(str, Enum):
    REMOVE = "remove"
    REORDER = "reorder"
    OPTIMIZE = "optimize"


@dataclass(frozen=True, slots=True)
class WantListItem:
    """
    One entry of a participant's prioritized want list.

    Attributes:
        id: Want-list entry id
        item_id: Item wanted
        item_name: Display name of the item
        cost: Cost of the item under the draft's format
        priority: Lower value means wanted sooner
        is_available: False once another team has drafted the item
    """

    id: str
    item_id: str
    item_name: str
    cost: int
    priority: int
    is_available: bool = True


@dataclass(frozen=True, slots=True)
class BudgetWarning:
    type: WarningType
    severity: Severity
    message: str
    item_id: str | None = None


@dataclass(frozen=True, slots=True)
class BudgetSuggestion:
    type: SuggestionType
    message: str
    item_ids: tuple[str, ...] = ()
    savings: int | None = None


@dataclass(frozen=True, slots=True)
class BudgetThresholds:
    """Tunable limits for warnings and suggestions."""

    tight_ratio: float = field(default_factory=lambda: settings.budget_tight_ratio)
    inefficient_pct: float = field(default_factory=lambda: settings.budget_inefficient_pct)
    slack_units: int = field(default_factory=lambda: settings.budget_slack_units)
    unavailable_ratio: float = field(default_factory=lambda: settings.budget_unavailable_ratio)
    optimize_pct: float = field(default_factory=lambda: settings.budget_optimize_pct)
    near_limit_ratio: float = field(default_factory=lambda: settings.budget_near_limit_ratio)
    max_remove_suggestions: int = 3


@dataclass(frozen=True)
class BudgetValidation:
    """Outcome of validating a want list against a budget."""

    is_valid: bool
    total_cost: int
    remaining_budget: int
    is_over_budget: bool
    overage_amount: int
    affordable_items: list[WantListItem]
    unaffordable_items: list[WantListItem]
    can_afford_next: bool
    budget_efficiency: float
    warnings: list[BudgetWarning]
    suggestions: list[BudgetSuggestion]


@dataclass(frozen=True, slots=True)
class AddCheck:
    can_add: bool
    reason: str | None = None


def partition_affordable(
    items: Sequence[WantListItem], remaining_budget: int
) -> tuple[list[WantListItem], list[WantListItem], int]:
    """
    Split available items into (affordable, unaffordable, cost of affordable).

    Greedy prefix in ascending priority; stable for equal priorities.
    """
    affordable: list[WantListItem] = []
    unaffordable: list[WantListItem] = []
    running_cost = 0

    for item in sorted(items, key=lambda i: i.priority):
        if not unaffordable and running_cost + item.cost <= remaining_budget:
            affordable.append(item)
            running_cost += item.cost
        else:
            unaffordable.append(item)

    return affordable, unaffordable, running_cost


def validate_budget(
    want_list: Sequence[WantListItem],
    current_budget: int,
    used_budget: int = 0,
    thresholds: BudgetThresholds | None = None,
) -> BudgetValidation:
    """
    Validate a want list against the budget left to spend.

    Args:
        want_list: Prioritized items, available or not
        current_budget: Budget the team currently has
        used_budget: Budget already committed elsewhere
        thresholds: Warning/suggestion limits (defaults from settings)
    """
    limits = thresholds or BudgetThresholds()

    available = [item for item in want_list if item.is_available]
    total_cost = sum(item.cost for item in want_list)
    remaining = current_budget - used_budget
    is_over_budget = total_cost > remaining
    overage = max(0, total_cost - remaining)

    affordable, unaffordable, running_cost = partition_affordable(available, remaining)

    efficiency = (running_cost / remaining) * 100 if remaining > 0 else 0.0
    slack = remaining - running_cost

    warnings: list[BudgetWarning] = []

    if is_over_budget:
        warnings.append(
            BudgetWarning(
                type=WarningType.OVERAGE,
                severity=Severity.HIGH,
                message=f"Want list exceeds budget by {overage} points",
            )
        )
    elif total_cost >= remaining * limits.tight_ratio and total_cost > 0:
        warnings.append(
            BudgetWarning(
                type=WarningType.TIGHT,
                severity=Severity.MEDIUM,
                message="Want list uses most of your remaining budget",
            )
        )

    if efficiency < limits.inefficient_pct and slack > limits.slack_units:
        warnings.append(
            BudgetWarning(
                type=WarningType.INEFFICIENT,
                severity=Severity.LOW,
                message="Consider adding more items to use your budget efficiently",
            )
        )

    claimed_expensive = [
        item
        for item in want_list
        if not item.is_available and item.cost > remaining * limits.unavailable_ratio
    ]
    if claimed_expensive:
        warnings.append(
            BudgetWarning(
                type=WarningType.UNAVAILABLE,
                severity=Severity.MEDIUM,
                message=(
                    f"{len(claimed_expensive)} expensive items in your want list "
                    "were already drafted"
                ),
                item_id=claimed_expensive[0].item_id,
            )
        )

    suggestions: list[BudgetSuggestion] = []

    if is_over_budget:
        expensive = sorted(unaffordable, key=lambda i: i.cost, reverse=True)[
            : limits.max_remove_suggestions
        ]
        if expensive:
            savings = min(sum(item.cost for item in expensive), overage)
            suggestions.append(
                BudgetSuggestion(
                    type=SuggestionType.REMOVE,
                    message=f"Remove {len(expensive)} expensive items to save {savings} points",
                    item_ids=tuple(item.id for item in expensive),
                    savings=savings,
                )
            )

    if unaffordable and affordable:
        suggestions.append(
            BudgetSuggestion(
                type=SuggestionType.REORDER,
                message=(
                    f"Reorder your want list to prioritize {len(affordable)} affordable items"
                ),
                item_ids=tuple(item.id for item in affordable),
            )
        )

    if efficiency < limits.optimize_pct and not is_over_budget:
        suggestions.append(
            BudgetSuggestion(
                type=SuggestionType.OPTIMIZE,
                message=(
                    f"You have {slack} points remaining. "
                    "Consider adding more items to your want list."
                ),
                savings=slack,
            )
        )

    return BudgetValidation(
        is_valid=not is_over_budget and bool(available),
        total_cost=total_cost,
        remaining_budget=remaining,
        is_over_budget=is_over_budget,
        overage_amount=overage,
        affordable_items=affordable,
        unaffordable_items=unaffordable,
        can_afford_next=bool(available) and bool(affordable),
        budget_efficiency=efficiency,
        warnings=warnings,
        suggestions=suggestions,
    )


def can_add_item(
    want_list: Sequence[WantListItem],
    item_cost: int,
    item_name: str,
    current_budget: int,
    used_budget: int = 0,
    thresholds: BudgetThresholds | None = None,
) -> AddCheck:
    """Whether appending an item keeps the want list within budget."""
    limits = thresholds or BudgetThresholds()
    remaining = current_budget - used_budget
    new_total = sum(item.cost for item in want_list) + item_cost

    if new_total > remaining:
        return AddCheck(
            can_add=False,
            reason=(
                f"Adding {item_name} ({item_cost} pts) would exceed your budget "
                f"by {new_total - remaining} points"
            ),
        )

    if new_total > remaining * limits.near_limit_ratio:
        return AddCheck(
            can_add=True,
            reason=f"Adding {item_name} will use most of your remaining budget",
        )

    return AddCheck(can_add=True)
