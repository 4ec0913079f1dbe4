"""
DraftKeeper services.

Draft order, budget planning, and the optimistic update engine with the
session controller that drives it.
"""

from draftkeeper.services.budget_validator import (
    AddCheck,
    BudgetThresholds,
    BudgetValidation,
    WantListItem,
    can_add_item,
    partition_affordable,
    validate_budget,
)
from draftkeeper.services.draft_order import (
    current_team_id,
    generate_snake_order,
    is_draft_complete,
    round_info,
)
from draftkeeper.services.optimistic import OptimisticUpdateEngine
from draftkeeper.services.selectors import SelectorCache
from draftkeeper.services.session import DraftSessionController

__all__ = [
    "AddCheck",
    "BudgetThresholds",
    "BudgetValidation",
    "DraftSessionController",
    "OptimisticUpdateEngine",
    "SelectorCache",
    "WantListItem",
    "can_add_item",
    "current_team_id",
    "generate_snake_order",
    "is_draft_complete",
    "partition_affordable",
    "round_info",
    "validate_budget",
]
