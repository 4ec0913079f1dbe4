"""
Format definitions.

A Format is the immutable ruleset of a draft: which items are legal and
what each one costs. Formats are loaded once and never mutated; helpers
that "change" a format return a new instance.
"""

from dataclasses import dataclass, field
from enum import Enum

from draftkeeper.models.item import SpecialCategory


class CategoryPolicy(str, Enum):
    """How a format treats a special category."""

    BANNED = "banned"
    ALLOWED = "allowed"
    RESTRICTED = "restricted"


class CostKind(str, Enum):
    """Which cost model a format uses."""

    BST = "bst"  # attribute thresholds
    TIER = "tier"  # competitive tier table
    HYBRID = "hybrid"  # thresholds, then tier table


class FormatCategory(str, Enum):
    VGC = "vgc"
    SMOGON = "smogon"
    CUSTOM = "custom"


@dataclass(frozen=True, slots=True)
class FormatRuleset:
    """
    Legality rules of a format.

    Attributes:
        species_clause: Forbid the same item twice in a roster or draft
        banned_items: Ids or names banned outright (case-insensitive)
        allowed_items: If non-empty, only these ids or names are legal
        allowed_generations: Legal generations (empty means unrestricted)
        legendary_policy: Policy for legendary items
        mythical_policy: Policy for mythical items
        paradox_policy: Policy for paradox items
        banned_tiers: Competitive tiers banned in this format
        restricted_count: Max restricted items per roster (informational)
    """

    species_clause: bool = True
    banned_items: tuple[str, ...] = ()
    allowed_items: tuple[str, ...] = ()
    allowed_generations: tuple[int, ...] = ()
    legendary_policy: CategoryPolicy = CategoryPolicy.ALLOWED
    mythical_policy: CategoryPolicy = CategoryPolicy.ALLOWED
    paradox_policy: CategoryPolicy = CategoryPolicy.ALLOWED
    banned_tiers: tuple[str, ...] = ()
    restricted_count: int | None = None

    def policy_for(self, category: SpecialCategory) -> CategoryPolicy:
        """Policy that applies to a special category."""
        return {
            SpecialCategory.LEGENDARY: self.legendary_policy,
            SpecialCategory.MYTHICAL: self.mythical_policy,
            SpecialCategory.PARADOX: self.paradox_policy,
        }[category]

    @property
    def banned_categories(self) -> frozenset[SpecialCategory]:
        """Categories rejected outright."""
        return frozenset(
            category
            for category in SpecialCategory
            if self.policy_for(category) == CategoryPolicy.BANNED
        )


@dataclass(frozen=True, slots=True)
class CostConfig:
    """
    Cost model of a format.

    Attributes:
        kind: Which lookups apply (bst, tier or hybrid)
        bst_tiers: Attribute threshold -> base cost
        tier_costs: Competitive tier -> base cost
        cost_overrides: Item id or name -> exact cost (not scaled or clamped)
        cost_multiplier: Scale applied to tier base costs
        min_cost: Lower clamp and final fallback
        max_cost: Upper clamp
    """

    kind: CostKind = CostKind.BST
    bst_tiers: dict[int, int] = field(default_factory=dict)
    tier_costs: dict[str, int] = field(default_factory=dict)
    cost_overrides: dict[str, int] = field(default_factory=dict)
    cost_multiplier: float = 1.0
    min_cost: int = 1
    max_cost: int = 100

    def __hash__(self) -> int:
        return hash((self.kind, self.cost_multiplier, self.min_cost, self.max_cost))


@dataclass(frozen=True, slots=True)
class FormatMeta:
    is_official: bool = False
    last_updated: str = ""
    season: str | None = None
    source: str = ""
    popularity: int = 3
    complexity: int = 3


@dataclass(frozen=True, slots=True)
class Format:
    """
    A named draft ruleset.

    Attributes:
        id: Stable identifier (e.g., "vgc-reg-h")
        name: Display name
        short_name: Abbreviated name
        description: Human-readable summary
        generation: Generation the format is played in
        game_type: "singles" or "doubles"
        category: Where the format comes from
        ruleset: Legality rules
        cost_config: Cost model
        meta: Bookkeeping metadata
    """

    id: str
    name: str
    ruleset: FormatRuleset = field(default_factory=FormatRuleset)
    cost_config: CostConfig = field(default_factory=CostConfig)
    short_name: str = ""
    description: str = ""
    generation: int = 9
    game_type: str = "doubles"
    category: FormatCategory = FormatCategory.CUSTOM
    meta: FormatMeta = field(default_factory=FormatMeta)

    def __hash__(self) -> int:
        return hash(self.id)
