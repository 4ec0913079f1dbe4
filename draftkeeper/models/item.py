from dataclasses import dataclass
from enum import Enum


class SpecialCategory(str, Enum):
    """Categories a format may ban or restrict as a whole."""

    LEGENDARY = "legendary"
    MYTHICAL = "mythical"
    PARADOX = "paradox"


@dataclass(frozen=True, slots=True)
class DraftItem:
    """
    A selectable item in the shared pool.

    Attributes:
        id: Stable lower-case identifier (e.g., "great-tusk")
        name: Display name
        generation: Generation the item was introduced in, if known
        stat_total: Numeric strength attribute used for tiered costing
        tier: Competitive tier name (e.g., "OU") used for category costing
        is_legendary: Member of the legendary category
        is_mythical: Member of the mythical category
        is_paradox: Member of the paradox category
    """

    id: str
    name: str
    generation: int | None = None
    stat_total: int = 0
    tier: str | None = None
    is_legendary: bool = False
    is_mythical: bool = False
    is_paradox: bool = False

    @property
    def categories(self) -> frozenset[SpecialCategory]:
        """Special categories this item belongs to."""
        flags = {
            SpecialCategory.LEGENDARY: self.is_legendary,
            SpecialCategory.MYTHICAL: self.is_mythical,
            SpecialCategory.PARADOX: self.is_paradox,
        }
        return frozenset(category for category, flag in flags.items() if flag)
