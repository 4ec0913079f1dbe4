from draftkeeper.rules.engine import (
    FormatRulesEngine,
    ItemValidation,
    RosterValidation,
    get_cost,
    is_legal,
    validate_item,
    validate_roster,
)
from draftkeeper.rules.formats import (
    BUILTIN_FORMATS,
    DEFAULT_FORMAT_ID,
    get_format_by_id,
    load_formats_from_file,
    merge_banlist,
)

__all__ = [
    "BUILTIN_FORMATS",
    "DEFAULT_FORMAT_ID",
    "FormatRulesEngine",
    "ItemValidation",
    "RosterValidation",
    "get_cost",
    "get_format_by_id",
    "is_legal",
    "load_formats_from_file",
    "merge_banlist",
    "validate_item",
    "validate_roster",
]
