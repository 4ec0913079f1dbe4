"""
Format catalog.

Built-in draft formats plus helpers for looking them up, loading custom
formats from JSON, and merging an external banlist into a format.

Formats are immutable. `merge_banlist` returns a new Format.
"""

import json
from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from draftkeeper.models.failure import UnknownFormatError
from draftkeeper.models.format import (
    CategoryPolicy,
    CostConfig,
    CostKind,
    Format,
    FormatCategory,
    FormatMeta,
    FormatRuleset,
)

# Paradox forms and box legendaries shared by several VGC ban lists
_PARADOX = (
    "great-tusk", "scream-tail", "brute-bonnet", "flutter-mane", "slither-wing",
    "sandy-shocks", "iron-treads", "iron-bundle", "iron-hands", "iron-jugulis",
    "iron-moth", "iron-thorns", "roaring-moon", "iron-valiant",
)  # fmt: skip
_PARADOX_DLC = ("walking-wake", "iron-leaves", "gouging-fire", "raging-bolt", "iron-boulder", "iron-crown")
_RUIN = ("wo-chien", "chien-pao", "ting-lu", "chi-yu")
_BOX_LEGENDARIES = ("koraidon", "miraidon")
_LOYAL_THREE = ("okidogi", "munkidori", "fezandipiti")

_VGC_BST_TIERS = {600: 30, 550: 25, 500: 20, 450: 15, 400: 10, 350: 8, 300: 5, 0: 3}

_SMOGON_TIER_COSTS = {
    "OU": 25,
    "UUBL": 30,
    "UU": 20,
    "RUBL": 22,
    "RU": 15,
    "NUBL": 17,
    "NU": 12,
    "PUBL": 14,
    "PU": 8,
    "ZU": 5,
    "Untiered": 3,
}


BUILTIN_FORMATS: tuple[Format, ...] = (
    Format(
        id="vgc-reg-a",
        name="VGC 2023 Regulation A",
        short_name="Reg A",
        description="Paldea Pokédex only. No Paradox, Treasures of Ruin, or Legendaries.",
        generation=9,
        game_type="doubles",
        category=FormatCategory.VGC,
        ruleset=FormatRuleset(
            species_clause=True,
            banned_items=_PARADOX + _RUIN + _BOX_LEGENDARIES + ("gimmighoul-roaming",),
            allowed_generations=(9,),
            legendary_policy=CategoryPolicy.BANNED,
            mythical_policy=CategoryPolicy.BANNED,
            paradox_policy=CategoryPolicy.BANNED,
        ),
        cost_config=CostConfig(
            kind=CostKind.BST, bst_tiers=_VGC_BST_TIERS, min_cost=3, max_cost=30
        ),
        meta=FormatMeta(
            is_official=True,
            last_updated="2023-01-02",
            season="2023 Regulation A",
            source="The Pokémon Company International",
            popularity=3,
            complexity=2,
        ),
    ),
    Format(
        id="vgc-reg-h",
        name="VGC 2024 Regulation H",
        short_name="Reg H",
        description="No Legendary, Mythical, or Paradox Pokémon.",
        generation=9,
        game_type="doubles",
        category=FormatCategory.VGC,
        ruleset=FormatRuleset(
            species_clause=True,
            banned_items=(
                _PARADOX
                + _PARADOX_DLC
                + _BOX_LEGENDARIES
                + _RUIN
                + _LOYAL_THREE
                + ("ogerpon", "terapagos", "pecharunt")
            ),
            legendary_policy=CategoryPolicy.BANNED,
            mythical_policy=CategoryPolicy.BANNED,
            paradox_policy=CategoryPolicy.BANNED,
        ),
        cost_config=CostConfig(
            kind=CostKind.BST, bst_tiers=_VGC_BST_TIERS, min_cost=3, max_cost=30
        ),
        meta=FormatMeta(
            is_official=True,
            last_updated="2024-01-01",
            season="2024 Regulation H",
            source="The Pokémon Company International",
            popularity=5,
            complexity=3,
        ),
    ),
    Format(
        id="vgc-reg-g",
        name="VGC 2024 Regulation G",
        short_name="Reg G",
        description="One restricted legendary allowed per team.",
        generation=9,
        game_type="doubles",
        category=FormatCategory.VGC,
        ruleset=FormatRuleset(
            species_clause=True,
            allowed_generations=(9,),
            legendary_policy=CategoryPolicy.RESTRICTED,
            mythical_policy=CategoryPolicy.BANNED,
            paradox_policy=CategoryPolicy.ALLOWED,
            restricted_count=1,
        ),
        cost_config=CostConfig(
            kind=CostKind.HYBRID,
            bst_tiers={600: 35, 550: 30, 500: 25, 450: 20, 400: 15, 350: 10, 300: 7, 0: 4},
            cost_multiplier=1.2,
            min_cost=4,
            max_cost=60,
        ),
        meta=FormatMeta(
            is_official=True,
            last_updated="2024-06-01",
            source="The Pokémon Company International",
            popularity=4,
            complexity=4,
        ),
    ),
    Format(
        id="gen9-ou",
        name="Gen 9 OverUsed",
        short_name="Gen 9 OU",
        description="Current generation Smogon OU tier.",
        generation=9,
        game_type="singles",
        category=FormatCategory.SMOGON,
        ruleset=FormatRuleset(
            species_clause=True,
            banned_tiers=("Uber", "AG"),
            allowed_generations=(1, 2, 3, 4, 5, 6, 7, 8, 9),
            legendary_policy=CategoryPolicy.RESTRICTED,
            mythical_policy=CategoryPolicy.RESTRICTED,
            paradox_policy=CategoryPolicy.RESTRICTED,
        ),
        cost_config=CostConfig(
            kind=CostKind.TIER, tier_costs=_SMOGON_TIER_COSTS, min_cost=3, max_cost=35
        ),
        meta=FormatMeta(
            last_updated="2024-09-15",
            source="Smogon University",
            popularity=5,
            complexity=4,
        ),
    ),
    Format(
        id="gen6-ou",
        name="Gen 6 OverUsed",
        short_name="Gen 6 OU",
        description="ORAS era OU.",
        generation=6,
        game_type="singles",
        category=FormatCategory.SMOGON,
        ruleset=FormatRuleset(
            species_clause=True,
            banned_tiers=("Uber", "AG"),
            allowed_generations=(1, 2, 3, 4, 5, 6),
            legendary_policy=CategoryPolicy.RESTRICTED,
            mythical_policy=CategoryPolicy.RESTRICTED,
            paradox_policy=CategoryPolicy.BANNED,
        ),
        cost_config=CostConfig(
            kind=CostKind.TIER,
            tier_costs={
                "OU": 22,
                "UUBL": 25,
                "UU": 18,
                "RUBL": 20,
                "RU": 14,
                "NUBL": 16,
                "NU": 10,
                "PUBL": 12,
                "PU": 7,
                "Untiered": 3,
            },
            cost_overrides={"talonflame": 28, "aegislash": 30, "greninja": 25},
            min_cost=3,
            max_cost=30,
        ),
        meta=FormatMeta(
            last_updated="2024-01-01",
            source="Smogon University",
            popularity=4,
            complexity=4,
        ),
    ),
    Format(
        id="budget-balanced",
        name="Budget Balanced",
        short_name="Budget",
        description="Strategy over power, with lower costs to encourage variety.",
        generation=9,
        game_type="doubles",
        category=FormatCategory.CUSTOM,
        ruleset=FormatRuleset(
            species_clause=True,
            banned_tiers=("Uber", "AG"),
            allowed_generations=(1, 2, 3, 4, 5, 6, 7, 8, 9),
            legendary_policy=CategoryPolicy.BANNED,
            mythical_policy=CategoryPolicy.BANNED,
            paradox_policy=CategoryPolicy.BANNED,
        ),
        cost_config=CostConfig(
            kind=CostKind.BST,
            bst_tiers={580: 25, 530: 20, 480: 15, 430: 12, 380: 10, 330: 8, 280: 6, 0: 4},
            cost_multiplier=0.7,
            min_cost=4,
            max_cost=25,
        ),
        meta=FormatMeta(
            last_updated="2024-09-29",
            source="Community Draft Format",
            popularity=4,
            complexity=2,
        ),
    ),
    Format(
        id="unrestricted",
        name="Unrestricted",
        short_name="Open",
        description="Everything goes, priced by power.",
        generation=9,
        game_type="singles",
        category=FormatCategory.CUSTOM,
        ruleset=FormatRuleset(species_clause=True),
        cost_config=CostConfig(
            kind=CostKind.BST,
            bst_tiers={
                700: 50, 650: 40, 600: 35, 550: 30, 500: 25,
                450: 20, 400: 15, 350: 10, 300: 7, 0: 5,
            },  # fmt: skip
            cost_overrides={"arceus": 80, "mewtwo": 70, "rayquaza": 75, "kyogre": 65, "groudon": 65},
            cost_multiplier=1.5,
            min_cost=5,
            max_cost=80,
        ),
        meta=FormatMeta(
            last_updated="2024-09-29",
            source="Community Draft Format",
            popularity=2,
            complexity=5,
        ),
    ),
)

DEFAULT_FORMAT_ID = "vgc-reg-h"

_FORMATS_BY_ID: dict[str, Format] = {fmt.id: fmt for fmt in BUILTIN_FORMATS}


def register_format(fmt: Format) -> None:
    """Make a custom format resolvable by id (replaces an existing one)."""
    _FORMATS_BY_ID[fmt.id] = fmt


def get_format_by_id(format_id: str) -> Format:
    """
    Resolve a format id.

    Raises:
        UnknownFormatError: If no format has this id
    """
    fmt = _FORMATS_BY_ID.get(format_id)
    if fmt is None:
        raise UnknownFormatError(format_id)
    return fmt


def list_formats() -> list[Format]:
    return list(_FORMATS_BY_ID.values())


def get_formats_by_category(category: FormatCategory) -> list[Format]:
    return [f for f in _FORMATS_BY_ID.values() if f.category == category]


def get_formats_by_generation(generation: int) -> list[Format]:
    return [f for f in _FORMATS_BY_ID.values() if f.generation == generation]


def get_official_formats() -> list[Format]:
    return [f for f in _FORMATS_BY_ID.values() if f.meta.is_official]


def get_popular_formats(min_popularity: int = 4) -> list[Format]:
    """Formats at or above a popularity rating, most popular first."""
    popular = [f for f in _FORMATS_BY_ID.values() if f.meta.popularity >= min_popularity]
    return sorted(popular, key=lambda f: f.meta.popularity, reverse=True)


def merge_banlist(fmt: Format, banlist: list[str], source: str) -> Format:
    """
    Return a copy of `fmt` whose ban list also contains `banlist`.

    Existing entries keep their order; new entries are appended once.
    """
    merged = list(fmt.ruleset.banned_items)
    known = {entry.lower() for entry in merged}
    for entry in banlist:
        if entry.lower() not in known:
            merged.append(entry)
            known.add(entry.lower())

    return replace(
        fmt,
        ruleset=replace(fmt.ruleset, banned_items=tuple(merged)),
        meta=replace(
            fmt.meta,
            last_updated=datetime.now(UTC).date().isoformat(),
            source=f"{fmt.meta.source} + {source}" if fmt.meta.source else source,
        ),
    )


# =============================================================================
# JSON LOADING
# =============================================================================


def format_from_dict(data: dict[str, Any]) -> Format:
    """
    Build a Format from its JSON representation.

    Raises:
        ValueError: If required keys are missing or values are invalid
    """
    try:
        ruleset_data = data.get("ruleset", {})
        cost_data = data.get("cost_config", {})
        meta_data = data.get("meta", {})

        ruleset = FormatRuleset(
            species_clause=bool(ruleset_data.get("species_clause", True)),
            banned_items=tuple(ruleset_data.get("banned_items", ())),
            allowed_items=tuple(ruleset_data.get("allowed_items", ())),
            allowed_generations=tuple(int(g) for g in ruleset_data.get("allowed_generations", ())),
            legendary_policy=CategoryPolicy(ruleset_data.get("legendary_policy", "allowed")),
            mythical_policy=CategoryPolicy(ruleset_data.get("mythical_policy", "allowed")),
            paradox_policy=CategoryPolicy(ruleset_data.get("paradox_policy", "allowed")),
            banned_tiers=tuple(ruleset_data.get("banned_tiers", ())),
            restricted_count=ruleset_data.get("restricted_count"),
        )
        cost_config = CostConfig(
            kind=CostKind(cost_data.get("kind", "bst")),
            # JSON object keys are strings
            bst_tiers={int(k): int(v) for k, v in cost_data.get("bst_tiers", {}).items()},
            tier_costs={str(k): int(v) for k, v in cost_data.get("tier_costs", {}).items()},
            cost_overrides={
                str(k).lower(): int(v) for k, v in cost_data.get("cost_overrides", {}).items()
            },
            cost_multiplier=float(cost_data.get("cost_multiplier", 1.0)),
            min_cost=int(cost_data.get("min_cost", 1)),
            max_cost=int(cost_data.get("max_cost", 100)),
        )
        return Format(
            id=data["id"],
            name=data.get("name", data["id"]),
            short_name=data.get("short_name", ""),
            description=data.get("description", ""),
            generation=int(data.get("generation", 9)),
            game_type=data.get("game_type", "doubles"),
            category=FormatCategory(data.get("category", "custom")),
            ruleset=ruleset,
            cost_config=cost_config,
            meta=FormatMeta(**meta_data),
        )
    except (KeyError, TypeError) as e:
        raise ValueError(f"Invalid format definition: {e}") from e


def load_formats_from_file(path: Path) -> list[Format]:
    """
    Load custom formats from a JSON file (a list of format objects).

    Loaded formats are registered and become resolvable by id.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file content is not a valid format list
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, list):
        raise ValueError(f"Expected a list of formats in {path}")

    formats = [format_from_dict(entry) for entry in data]
    for fmt in formats:
        register_format(fmt)
    return formats
