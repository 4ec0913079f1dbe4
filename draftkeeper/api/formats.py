"""
Format API endpoints.

Lists the format catalog and evaluates items against a format's rules.
"""

from typing import Annotated

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from draftkeeper.models.format import FormatCategory
from draftkeeper.models.item import DraftItem
from draftkeeper.rules import FormatRulesEngine
from draftkeeper.rules.formats import (
    get_format_by_id,
    get_formats_by_category,
    get_popular_formats,
    list_formats,
)

router = APIRouter(prefix="/formats", tags=["formats"])


class FormatSummary(BaseModel):
    id: str
    name: str
    short_name: str
    description: str
    generation: int
    game_type: str
    category: FormatCategory
    species_clause: bool
    banned_items: list[str]
    is_official: bool
    popularity: int


class ItemRequest(BaseModel):
    id: str
    name: str
    generation: int | None = None
    stat_total: int = Field(default=0, ge=0)
    tier: str | None = None
    is_legendary: bool = False
    is_mythical: bool = False
    is_paradox: bool = False


class ItemValidationResponse(BaseModel):
    item_id: str
    is_legal: bool
    cost: int
    reason: str | None = None


class RosterRequest(BaseModel):
    items: list[ItemRequest]
    budget: int = Field(ge=0)


class RosterValidationResponse(BaseModel):
    is_valid: bool
    errors: list[str]
    total_cost: int
    budget_remaining: int


def _summary(format_id: str) -> FormatSummary:
    fmt = get_format_by_id(format_id)
    return FormatSummary(
        id=fmt.id,
        name=fmt.name,
        short_name=fmt.short_name,
        description=fmt.description,
        generation=fmt.generation,
        game_type=fmt.game_type,
        category=fmt.category,
        species_clause=fmt.ruleset.species_clause,
        banned_items=list(fmt.ruleset.banned_items),
        is_official=fmt.meta.is_official,
        popularity=fmt.meta.popularity,
    )


@router.get("", response_model=list[FormatSummary])
async def formats(
    category: FormatCategory | None = None,
    popular: Annotated[bool, Query()] = False,
) -> list[FormatSummary]:
    """All registered formats, optionally filtered."""
    if popular:
        selected = get_popular_formats()
    elif category is not None:
        selected = get_formats_by_category(category)
    else:
        selected = list_formats()
    return [_summary(f.id) for f in selected]


@router.get("/{format_id}", response_model=FormatSummary)
async def format_detail(format_id: str) -> FormatSummary:
    """Returns 404 for an unknown format id."""
    return _summary(format_id)


@router.post("/{format_id}/validate", response_model=list[ItemValidationResponse])
async def validate_items(format_id: str, items: list[ItemRequest]) -> list[ItemValidationResponse]:
    """Legality and cost of each item. Illegal items cost 0."""
    engine = FormatRulesEngine(format_id)
    results = []
    for item in items:
        validation = engine.validate(DraftItem(**item.model_dump()))
        results.append(
            ItemValidationResponse(
                item_id=item.id,
                is_legal=validation.is_legal,
                cost=validation.cost,
                reason=validation.reason,
            )
        )
    return results


@router.post("/{format_id}/roster", response_model=RosterValidationResponse)
async def validate_roster(format_id: str, request: RosterRequest) -> RosterValidationResponse:
    """Every violation of a roster at once."""
    engine = FormatRulesEngine(format_id)
    result = engine.validate_roster([DraftItem(**i.model_dump()) for i in request.items], request.budget)
    return RosterValidationResponse(
        is_valid=result.is_valid,
        errors=list(result.errors),
        total_cost=result.total_cost,
        budget_remaining=result.budget_remaining,
    )
