"""
Request and response models shared by the draft API routers.

Response field names match the domain dataclasses, so the RPC client can
rebuild domain objects from response bodies with `from_payload()`.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from draftkeeper.config import (
    DEFAULT_MAX_ITEMS_PER_TEAM,
    MAX_AUCTION_SECONDS,
    MAX_ROUNDS,
    MAX_TEAMS,
    MIN_AUCTION_SECONDS,
    settings,
)
from draftkeeper.models.draft import (
    AuctionStatus,
    DraftKind,
    DraftStatus,
    Pick,
    Team,
)
from draftkeeper.models.sync import ChangeType, EntityKind

# --- Responses ---


class DraftResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    format_id: str
    kind: DraftKind
    status: DraftStatus
    team_ids: list[str]
    current_turn: int | None
    current_round: int
    budget_per_team: int
    rounds: int
    max_items_per_team: int
    max_teams: int
    host_id: str | None


class PickResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    draft_id: str
    team_id: str
    item_id: str
    item_name: str
    cost: int
    pick_order: int
    round: int
    created_at: datetime | None = None


class TeamResponse(BaseModel):
    """A team with its confirmed picks embedded."""

    id: str
    draft_id: str
    name: str
    owner_id: str | None
    draft_order: int
    budget_remaining: int
    initial_budget: int
    pick_ids: list[str]
    picks: list[PickResponse] = Field(default_factory=list)

    @classmethod
    def build(cls, team: Team, picks: list[Pick]) -> "TeamResponse":
        own = [p for p in picks if p.team_id == team.id]
        return cls(
            id=team.id,
            draft_id=team.draft_id,
            name=team.name,
            owner_id=team.owner_id,
            draft_order=team.draft_order,
            budget_remaining=team.budget_remaining,
            initial_budget=team.initial_budget,
            pick_ids=list(team.pick_ids),
            picks=[PickResponse.model_validate(p) for p in own],
        )


class ParticipantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    draft_id: str
    display_name: str
    team_id: str | None
    is_host: bool


class AuctionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    draft_id: str
    item_id: str
    item_name: str
    nominated_by: str
    current_bid: int
    current_bidder: str | None
    auction_end: datetime | None = None
    status: AuctionStatus


class BidResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    auction_id: str
    team_id: str
    amount: int
    team_name: str
    timestamp: datetime | None = None


class ChangeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sequence: int | None
    draft_id: str | None
    entity_kind: EntityKind
    change_type: ChangeType
    payload: dict[str, Any]


class ChangeListResponse(BaseModel):
    changes: list[ChangeResponse]
    last_sequence: int


class CreateDraftResponse(BaseModel):
    draft: DraftResponse
    participant: ParticipantResponse
    team: TeamResponse


class JoinResponse(BaseModel):
    participant: ParticipantResponse
    team: TeamResponse


class CloseAuctionResponse(BaseModel):
    auction: AuctionResponse
    pick: PickResponse | None = None


# --- Requests ---


class CreateDraftRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    host_name: str = Field(min_length=1, max_length=64)
    format_id: str = Field(default_factory=lambda: settings.default_format_id)
    kind: DraftKind = DraftKind.SEQUENTIAL
    budget_per_team: int = Field(default=100, ge=1, le=10_000)
    rounds: int = Field(default=6, ge=1, le=MAX_ROUNDS)
    max_items_per_team: int = Field(default=DEFAULT_MAX_ITEMS_PER_TEAM, ge=1, le=MAX_ROUNDS)
    max_teams: int = Field(default=8, ge=1, le=MAX_TEAMS)
    team_name: str | None = Field(default=None, max_length=255)


class JoinRequest(BaseModel):
    display_name: str = Field(min_length=1, max_length=64)
    participant_id: str | None = None
    team_name: str | None = Field(default=None, max_length=255)


class PickRequest(BaseModel):
    team_id: str
    item_id: str
    item_name: str
    cost: int = Field(ge=0)


class NominateRequest(BaseModel):
    team_id: str
    item_id: str
    item_name: str
    starting_bid: int = Field(default=1, ge=1)
    duration_seconds: int = Field(default=30, ge=MIN_AUCTION_SECONDS, le=MAX_AUCTION_SECONDS)


class BidRequest(BaseModel):
    team_id: str
    amount: int = Field(ge=1)
