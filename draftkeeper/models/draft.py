"""
Draft domain models.

These mirror the authoritative backend rows. Instances are immutable;
state changes produce new instances via `dataclasses.replace`.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from draftkeeper.config import DEFAULT_MAX_ITEMS_PER_TEAM, TEMP_ID_PREFIX


class DraftStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class DraftKind(str, Enum):
    SEQUENTIAL = "sequential"  # snake order
    SIMULTANEOUS_BID = "simultaneous_bid"  # auction


class AuctionStatus(str, Enum):
    ACTIVE = "active"
    ENDED = "ended"
    CANCELLED = "cancelled"


# Allowed lifecycle transitions: pending -> active -> paused <-> active -> completed
DRAFT_TRANSITIONS: dict[DraftStatus, frozenset[DraftStatus]] = {
    DraftStatus.PENDING: frozenset({DraftStatus.ACTIVE}),
    DraftStatus.ACTIVE: frozenset({DraftStatus.PAUSED, DraftStatus.COMPLETED}),
    DraftStatus.PAUSED: frozenset({DraftStatus.ACTIVE, DraftStatus.COMPLETED}),
    DraftStatus.COMPLETED: frozenset(),
}


def can_transition(current: DraftStatus, target: DraftStatus) -> bool:
    """True if the lifecycle allows moving from current to target."""
    return target in DRAFT_TRANSITIONS[current]


def is_temp_id(entity_id: str) -> bool:
    """True for ids minted locally for optimistic projections."""
    return entity_id.startswith(TEMP_ID_PREFIX)


@dataclass(frozen=True, slots=True)
class Draft:
    """
    Root aggregate of a draft.

    Attributes:
        id: Draft id
        name: Display name
        format_id: Id of the Format governing legality and cost
        kind: Sequential (snake) or simultaneous-bid (auction)
        status: Lifecycle status
        team_ids: Team ids in draft order
        current_turn: 1-based turn index, None before the draft starts
        current_round: 1-based round
        budget_per_team: Starting budget of every team
        rounds: Number of rounds (sequential drafts)
        max_items_per_team: Roster cap (simultaneous-bid drafts)
        max_teams: Seats available
        host_id: Participant id of the host
    """

    id: str
    name: str
    format_id: str
    kind: DraftKind = DraftKind.SEQUENTIAL
    status: DraftStatus = DraftStatus.PENDING
    team_ids: tuple[str, ...] = ()
    current_turn: int | None = None
    current_round: int = 1
    budget_per_team: int = 100
    rounds: int = 6
    max_items_per_team: int = DEFAULT_MAX_ITEMS_PER_TEAM
    max_teams: int = 8
    host_id: str | None = None

    @property
    def roster_cap(self) -> int:
        """Most items a single team may hold."""
        if self.kind == DraftKind.SEQUENTIAL:
            return self.rounds
        return self.max_items_per_team


@dataclass(frozen=True, slots=True)
class Team:
    """
    A team competing in a draft.

    Attributes:
        id: Team id
        draft_id: Owning draft
        name: Display name
        owner_id: Participant that controls the team
        draft_order: 1-based position in the snake order
        budget_remaining: Budget left after confirmed picks (never negative)
        initial_budget: Budget the team started with
        pick_ids: Confirmed pick ids in pick order
    """

    id: str
    draft_id: str
    name: str
    owner_id: str | None = None
    draft_order: int = 1
    budget_remaining: int = 100
    initial_budget: int = 100
    pick_ids: tuple[str, ...] = ()

    @property
    def budget_spent(self) -> int:
        return self.initial_budget - self.budget_remaining


@dataclass(frozen=True, slots=True)
class Pick:
    """
    An acquisition of an item by a team.

    Immutable once confirmed. A pending pick carries a temporary id.
    """

    id: str
    draft_id: str
    team_id: str
    item_id: str
    item_name: str
    cost: int
    pick_order: int
    round: int
    created_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return is_temp_id(self.id)

    @property
    def business_key(self) -> tuple[str, str]:
        """Identity shared by a pending pick and its confirmed counterpart."""
        return (self.item_id, self.team_id)


@dataclass(frozen=True, slots=True)
class Auction:
    """A time-boxed simultaneous-bid contest for one item."""

    id: str
    draft_id: str
    item_id: str
    item_name: str
    nominated_by: str
    current_bid: int
    current_bidder: str | None = None
    auction_end: datetime | None = None
    status: AuctionStatus = AuctionStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == AuctionStatus.ACTIVE


@dataclass(frozen=True, slots=True)
class BidHistoryEntry:
    """Append-only record of one bid."""

    id: str
    auction_id: str
    team_id: str
    amount: int
    team_name: str = ""
    timestamp: datetime | None = None

    @property
    def business_key(self) -> tuple[str, str, int]:
        return (self.auction_id, self.team_id, self.amount)


@dataclass(frozen=True, slots=True)
class Participant:
    """A user seated in a draft."""

    id: str
    draft_id: str
    display_name: str
    team_id: str | None = None
    is_host: bool = False


@dataclass(frozen=True, slots=True)
class RosterSummary:
    """Spending summary for one team."""

    team_id: str
    total_spent: int
    budget_remaining: int
    item_count: int
    average_cost: int = field(default=0)


def summarize_team(team: Team, picks: list[Pick]) -> RosterSummary:
    """Total spent, item count and average cost of a team's picks."""
    own = [p for p in picks if p.team_id == team.id]
    total = sum(p.cost for p in own)
    return RosterSummary(
        team_id=team.id,
        total_spent=total,
        budget_remaining=team.budget_remaining,
        item_count=len(own),
        average_cost=round(total / len(own)) if own else 0,
    )
