"""
Replication models — what flows from the authoritative backend to clients.

A ChangeEvent is one row of the backend's append-only change feed. A
ServerSnapshot is a pulled set of authoritative collections; every
collection it carries replaces the local one, collections left as None are
kept. DraftView is the read-only state a client renders.

Payloads are JSON-safe dicts produced by `to_payload()`; a team payload
also embeds the team's confirmed picks under "picks".
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

from pydantic import TypeAdapter

from draftkeeper.models.actions import PendingAction
from draftkeeper.models.draft import Auction, BidHistoryEntry, Draft, Participant, Pick, Team


class EntityKind(str, Enum):
    DRAFT = "draft"
    TEAM = "team"
    PICK = "pick"
    PARTICIPANT = "participant"
    AUCTION = "auction"
    BID = "bid"


class ChangeType(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """
    One authoritative change, in server-commit order.

    Attributes:
        entity_kind: Which collection changed
        change_type: Insert, update or delete
        payload: JSON-safe entity state (for deletes, at least the id)
        draft_id: Topic the event was published on
        sequence: Position in the change feed, if it came from one
    """

    entity_kind: EntityKind
    change_type: ChangeType
    payload: dict[str, Any]
    draft_id: str | None = None
    sequence: int | None = None


@dataclass(frozen=True, slots=True)
class ServerSnapshot:
    """Authoritative collections pulled from the backend."""

    draft: Draft | None = None
    teams: tuple[Team, ...] | None = None
    picks: tuple[Pick, ...] | None = None
    auctions: tuple[Auction, ...] | None = None
    bid_history: tuple[BidHistoryEntry, ...] | None = None
    participants: tuple[Participant, ...] | None = None


@dataclass(frozen=True, slots=True)
class DraftView:
    """
    Read-only state for rendering: authoritative entities plus projections.

    `revision` increases on every local change and is excluded from
    equality, so two views with the same content compare equal.
    """

    draft: Draft
    teams: tuple[Team, ...] = ()
    picks: tuple[Pick, ...] = ()
    auctions: tuple[Auction, ...] = ()
    bid_history: tuple[BidHistoryEntry, ...] = ()
    participants: tuple[Participant, ...] = ()
    pending_actions: tuple[PendingAction, ...] = ()
    revision: int = field(default=0, compare=False)

    def team(self, team_id: str) -> Team | None:
        return next((t for t in self.teams if t.id == team_id), None)

    def auction(self, auction_id: str) -> Auction | None:
        return next((a for a in self.auctions if a.id == auction_id), None)

    @property
    def active_auction(self) -> Auction | None:
        return next((a for a in self.auctions if a.is_active), None)


# =============================================================================
# PAYLOAD CONVERSION
# =============================================================================

E = TypeVar("E")

_ADAPTERS: dict[type, TypeAdapter[Any]] = {
    entity_type: TypeAdapter(entity_type)
    for entity_type in (Draft, Team, Pick, Auction, BidHistoryEntry, Participant)
}

ENTITY_TYPES: dict[EntityKind, type] = {
    EntityKind.DRAFT: Draft,
    EntityKind.TEAM: Team,
    EntityKind.PICK: Pick,
    EntityKind.PARTICIPANT: Participant,
    EntityKind.AUCTION: Auction,
    EntityKind.BID: BidHistoryEntry,
}


def to_payload(entity: Any) -> dict[str, Any]:
    """JSON-safe dict of a domain entity."""
    payload: dict[str, Any] = _ADAPTERS[type(entity)].dump_python(entity, mode="json")
    return payload


def from_payload(entity_type: type[E], payload: dict[str, Any]) -> E:
    """Rebuild a domain entity from a payload. Unknown keys are ignored."""
    entity: E = _ADAPTERS[entity_type].validate_python(payload)
    return entity


def team_payload(team: Team, picks: Sequence[Pick]) -> dict[str, Any]:
    """Team payload with its confirmed picks embedded."""
    payload = to_payload(team)
    payload["picks"] = [to_payload(p) for p in picks]
    return payload


def picks_from_team_payload(payload: dict[str, Any]) -> list[Pick]:
    return [from_payload(Pick, p) for p in payload.get("picks", [])]


def event_from_payload(data: dict[str, Any]) -> ChangeEvent:
    """Parse a change-feed entry as served by the backend API."""
    return ChangeEvent(
        entity_kind=EntityKind(data["entity_kind"]),
        change_type=ChangeType(data["change_type"]),
        payload=data["payload"],
        draft_id=data.get("draft_id"),
        sequence=data.get("sequence"),
    )
