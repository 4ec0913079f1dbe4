"""
Pending actions — local intents awaiting authoritative confirmation.

Each intent kind has its own payload type; `ActionPayload` is the tagged
union over them. A PendingAction is owned by the optimistic engine and is
never persisted server-side.

Lifecycle:
    pending -> confirmed   (terminal, pruned after a short grace period)
    pending -> failed      (terminal after rollback, pruned after a longer one)
    failed  -> pending     (explicit retry, retry_count += 1)
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from draftkeeper.config import TEMP_ID_PREFIX


class ActionKind(str, Enum):
    PICK = "pick"
    BID = "bid"
    NOMINATE = "nominate"
    JOIN = "join"
    LEAVE = "leave"


class ActionStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class PickPayload:
    team_id: str
    item_id: str
    item_name: str
    cost: int
    round: int

    kind = ActionKind.PICK


@dataclass(frozen=True, slots=True)
class BidPayload:
    auction_id: str
    team_id: str
    team_name: str
    amount: int

    kind = ActionKind.BID


@dataclass(frozen=True, slots=True)
class NominatePayload:
    team_id: str
    item_id: str
    item_name: str
    starting_bid: int
    duration_seconds: int

    kind = ActionKind.NOMINATE


@dataclass(frozen=True, slots=True)
class JoinPayload:
    display_name: str
    participant_id: str | None = None

    kind = ActionKind.JOIN


@dataclass(frozen=True, slots=True)
class LeavePayload:
    participant_id: str

    kind = ActionKind.LEAVE


ActionPayload = PickPayload | BidPayload | NominatePayload | JoinPayload | LeavePayload


@dataclass(frozen=True, slots=True)
class PendingAction:
    """
    A tracked optimistic intent.

    Attributes:
        id: Local action id (never seen by the server)
        payload: Kind-specific intent data
        status: Lifecycle status
        retry_count: Number of explicit retries so far
        created_at: When the intent was first applied
        resolved_at: When the action last became confirmed or failed
        error: Failure reason shown to the user
        matched: True once the authoritative entity has been observed
    """

    id: str
    payload: ActionPayload
    status: ActionStatus = ActionStatus.PENDING
    retry_count: int = 0
    created_at: datetime | None = None
    resolved_at: datetime | None = None
    error: str | None = None
    matched: bool = False

    @property
    def kind(self) -> ActionKind:
        return self.payload.kind

    @property
    def temp_id(self) -> str:
        """Id of the temporary entity this action projects."""
        return f"{TEMP_ID_PREFIX}{self.id}"

    @property
    def is_projected(self) -> bool:
        """True while the action's projection is part of the local view."""
        return self.status != ActionStatus.FAILED and not self.matched
