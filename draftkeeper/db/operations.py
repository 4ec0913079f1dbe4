"""
Database operations for the authoritative draft store.

Every mutating operation validates the draft's invariants, applies its
changes and appends the matching change-feed rows in the caller's session.
The caller commits once, so "insert pick, decrement budget, advance turn"
and its feed rows land together or not at all. Rows of the draft being
mutated are locked with SELECT ... FOR UPDATE where the backend supports
it, which serializes competing picks and bids on the same draft.

Operations raise KnownError subclasses for rule violations; nothing is
written before a check fails.
"""

import logging
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from draftkeeper.config import MAX_AUCTION_SECONDS, MIN_AUCTION_SECONDS
from draftkeeper.models.db import (
    AuctionDB,
    BidHistoryDB,
    ChangeEventDB,
    DraftDB,
    ParticipantDB,
    PickDB,
    TeamDB,
)
from draftkeeper.models.draft import (
    Auction,
    AuctionStatus,
    BidHistoryEntry,
    Draft,
    DraftKind,
    DraftStatus,
    Participant,
    Pick,
    Team,
    can_transition,
)
from draftkeeper.models.failure import DraftStateError, FailureKind, KnownError
from draftkeeper.models.item import DraftItem
from draftkeeper.models.sync import ChangeEvent, ChangeType, EntityKind, team_payload, to_payload
from draftkeeper.rules.engine import illegality_reason
from draftkeeper.rules.formats import get_format_by_id
from draftkeeper.services.draft_order import (
    current_team_id,
    generate_snake_order,
    is_sequential_complete,
    is_simultaneous_complete,
    round_for_turn,
)

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> datetime:
    return datetime.now(UTC)


def _aware(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; every stored time is UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


# --- Converters ---


def draft_to_model(db_draft: DraftDB, team_ids: Sequence[str] = ()) -> Draft:
    """Convert database draft to domain model."""
    return Draft(
        id=db_draft.id,
        name=db_draft.name,
        format_id=db_draft.format_id,
        kind=DraftKind(db_draft.kind),
        status=DraftStatus(db_draft.status),
        team_ids=tuple(team_ids),
        current_turn=db_draft.current_turn,
        current_round=db_draft.current_round,
        budget_per_team=db_draft.budget_per_team,
        rounds=db_draft.rounds,
        max_items_per_team=db_draft.max_items_per_team,
        max_teams=db_draft.max_teams,
        host_id=db_draft.host_id,
    )


def team_to_model(db_team: TeamDB, pick_ids: Sequence[str] = ()) -> Team:
    """Convert database team to domain model."""
    return Team(
        id=db_team.id,
        draft_id=db_team.draft_id,
        name=db_team.name,
        owner_id=db_team.owner_id,
        draft_order=db_team.draft_order,
        budget_remaining=db_team.budget_remaining,
        initial_budget=db_team.initial_budget,
        pick_ids=tuple(pick_ids),
    )


def pick_to_model(db_pick: PickDB) -> Pick:
    return Pick(
        id=db_pick.id,
        draft_id=db_pick.draft_id,
        team_id=db_pick.team_id,
        item_id=db_pick.item_id,
        item_name=db_pick.item_name,
        cost=db_pick.cost,
        pick_order=db_pick.pick_order,
        round=db_pick.round,
        created_at=_aware(db_pick.created_at),
    )


def participant_to_model(db_participant: ParticipantDB) -> Participant:
    return Participant(
        id=db_participant.id,
        draft_id=db_participant.draft_id,
        display_name=db_participant.display_name,
        team_id=db_participant.team_id,
        is_host=db_participant.is_host,
    )


def auction_to_model(db_auction: AuctionDB) -> Auction:
    return Auction(
        id=db_auction.id,
        draft_id=db_auction.draft_id,
        item_id=db_auction.item_id,
        item_name=db_auction.item_name,
        nominated_by=db_auction.nominated_by,
        current_bid=db_auction.current_bid,
        current_bidder=db_auction.current_bidder,
        auction_end=_aware(db_auction.auction_end),
        status=AuctionStatus(db_auction.status),
    )


def bid_to_model(db_bid: BidHistoryDB) -> BidHistoryEntry:
    return BidHistoryEntry(
        id=db_bid.id,
        auction_id=db_bid.auction_id,
        team_id=db_bid.team_id,
        amount=db_bid.amount,
        team_name=db_bid.team_name,
        timestamp=_aware(db_bid.created_at),
    )


def change_to_model(db_change: ChangeEventDB) -> ChangeEvent:
    return ChangeEvent(
        entity_kind=EntityKind(db_change.entity_kind),
        change_type=ChangeType(db_change.change_type),
        payload=db_change.payload,
        draft_id=db_change.draft_id,
        sequence=db_change.sequence,
    )


# --- Change Feed ---


def _record(
    session: AsyncSession,
    draft_id: str,
    entity_kind: EntityKind,
    change_type: ChangeType,
    payload: dict[str, Any],
) -> None:
    session.add(
        ChangeEventDB(
            draft_id=draft_id,
            entity_kind=entity_kind.value,
            change_type=change_type.value,
            payload=payload,
        )
    )


async def _record_draft(session: AsyncSession, db_draft: DraftDB, change_type: ChangeType) -> None:
    await session.flush()
    teams = await _team_rows(session, db_draft.id)
    draft = draft_to_model(db_draft, [t.id for t in teams])
    _record(session, db_draft.id, EntityKind.DRAFT, change_type, to_payload(draft))


async def _record_team(session: AsyncSession, db_team: TeamDB, change_type: ChangeType) -> None:
    await session.flush()
    picks = [pick_to_model(p) for p in await _pick_rows(session, team_id=db_team.id)]
    team = team_to_model(db_team, [p.id for p in picks])
    _record(session, db_team.draft_id, EntityKind.TEAM, change_type, team_payload(team, picks))


def _record_pick(session: AsyncSession, db_pick: PickDB) -> None:
    _record(
        session, db_pick.draft_id, EntityKind.PICK, ChangeType.INSERT, to_payload(pick_to_model(db_pick))
    )


# --- Row Queries ---


async def _draft_row(session: AsyncSession, draft_id: str, lock: bool = False) -> DraftDB:
    stmt = select(DraftDB).where(DraftDB.id == draft_id)
    if lock:
        stmt = stmt.with_for_update()
    db_draft = (await session.execute(stmt)).scalar_one_or_none()
    if db_draft is None:
        raise KnownError(
            kind=FailureKind.DRAFT_NOT_FOUND,
            message=f"Draft {draft_id} not found",
            status_code=404,
        )
    return db_draft


async def _team_rows(session: AsyncSession, draft_id: str) -> list[TeamDB]:
    result = await session.execute(
        select(TeamDB).where(TeamDB.draft_id == draft_id).order_by(TeamDB.draft_order)
    )
    return list(result.scalars().all())


async def _team_row(session: AsyncSession, draft_id: str, team_id: str) -> TeamDB:
    db_team = await session.get(TeamDB, team_id)
    if db_team is None or db_team.draft_id != draft_id:
        raise KnownError(
            kind=FailureKind.TEAM_NOT_FOUND,
            message=f"Team {team_id} is not part of this draft",
            status_code=404,
        )
    return db_team


async def _pick_rows(
    session: AsyncSession, draft_id: str | None = None, team_id: str | None = None
) -> list[PickDB]:
    stmt = select(PickDB).order_by(PickDB.pick_order)
    if draft_id is not None:
        stmt = stmt.where(PickDB.draft_id == draft_id)
    if team_id is not None:
        stmt = stmt.where(PickDB.team_id == team_id)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def _active_auction_row(session: AsyncSession, draft_id: str) -> AuctionDB | None:
    result = await session.execute(
        select(AuctionDB).where(
            AuctionDB.draft_id == draft_id,
            AuctionDB.status == AuctionStatus.ACTIVE.value,
        )
    )
    return result.scalar_one_or_none()


async def _count_picks(session: AsyncSession, team_id: str) -> int:
    result = await session.execute(
        select(func.count()).select_from(PickDB).where(PickDB.team_id == team_id)
    )
    return int(result.scalar_one())


async def _require_undrafted(session: AsyncSession, draft_id: str, item_id: str, item_name: str) -> None:
    result = await session.execute(
        select(PickDB.id).where(PickDB.draft_id == draft_id, PickDB.item_id == item_id)
    )
    if result.first() is not None:
        raise KnownError(
            kind=FailureKind.DUPLICATE_ITEM,
            message=f"{item_name} has already been drafted",
            status_code=409,
        )


def _require_active(db_draft: DraftDB) -> None:
    if db_draft.status != DraftStatus.ACTIVE.value:
        raise DraftStateError(
            FailureKind.DRAFT_NOT_ACTIVE, f"Draft is {db_draft.status}, not active"
        )


def _require_legal(db_draft: DraftDB, item_id: str, item_name: str) -> None:
    """Ban and allow lists are checked by id and name; costs are computed client-side."""
    reason = illegality_reason(get_format_by_id(db_draft.format_id), DraftItem(id=item_id, name=item_name))
    if reason is not None:
        raise KnownError(kind=FailureKind.ITEM_ILLEGAL, message=reason, status_code=422)


def _require_budget(db_team: TeamDB, amount: int, what: str) -> None:
    if amount > db_team.budget_remaining:
        raise KnownError(
            kind=FailureKind.INSUFFICIENT_BUDGET,
            message=(
                f"Insufficient budget: {what} of {amount} exceeds "
                f"{db_team.budget_remaining} remaining"
            ),
            status_code=409,
        )


async def _require_roster_space(session: AsyncSession, db_draft: DraftDB, db_team: TeamDB) -> None:
    cap = db_draft.rounds if db_draft.kind == DraftKind.SEQUENTIAL.value else db_draft.max_items_per_team
    if await _count_picks(session, db_team.id) >= cap:
        raise KnownError(
            kind=FailureKind.ROSTER_FULL,
            message=f"{db_team.name} already has {cap} items",
            status_code=409,
        )


# --- Draft Lifecycle ---


async def create_draft(
    session: AsyncSession,
    name: str,
    format_id: str,
    host_name: str,
    kind: DraftKind = DraftKind.SEQUENTIAL,
    budget_per_team: int = 100,
    rounds: int = 6,
    max_items_per_team: int = 10,
    max_teams: int = 8,
    team_name: str | None = None,
) -> tuple[Draft, Participant, Team]:
    """
    Create a pending draft with its host seated at the first team.

    Raises:
        UnknownFormatError: If format_id is unknown
    """
    get_format_by_id(format_id)

    db_draft = DraftDB(
        id=_new_id(),
        name=name,
        format_id=format_id,
        kind=kind.value,
        status=DraftStatus.PENDING.value,
        current_turn=None,
        current_round=1,
        budget_per_team=budget_per_team,
        rounds=rounds,
        max_items_per_team=max_items_per_team,
        max_teams=max_teams,
    )
    session.add(db_draft)
    await session.flush()

    participant, team = await _seat(session, db_draft, host_name.strip(), None, team_name, is_host=True)
    db_draft.host_id = participant.id

    await _record_draft(session, db_draft, ChangeType.INSERT)
    logger.info("DRAFT_CREATED", extra={"draft_id": db_draft.id, "format_id": format_id})
    return draft_to_model(db_draft, [team.id]), participant, team


async def _seat(
    session: AsyncSession,
    db_draft: DraftDB,
    display_name: str,
    participant_id: str | None,
    team_name: str | None,
    is_host: bool = False,
) -> tuple[Participant, Team]:
    teams = await _team_rows(session, db_draft.id)
    db_team = TeamDB(
        id=_new_id(),
        draft_id=db_draft.id,
        name=team_name or f"{display_name}'s Team",
        draft_order=len(teams) + 1,
        budget_remaining=db_draft.budget_per_team,
        initial_budget=db_draft.budget_per_team,
    )
    db_participant = ParticipantDB(
        id=participant_id or _new_id(),
        draft_id=db_draft.id,
        display_name=display_name,
        team_id=db_team.id,
        is_host=is_host,
    )
    db_team.owner_id = db_participant.id
    session.add_all([db_team, db_participant])

    await _record_team(session, db_team, ChangeType.INSERT)
    participant = participant_to_model(db_participant)
    _record(session, db_draft.id, EntityKind.PARTICIPANT, ChangeType.INSERT, to_payload(participant))
    return participant, team_to_model(db_team)


async def join_draft(
    session: AsyncSession,
    draft_id: str,
    display_name: str,
    participant_id: str | None = None,
    team_name: str | None = None,
) -> tuple[Participant, Team]:
    """
    Seat a new participant with their own team.

    Raises:
        KnownError: Unknown draft, empty or taken display name
        DraftStateError: Draft already started or full
    """
    db_draft = await _draft_row(session, draft_id, lock=True)
    name = display_name.strip()
    if not name:
        raise KnownError(kind=FailureKind.INVALID_INPUT, message="Display name is required")

    if db_draft.status != DraftStatus.PENDING.value:
        raise DraftStateError(
            FailureKind.INVALID_TRANSITION, f"Cannot join a draft that is {db_draft.status}"
        )

    participants = await _participant_rows(session, draft_id)
    for existing in participants:
        if participant_id is not None and existing.id == participant_id:
            raise KnownError(
                kind=FailureKind.INVALID_INPUT,
                message="Participant has already joined this draft",
                status_code=409,
            )
        if existing.display_name.casefold() == name.casefold():
            raise KnownError(
                kind=FailureKind.INVALID_INPUT,
                message=f"Display name '{name}' is already taken",
                status_code=409,
            )

    if len(await _team_rows(session, draft_id)) >= db_draft.max_teams:
        raise DraftStateError(FailureKind.DRAFT_FULL, "Draft is full")

    participant, team = await _seat(session, db_draft, name, participant_id, team_name)
    await _record_draft(session, db_draft, ChangeType.UPDATE)
    logger.info("PARTICIPANT_JOINED", extra={"draft_id": draft_id, "participant_id": participant.id})
    return participant, team


async def leave_draft(session: AsyncSession, draft_id: str, participant_id: str) -> None:
    """
    Remove a participant.

    Before the draft starts their team is removed and the remaining teams
    are renumbered. Afterwards the team stays, without an owner.
    """
    db_draft = await _draft_row(session, draft_id, lock=True)
    db_participant = await session.get(ParticipantDB, participant_id)
    if db_participant is None or db_participant.draft_id != draft_id:
        raise KnownError(
            kind=FailureKind.NOT_FOUND,
            message=f"Participant {participant_id} is not in this draft",
            status_code=404,
        )

    payload = to_payload(participant_to_model(db_participant))
    team_id = db_participant.team_id
    await session.delete(db_participant)
    _record(session, draft_id, EntityKind.PARTICIPANT, ChangeType.DELETE, payload)

    if db_draft.host_id == participant_id:
        db_draft.host_id = None

    if team_id is not None:
        db_team = await session.get(TeamDB, team_id)
        if db_team is not None and db_draft.status == DraftStatus.PENDING.value:
            removed = team_payload(team_to_model(db_team), [])
            await session.delete(db_team)
            _record(session, draft_id, EntityKind.TEAM, ChangeType.DELETE, removed)
            await session.flush()
            for position, remaining in enumerate(await _team_rows(session, draft_id), start=1):
                if remaining.draft_order != position:
                    remaining.draft_order = position
                    await _record_team(session, remaining, ChangeType.UPDATE)
        elif db_team is not None:
            db_team.owner_id = None
            await _record_team(session, db_team, ChangeType.UPDATE)

    await _record_draft(session, db_draft, ChangeType.UPDATE)
    logger.info("PARTICIPANT_LEFT", extra={"draft_id": draft_id, "participant_id": participant_id})


async def set_draft_status(session: AsyncSession, draft_id: str, target: DraftStatus) -> Draft:
    """
    Move a draft through its lifecycle.

    Raises:
        DraftStateError: If the transition is not allowed
    """
    db_draft = await _draft_row(session, draft_id, lock=True)
    current = DraftStatus(db_draft.status)
    if not can_transition(current, target):
        raise DraftStateError(
            FailureKind.INVALID_TRANSITION,
            f"Cannot move draft from {current.value} to {target.value}",
        )

    if current == DraftStatus.PENDING and target == DraftStatus.ACTIVE:
        teams = await _team_rows(session, draft_id)
        if not teams:
            raise DraftStateError(FailureKind.INVALID_TRANSITION, "Cannot start a draft without teams")
        if db_draft.kind == DraftKind.SEQUENTIAL.value:
            db_draft.current_turn = 1
        db_draft.current_round = 1

    db_draft.status = target.value
    await _record_draft(session, db_draft, ChangeType.UPDATE)
    logger.info(
        "DRAFT_STATUS_CHANGED",
        extra={"draft_id": draft_id, "from": current.value, "to": target.value},
    )
    return await _load_draft(session, db_draft)


async def start_draft(session: AsyncSession, draft_id: str) -> Draft:
    return await set_draft_status(session, draft_id, DraftStatus.ACTIVE)


# --- Picks ---


async def submit_pick(
    session: AsyncSession,
    draft_id: str,
    team_id: str,
    item_id: str,
    item_name: str,
    cost: int,
) -> Pick:
    """
    Record a pick in a snake draft as one atomic unit.

    Checks status, turn, legality, uniqueness, roster size and budget;
    then inserts the pick, decrements the team's budget, advances the turn
    and completes the draft after the final turn.

    Raises:
        DraftStateError: Draft not active or not this team's turn
        KnownError: Unknown team, illegal or drafted item, insufficient budget
    """
    db_draft = await _draft_row(session, draft_id, lock=True)
    _require_active(db_draft)
    if db_draft.kind != DraftKind.SEQUENTIAL.value:
        raise KnownError(
            kind=FailureKind.INVALID_INPUT,
            message="Items in auction drafts are awarded by auctions",
        )

    db_team = await _team_row(session, draft_id, team_id)
    teams = await _team_rows(session, draft_id)
    on_the_clock = current_team_id(
        [team_to_model(t) for t in teams], db_draft.rounds, db_draft.current_turn
    )
    if on_the_clock != team_id:
        raise DraftStateError(FailureKind.NOT_YOUR_TURN, f"It is not {db_team.name}'s turn")

    _require_legal(db_draft, item_id, item_name)
    await _require_undrafted(session, draft_id, item_id, item_name)
    await _require_roster_space(session, db_draft, db_team)
    _require_budget(db_team, cost, item_name)

    turn = db_draft.current_turn or 1
    db_pick = PickDB(
        id=_new_id(),
        draft_id=draft_id,
        team_id=team_id,
        item_id=item_id,
        item_name=item_name,
        cost=cost,
        pick_order=turn,
        round=db_draft.current_round,
    )
    session.add(db_pick)
    db_team.budget_remaining -= cost
    await session.flush()
    await session.refresh(db_pick)

    next_turn = turn + 1
    order = generate_snake_order(len(teams), db_draft.rounds)
    db_draft.current_turn = next_turn
    if is_sequential_complete(next_turn, order):
        db_draft.status = DraftStatus.COMPLETED.value
    else:
        db_draft.current_round = round_for_turn(next_turn, len(teams))

    await _record_team(session, db_team, ChangeType.UPDATE)
    _record_pick(session, db_pick)
    await _record_draft(session, db_draft, ChangeType.UPDATE)

    logger.info(
        "PICK_RECORDED",
        extra={"draft_id": draft_id, "team_id": team_id, "item_id": item_id, "cost": cost},
    )
    return pick_to_model(db_pick)


# --- Auctions ---


async def nominate_item(
    session: AsyncSession,
    draft_id: str,
    team_id: str,
    item_id: str,
    item_name: str,
    starting_bid: int = 1,
    duration_seconds: int = 30,
) -> Auction:
    """
    Open an auction for an item with the nominator as first bidder.

    Raises:
        KnownError: Another auction active, item drafted, budget or roster exceeded
    """
    db_draft = await _draft_row(session, draft_id, lock=True)
    _require_active(db_draft)
    if db_draft.kind != DraftKind.SIMULTANEOUS_BID.value:
        raise KnownError(
            kind=FailureKind.INVALID_INPUT,
            message="Nominations are only used in auction drafts",
        )
    if not MIN_AUCTION_SECONDS <= duration_seconds <= MAX_AUCTION_SECONDS:
        raise KnownError(
            kind=FailureKind.INVALID_INPUT,
            message=(
                f"Auction duration must be between {MIN_AUCTION_SECONDS} "
                f"and {MAX_AUCTION_SECONDS} seconds"
            ),
        )

    db_team = await _team_row(session, draft_id, team_id)
    if await _active_auction_row(session, draft_id) is not None:
        raise KnownError(
            kind=FailureKind.AUCTION_ALREADY_ACTIVE,
            message="Another auction is already active",
            status_code=409,
        )
    _require_legal(db_draft, item_id, item_name)
    await _require_undrafted(session, draft_id, item_id, item_name)
    await _require_roster_space(session, db_draft, db_team)
    _require_budget(db_team, starting_bid, "starting bid")

    db_auction = AuctionDB(
        id=_new_id(),
        draft_id=draft_id,
        item_id=item_id,
        item_name=item_name,
        nominated_by=team_id,
        current_bid=starting_bid,
        current_bidder=team_id,
        auction_end=_now() + timedelta(seconds=duration_seconds),
        status=AuctionStatus.ACTIVE.value,
    )
    session.add(db_auction)
    await session.flush()

    auction = auction_to_model(db_auction)
    _record(session, draft_id, EntityKind.AUCTION, ChangeType.INSERT, to_payload(auction))
    logger.info(
        "AUCTION_OPENED",
        extra={"draft_id": draft_id, "auction_id": auction.id, "item_id": item_id},
    )
    return auction


async def _auction_row(session: AsyncSession, auction_id: str) -> AuctionDB:
    result = await session.execute(
        select(AuctionDB).where(AuctionDB.id == auction_id).with_for_update()
    )
    db_auction = result.scalar_one_or_none()
    if db_auction is None:
        raise KnownError(
            kind=FailureKind.AUCTION_NOT_FOUND,
            message=f"Auction {auction_id} not found",
            status_code=404,
        )
    return db_auction


async def place_bid(
    session: AsyncSession,
    auction_id: str,
    team_id: str,
    amount: int,
    now: datetime | None = None,
) -> BidHistoryEntry:
    """
    Raise an auction's current bid.

    Raises:
        KnownError: Auction unknown or closed, bid not above current, budget exceeded
    """
    db_auction = await _auction_row(session, auction_id)
    db_draft = await _draft_row(session, db_auction.draft_id)
    _require_active(db_draft)

    moment = now or _now()
    if db_auction.status != AuctionStatus.ACTIVE.value or _aware(db_auction.auction_end) <= moment:
        raise KnownError(
            kind=FailureKind.AUCTION_NOT_ACTIVE,
            message="Auction is no longer active",
            status_code=409,
        )

    db_team = await _team_row(session, db_auction.draft_id, team_id)
    if amount <= db_auction.current_bid:
        raise KnownError(
            kind=FailureKind.BID_TOO_LOW,
            message=f"Bid must exceed current bid of {db_auction.current_bid}",
            status_code=409,
        )
    _require_budget(db_team, amount, "bid")
    await _require_roster_space(session, db_draft, db_team)

    db_bid = BidHistoryDB(
        id=_new_id(),
        auction_id=auction_id,
        team_id=team_id,
        team_name=db_team.name,
        amount=amount,
    )
    session.add(db_bid)
    db_auction.current_bid = amount
    db_auction.current_bidder = team_id
    await session.flush()
    await session.refresh(db_bid)

    bid = bid_to_model(db_bid)
    _record(session, db_auction.draft_id, EntityKind.BID, ChangeType.INSERT, to_payload(bid))
    _record(
        session,
        db_auction.draft_id,
        EntityKind.AUCTION,
        ChangeType.UPDATE,
        to_payload(auction_to_model(db_auction)),
    )
    logger.info(
        "BID_PLACED",
        extra={"auction_id": auction_id, "team_id": team_id, "amount": amount},
    )
    return bid


async def resolve_auction(session: AsyncSession, auction_id: str) -> Pick | None:
    """
    Close an auction: award the item to the highest bidder or cancel it.

    The award inserts the pick and decrements the winner's budget in the
    same unit as the status change. Completes the draft when every team
    is out of budget or full.

    Returns:
        The awarded pick, or None if the auction was cancelled
    """
    db_auction = await _auction_row(session, auction_id)
    if db_auction.status != AuctionStatus.ACTIVE.value:
        raise KnownError(
            kind=FailureKind.AUCTION_NOT_ACTIVE,
            message="Auction is no longer active",
            status_code=409,
        )

    draft_id = db_auction.draft_id
    db_draft = await _draft_row(session, draft_id, lock=True)
    winner = (
        await session.get(TeamDB, db_auction.current_bidder) if db_auction.current_bidder else None
    )

    awarded: PickDB | None = None
    drafted = (
        await session.execute(
            select(PickDB.id).where(PickDB.draft_id == draft_id, PickDB.item_id == db_auction.item_id)
        )
    ).first() is not None

    if winner is not None and not drafted and winner.budget_remaining >= db_auction.current_bid:
        pick_count = len(await _pick_rows(session, draft_id=draft_id))
        awarded = PickDB(
            id=_new_id(),
            draft_id=draft_id,
            team_id=winner.id,
            item_id=db_auction.item_id,
            item_name=db_auction.item_name,
            cost=db_auction.current_bid,
            pick_order=pick_count + 1,
            round=db_draft.current_round,
        )
        session.add(awarded)
        winner.budget_remaining -= db_auction.current_bid
        await session.flush()
        await session.refresh(awarded)
        db_auction.status = AuctionStatus.ENDED.value
    else:
        db_auction.status = AuctionStatus.CANCELLED.value

    if awarded is not None and winner is not None:
        await _record_team(session, winner, ChangeType.UPDATE)
        _record_pick(session, awarded)

    await session.flush()
    _record(
        session,
        draft_id,
        EntityKind.AUCTION,
        ChangeType.UPDATE,
        to_payload(auction_to_model(db_auction)),
    )

    if awarded is not None and db_draft.status == DraftStatus.ACTIVE.value:
        teams = await get_teams(session, draft_id)
        if is_simultaneous_complete(teams, db_draft.max_items_per_team):
            db_draft.status = DraftStatus.COMPLETED.value
            await _record_draft(session, db_draft, ChangeType.UPDATE)

    logger.info(
        "AUCTION_RESOLVED",
        extra={
            "auction_id": auction_id,
            "status": db_auction.status,
            "winner": winner.id if awarded is not None and winner is not None else None,
        },
    )
    return pick_to_model(awarded) if awarded is not None else None


async def close_expired_auctions(session: AsyncSession, now: datetime | None = None) -> int:
    """Resolve every active auction whose end time has passed. Returns the count."""
    moment = now or _now()
    result = await session.execute(
        select(AuctionDB).where(AuctionDB.status == AuctionStatus.ACTIVE.value)
    )
    expired = [
        a.id
        for a in result.scalars().all()
        if a.auction_end is not None and _aware(a.auction_end) <= moment
    ]
    for auction_id in expired:
        await resolve_auction(session, auction_id)
    return len(expired)


# --- Reads ---


async def _load_draft(session: AsyncSession, db_draft: DraftDB) -> Draft:
    teams = await _team_rows(session, db_draft.id)
    return draft_to_model(db_draft, [t.id for t in teams])


async def get_draft(session: AsyncSession, draft_id: str) -> Draft | None:
    """Get a draft by id. Returns None if it does not exist."""
    db_draft = await session.get(DraftDB, draft_id)
    if db_draft is None:
        return None
    return await _load_draft(session, db_draft)


async def get_teams(session: AsyncSession, draft_id: str) -> list[Team]:
    """Teams in draft order, each with its pick ids."""
    picks = await _pick_rows(session, draft_id=draft_id)
    pick_ids: dict[str, list[str]] = {}
    for pick in picks:
        pick_ids.setdefault(pick.team_id, []).append(pick.id)
    return [team_to_model(t, pick_ids.get(t.id, [])) for t in await _team_rows(session, draft_id)]


async def get_picks(session: AsyncSession, draft_id: str) -> list[Pick]:
    return [pick_to_model(p) for p in await _pick_rows(session, draft_id=draft_id)]


async def _participant_rows(session: AsyncSession, draft_id: str) -> list[ParticipantDB]:
    result = await session.execute(
        select(ParticipantDB)
        .where(ParticipantDB.draft_id == draft_id)
        .order_by(ParticipantDB.created_at, ParticipantDB.display_name)
    )
    return list(result.scalars().all())


async def get_participants(session: AsyncSession, draft_id: str) -> list[Participant]:
    return [participant_to_model(p) for p in await _participant_rows(session, draft_id)]


async def get_auctions(session: AsyncSession, draft_id: str) -> list[Auction]:
    result = await session.execute(
        select(AuctionDB).where(AuctionDB.draft_id == draft_id).order_by(AuctionDB.created_at)
    )
    return [auction_to_model(a) for a in result.scalars().all()]


async def get_active_auction(session: AsyncSession, draft_id: str) -> Auction | None:
    db_auction = await _active_auction_row(session, draft_id)
    return auction_to_model(db_auction) if db_auction is not None else None


async def get_auction(session: AsyncSession, auction_id: str) -> Auction | None:
    db_auction = await session.get(AuctionDB, auction_id)
    return auction_to_model(db_auction) if db_auction is not None else None


async def get_bid_history(session: AsyncSession, auction_id: str) -> list[BidHistoryEntry]:
    """Bids of an auction in ascending amount order."""
    result = await session.execute(
        select(BidHistoryDB).where(BidHistoryDB.auction_id == auction_id).order_by(BidHistoryDB.amount)
    )
    return [bid_to_model(b) for b in result.scalars().all()]


async def get_changes(
    session: AsyncSession, draft_id: str, after: int = 0, limit: int = 500
) -> list[ChangeEvent]:
    """Change-feed entries of a draft with sequence greater than `after`."""
    result = await session.execute(
        select(ChangeEventDB)
        .where(ChangeEventDB.draft_id == draft_id, ChangeEventDB.sequence > after)
        .order_by(ChangeEventDB.sequence)
        .limit(limit)
    )
    return [change_to_model(c) for c in result.scalars().all()]


async def delete_draft(session: AsyncSession, draft_id: str) -> bool:
    """Delete a draft and everything in it. Returns True if it existed."""
    db_draft = await session.get(DraftDB, draft_id)
    if db_draft is None:
        return False
    auction_ids = select(AuctionDB.id).where(AuctionDB.draft_id == draft_id)
    await session.execute(delete(BidHistoryDB).where(BidHistoryDB.auction_id.in_(auction_ids)))
    for model in (AuctionDB, PickDB, ParticipantDB, TeamDB, ChangeEventDB):
        await session.execute(delete(model).where(model.draft_id == draft_id))
    await session.delete(db_draft)
    return True
