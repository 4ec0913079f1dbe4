"""
Optimistic Update Engine — Local Intents Merged with Authoritative State.

One engine instance per draft session. It holds the authoritative entities
last seen from the backend plus a set of PendingActions, and composes the
two into a DraftView on demand.

INVARIANTS:
- apply_* validates against the current view and raises
  LocalValidationError before anything is projected. Nothing is projected
  for a rejected intent.
- A projected action contributes exactly one temporary entity (id
  "temp-<action id>") until it fails or its authoritative counterpart is
  observed. Matching uses business identity, never the temporary id.
- reconcile() never raises for conflicts; the losing action fails with a
  ReconciliationConflict message. Applying the same update twice yields
  the same view.
- A failed bid keeps the auction's speculative current bid/bidder until
  the next authoritative auction state arrives.
- A team's budget in the view never exceeds its initial budget minus the
  authoritative picks already seen, whatever order team and pick rows arrive in.
- A failed action whose entity later turns up authoritatively is confirmed.

The engine has no timers. Grace-period pruning of resolved actions reads
the injected clock whenever state is read or reconciled.
"""

import logging
import uuid
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import Any, TypeVar

from draftkeeper.config import MAX_AUCTION_SECONDS, MIN_AUCTION_SECONDS, settings
from draftkeeper.models.actions import (
    ActionStatus,
    BidPayload,
    JoinPayload,
    LeavePayload,
    NominatePayload,
    PendingAction,
    PickPayload,
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
    is_temp_id,
)
from draftkeeper.models.failure import (
    FailureKind,
    KnownError,
    LocalValidationError,
    ReconciliationConflict,
    RetryLimitExceededError,
)
from draftkeeper.models.format import Format
from draftkeeper.models.item import DraftItem
from draftkeeper.models.sync import (
    ChangeEvent,
    ChangeType,
    DraftView,
    EntityKind,
    ServerSnapshot,
    from_payload,
    picks_from_team_payload,
)
from draftkeeper.rules.engine import FormatRulesEngine
from draftkeeper.services.selectors import SelectorCache

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class OptimisticUpdateEngine:
    """
    Coordinator for optimistic draft mutations.

    Args:
        draft: Authoritative draft state
        fmt: Format of the draft; resolved from draft.format_id when omitted
        teams/picks/auctions/bid_history/participants: Initial authoritative state
        max_retries: Retry cap per action
        confirm_grace: Seconds a confirmed action stays visible
        failure_grace: Seconds a failed action stays visible
        clock: Returns the current time (timezone-aware)

    Raises:
        UnknownFormatError: If fmt is omitted and draft.format_id is unknown
    """

    def __init__(
        self,
        draft: Draft,
        fmt: Format | None = None,
        *,
        teams: Iterable[Team] = (),
        picks: Iterable[Pick] = (),
        auctions: Iterable[Auction] = (),
        bid_history: Iterable[BidHistoryEntry] = (),
        participants: Iterable[Participant] = (),
        max_retries: int | None = None,
        confirm_grace: float | None = None,
        failure_grace: float | None = None,
        clock: Clock | None = None,
    ):
        self.rules = FormatRulesEngine(fmt if fmt is not None else draft.format_id)
        self.max_retries = max_retries if max_retries is not None else settings.max_action_retries
        self.confirm_grace = timedelta(
            seconds=confirm_grace if confirm_grace is not None else settings.confirm_grace_seconds
        )
        self.failure_grace = timedelta(
            seconds=failure_grace if failure_grace is not None else settings.failure_grace_seconds
        )
        self._clock = clock or _utcnow

        self._draft = draft
        self._teams = {t.id: t for t in teams}
        self._picks = {p.id: p for p in picks}
        self._auctions = {a.id: a for a in auctions}
        self._bids = {b.id: b for b in bid_history}
        self._participants = {p.id: p for p in participants}

        self._actions: dict[str, PendingAction] = {}
        # auction id -> (amount, team id) shown until the next authoritative auction state
        self._bid_overlays: dict[str, tuple[int, str]] = {}

        self._revision = 0
        self._view: DraftView | None = None
        self.selectors = SelectorCache()

    # =========================================================================
    # READ
    # =========================================================================

    @property
    def draft_id(self) -> str:
        return self._draft.id

    @property
    def revision(self) -> int:
        return self._revision

    def current_state(self) -> DraftView:
        """Read-only view: authoritative state plus live projections."""
        self._prune()
        if self._view is None or self._view.revision != self._revision:
            self._view = self._compose()
        return self._view

    def select(self, selector: Callable[[DraftView], T]) -> T:
        """Derived value of the current view, cached per revision."""
        return self.selectors.get(self.current_state(), selector)

    def get_action(self, action_id: str) -> PendingAction | None:
        return self._actions.get(action_id)

    # =========================================================================
    # INTENTS
    # =========================================================================

    def apply_pick(self, item: DraftItem, team_id: str) -> str:
        """
        Project a pick of `item` by `team_id`.

        Returns:
            The new action id

        Raises:
            LocalValidationError: If the pick is illegal or unaffordable
        """
        validation = self.rules.validate(item)
        if not validation.is_legal:
            raise LocalValidationError(FailureKind.ITEM_ILLEGAL, validation.reason or "Illegal item")

        view = self.current_state()
        self._check_pick(view, team_id, item.id, item.name, validation.cost)

        payload = PickPayload(
            team_id=team_id,
            item_id=item.id,
            item_name=item.name,
            cost=validation.cost,
            round=view.draft.current_round,
        )
        return self._project(payload)

    def apply_bid(self, auction_id: str, team_id: str, amount: int) -> str:
        """Project a bid. Raises LocalValidationError if it cannot win."""
        view = self.current_state()
        team = self._check_bid(view, auction_id, team_id, amount)

        payload = BidPayload(auction_id=auction_id, team_id=team_id, team_name=team.name, amount=amount)
        action_id = self._project(payload)
        self._bid_overlays[auction_id] = (amount, team_id)
        return action_id

    def apply_nomination(
        self,
        item: DraftItem,
        team_id: str,
        starting_bid: int = 1,
        duration_seconds: int = 30,
    ) -> str:
        """Project a new auction for `item`, opened by `team_id`."""
        validation = self.rules.validate(item)
        if not validation.is_legal:
            raise LocalValidationError(FailureKind.ITEM_ILLEGAL, validation.reason or "Illegal item")

        view = self.current_state()
        self._check_nomination(view, team_id, item.id, item.name, starting_bid, duration_seconds)

        payload = NominatePayload(
            team_id=team_id,
            item_id=item.id,
            item_name=item.name,
            starting_bid=starting_bid,
            duration_seconds=duration_seconds,
        )
        return self._project(payload)

    def apply_join(self, display_name: str, participant_id: str | None = None) -> str:
        view = self.current_state()
        name = display_name.strip()
        self._check_join(view, name, participant_id)
        return self._project(JoinPayload(display_name=name, participant_id=participant_id))

    def apply_leave(self, participant_id: str) -> str:
        view = self.current_state()
        self._check_leave(view, participant_id)
        return self._project(LeavePayload(participant_id=participant_id))

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def confirm(self, action_id: str) -> None:
        """
        The backend accepted the action.

        The projection stays in place until the authoritative entity is
        observed by reconcile(). Unknown or already resolved actions are
        ignored.
        """
        action = self._actions.get(action_id)
        if action is None or action.status != ActionStatus.PENDING:
            logger.debug("ACTION_CONFIRM_IGNORED", extra={"action_id": action_id})
            return

        self._actions[action_id] = replace(
            action, status=ActionStatus.CONFIRMED, resolved_at=self._clock()
        )
        self._touch()
        logger.info(
            "ACTION_CONFIRMED",
            extra={"action_id": action_id, "kind": action.kind.value},
        )

    def fail(self, action_id: str, reason: str) -> None:
        """
        The backend rejected the action, or the call never completed.

        Rolls back the projection. A bid's effect on the auction's current
        bid is left for the next authoritative auction state to correct.
        """
        action = self._actions.get(action_id)
        if action is None or action.status != ActionStatus.PENDING:
            logger.debug("ACTION_FAIL_IGNORED", extra={"action_id": action_id})
            return

        self._mark_failed(action, reason)

    def retry(self, action_id: str) -> PendingAction:
        """
        Re-enter a failed action into the pending set.

        The action is re-validated against the current view first.

        Raises:
            KnownError: If the action is unknown or not failed
            RetryLimitExceededError: If the retry cap is reached
            LocalValidationError: If the action is no longer valid
        """
        self._prune()
        action = self._actions.get(action_id)
        if action is None:
            raise KnownError(
                kind=FailureKind.ACTION_NOT_FOUND,
                message=f"Action {action_id} not found",
                status_code=404,
            )
        if action.status != ActionStatus.FAILED:
            raise LocalValidationError(
                FailureKind.INVALID_INPUT, "Only failed actions can be retried"
            )
        if action.retry_count >= self.max_retries:
            raise RetryLimitExceededError(action_id, self.max_retries)

        view = self.current_state()
        payload = action.payload

        if isinstance(payload, PickPayload):
            self._check_pick(view, payload.team_id, payload.item_id, payload.item_name, payload.cost)
            payload = replace(payload, round=view.draft.current_round)
        elif isinstance(payload, BidPayload):
            # our own deferred overlay must not count as the bid to beat
            overlay = self._bid_overlays.get(payload.auction_id)
            if overlay == (payload.amount, payload.team_id):
                del self._bid_overlays[payload.auction_id]
                self._touch()
                view = self.current_state()
            try:
                self._check_bid(view, payload.auction_id, payload.team_id, payload.amount)
            except LocalValidationError:
                if overlay is not None:
                    self._bid_overlays[payload.auction_id] = overlay
                    self._touch()
                raise
            self._bid_overlays[payload.auction_id] = (payload.amount, payload.team_id)
        elif isinstance(payload, NominatePayload):
            self._check_nomination(
                view,
                payload.team_id,
                payload.item_id,
                payload.item_name,
                payload.starting_bid,
                payload.duration_seconds,
            )
        elif isinstance(payload, JoinPayload):
            self._check_join(view, payload.display_name, payload.participant_id)
        else:
            self._check_leave(view, payload.participant_id)

        retried = replace(
            action,
            payload=payload,
            status=ActionStatus.PENDING,
            retry_count=action.retry_count + 1,
            resolved_at=None,
            error=None,
        )
        self._actions[action_id] = retried
        self._touch()
        logger.info(
            "ACTION_RETRIED",
            extra={
                "action_id": action_id,
                "kind": action.kind.value,
                "retry_count": retried.retry_count,
            },
        )
        return retried

    # =========================================================================
    # RECONCILIATION
    # =========================================================================

    def reconcile(self, update: ServerSnapshot | ChangeEvent) -> None:
        """
        Merge authoritative state into the local view.

        Authoritative entities replace local ones; projections matched by
        business identity are dropped and their actions confirmed;
        contradicted pending projections fail. Safe under redelivery.

        Raises:
            pydantic.ValidationError: If an event payload is malformed; local
                state is left unchanged
        """
        if isinstance(update, ChangeEvent):
            self._apply_event(update)
        else:
            self._apply_snapshot(update)

        self._resolve_projections()
        self._touch()
        self._prune()

    def _apply_snapshot(self, snapshot: ServerSnapshot) -> None:
        if snapshot.draft is not None and snapshot.draft.id == self._draft.id:
            self._draft = snapshot.draft
        if snapshot.teams is not None:
            self._teams = {t.id: t for t in snapshot.teams}
        if snapshot.picks is not None:
            self._picks = {p.id: p for p in snapshot.picks}
        if snapshot.bid_history is not None:
            self._bids = {b.id: b for b in snapshot.bid_history}
        if snapshot.participants is not None:
            self._participants = {p.id: p for p in snapshot.participants}
        if snapshot.auctions is not None:
            self._auctions = {a.id: a for a in snapshot.auctions}
            self._bid_overlays.clear()
            for auction in self._auctions.values():
                self._refresh_overlay(auction)

    def _apply_event(self, event: ChangeEvent) -> None:
        if event.draft_id is not None and event.draft_id != self._draft.id:
            return

        entity_id = event.payload.get("id")
        if entity_id is None:
            logger.warning("CHANGE_EVENT_WITHOUT_ID", extra={"entity_kind": event.entity_kind.value})
            return

        deleted = event.change_type == ChangeType.DELETE
        kind = event.entity_kind

        if kind == EntityKind.DRAFT:
            if not deleted and entity_id == self._draft.id:
                self._draft = from_payload(Draft, event.payload)
        elif kind == EntityKind.TEAM:
            if deleted:
                self._teams.pop(entity_id, None)
            else:
                team = from_payload(Team, event.payload)
                picks = picks_from_team_payload(event.payload)
                self._teams[team.id] = team
                self._picks.update((p.id, p) for p in picks)
        elif kind == EntityKind.PICK:
            self._upsert(self._picks, Pick, event.payload, deleted)
        elif kind == EntityKind.PARTICIPANT:
            self._upsert(self._participants, Participant, event.payload, deleted)
        elif kind == EntityKind.BID:
            self._upsert(self._bids, BidHistoryEntry, event.payload, deleted)
        elif kind == EntityKind.AUCTION:
            self._upsert(self._auctions, Auction, event.payload, deleted)
            self._bid_overlays.pop(entity_id, None)
            if not deleted:
                self._refresh_overlay(self._auctions[entity_id])

    @staticmethod
    def _upsert(
        collection: dict[str, Any], entity_type: type, payload: dict[str, Any], deleted: bool
    ) -> None:
        if deleted:
            collection.pop(payload["id"], None)
        else:
            collection[payload["id"]] = from_payload(entity_type, payload)

    def _refresh_overlay(self, auction: Auction) -> None:
        """Re-derive an auction's speculative bid from still-projected bids."""
        if not auction.is_active:
            return
        best: BidPayload | None = None
        for action in self._actions.values():
            payload = action.payload
            if (
                action.is_projected
                and isinstance(payload, BidPayload)
                and payload.auction_id == auction.id
                and payload.amount > auction.current_bid
                and (best is None or payload.amount > best.amount)
            ):
                best = payload
        if best is not None:
            self._bid_overlays[auction.id] = (best.amount, best.team_id)

    def _resolve_projections(self) -> None:
        for action in list(self._actions.values()):
            if action.matched:
                continue
            # a failed action can still be matched: its call may have committed after the timeout
            if action.status == ActionStatus.FAILED:
                matched, conflict = self._match(action)[0], None
            else:
                matched, conflict = self._match(action)

            if matched:
                self._actions[action.id] = replace(
                    action,
                    status=ActionStatus.CONFIRMED,
                    matched=True,
                    resolved_at=self._clock(),
                    error=None,
                )
                logger.info(
                    "ACTION_MATCHED",
                    extra={
                        "action_id": action.id,
                        "kind": action.kind.value,
                        "was_failed": action.status == ActionStatus.FAILED,
                    },
                )
            elif conflict is not None:
                if action.status == ActionStatus.PENDING:
                    logger.warning(
                        "RECONCILE_CONFLICT",
                        extra={
                            "action_id": action.id,
                            "kind": action.kind.value,
                            "reason": conflict.message,
                        },
                    )
                    self._mark_failed(action, conflict.message)
                else:
                    # accepted by the backend but superseded since; authoritative state wins
                    self._actions[action.id] = replace(action, matched=True)

    def _match(self, action: PendingAction) -> tuple[bool, ReconciliationConflict | None]:
        """Whether the action's entity is now authoritative, or contradicted."""
        payload = action.payload

        if isinstance(payload, PickPayload):
            for pick in self._picks.values():
                if pick.business_key == (payload.item_id, payload.team_id):
                    return True, None
            if any(p.item_id == payload.item_id for p in self._picks.values()):
                return False, ReconciliationConflict(f"{payload.item_name} is no longer available")
            return False, None

        if isinstance(payload, BidPayload):
            key = (payload.auction_id, payload.team_id, payload.amount)
            if any(b.business_key == key for b in self._bids.values()):
                return True, None
            auction = self._auctions.get(payload.auction_id)
            if (
                auction is not None
                and auction.current_bidder == payload.team_id
                and auction.current_bid == payload.amount
            ):
                return True, None
            if auction is None or not auction.is_active:
                return False, ReconciliationConflict("The auction is no longer active")
            if auction.current_bid >= payload.amount:
                return False, ReconciliationConflict(
                    f"Outbid: current bid is {auction.current_bid}"
                )
            return False, None

        if isinstance(payload, NominatePayload):
            for auction in self._auctions.values():
                if auction.item_id == payload.item_id and auction.nominated_by == payload.team_id:
                    return True, None
            if any(p.item_id == payload.item_id for p in self._picks.values()):
                return False, ReconciliationConflict(f"{payload.item_name} is no longer available")
            if any(a.is_active for a in self._auctions.values()):
                return False, ReconciliationConflict("Another auction is already active")
            return False, None

        if isinstance(payload, JoinPayload):
            for participant in self._participants.values():
                if payload.participant_id is not None and participant.id == payload.participant_id:
                    return True, None
                if participant.display_name.casefold() == payload.display_name.casefold():
                    return True, None
            return False, None

        return payload.participant_id not in self._participants, None

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def _require_team(self, view: DraftView, team_id: str) -> Team:
        team = view.team(team_id)
        if team is None:
            raise LocalValidationError(
                FailureKind.TEAM_NOT_FOUND, f"Team {team_id} is not part of this draft"
            )
        return team

    def _require_active(self, view: DraftView) -> None:
        if view.draft.status != DraftStatus.ACTIVE:
            raise LocalValidationError(
                FailureKind.DRAFT_NOT_ACTIVE,
                f"Draft is {view.draft.status.value}, not active",
            )

    def _require_roster_space(self, view: DraftView, team: Team) -> None:
        cap = view.draft.roster_cap
        if len(team.pick_ids) >= cap:
            raise LocalValidationError(
                FailureKind.ROSTER_FULL, f"{team.name} already has {cap} items"
            )

    def _require_available(self, view: DraftView, item_id: str, item_name: str) -> None:
        if any(p.item_id == item_id for p in view.picks):
            raise LocalValidationError(
                FailureKind.DUPLICATE_ITEM, f"{item_name} has already been drafted"
            )

    def _check_pick(
        self, view: DraftView, team_id: str, item_id: str, item_name: str, cost: int
    ) -> None:
        team = self._require_team(view, team_id)
        self._require_active(view)
        self._require_available(view, item_id, item_name)
        self._require_roster_space(view, team)
        if cost > team.budget_remaining:
            raise LocalValidationError(
                FailureKind.INSUFFICIENT_BUDGET,
                f"Insufficient budget: {item_name} costs {cost}, "
                f"{team.budget_remaining} remaining",
            )

    def _check_bid(self, view: DraftView, auction_id: str, team_id: str, amount: int) -> Team:
        team = self._require_team(view, team_id)
        self._require_active(view)

        auction = view.auction(auction_id)
        if auction is None:
            raise LocalValidationError(
                FailureKind.AUCTION_NOT_FOUND, f"Auction {auction_id} not found"
            )
        if is_temp_id(auction.id):
            raise LocalValidationError(
                FailureKind.AUCTION_NOT_ACTIVE, "Auction has not been opened yet"
            )
        if not auction.is_active:
            raise LocalValidationError(FailureKind.AUCTION_NOT_ACTIVE, "Auction is no longer active")
        if amount <= auction.current_bid:
            raise LocalValidationError(
                FailureKind.BID_TOO_LOW, f"Bid must exceed current bid of {auction.current_bid}"
            )
        if amount > team.budget_remaining:
            raise LocalValidationError(
                FailureKind.INSUFFICIENT_BUDGET,
                f"Insufficient budget: bid of {amount} exceeds {team.budget_remaining} remaining",
            )
        self._require_roster_space(view, team)
        return team

    def _check_nomination(
        self,
        view: DraftView,
        team_id: str,
        item_id: str,
        item_name: str,
        starting_bid: int,
        duration_seconds: int,
    ) -> None:
        team = self._require_team(view, team_id)
        self._require_active(view)
        if view.draft.kind != DraftKind.SIMULTANEOUS_BID:
            raise LocalValidationError(
                FailureKind.INVALID_INPUT, "Nominations are only used in auction drafts"
            )
        if view.active_auction is not None:
            raise LocalValidationError(
                FailureKind.AUCTION_ALREADY_ACTIVE, "Another auction is already active"
            )
        self._require_available(view, item_id, item_name)
        self._require_roster_space(view, team)
        if starting_bid < 1:
            raise LocalValidationError(FailureKind.INVALID_INPUT, "Starting bid must be at least 1")
        if starting_bid > team.budget_remaining:
            raise LocalValidationError(
                FailureKind.INSUFFICIENT_BUDGET,
                f"Insufficient budget: starting bid of {starting_bid} exceeds "
                f"{team.budget_remaining} remaining",
            )
        if not MIN_AUCTION_SECONDS <= duration_seconds <= MAX_AUCTION_SECONDS:
            raise LocalValidationError(
                FailureKind.INVALID_INPUT,
                f"Auction duration must be between {MIN_AUCTION_SECONDS} "
                f"and {MAX_AUCTION_SECONDS} seconds",
            )

    def _check_join(self, view: DraftView, display_name: str, participant_id: str | None) -> None:
        if not display_name:
            raise LocalValidationError(FailureKind.INVALID_INPUT, "Display name is required")
        for participant in view.participants:
            if participant_id is not None and participant.id == participant_id:
                raise LocalValidationError(
                    FailureKind.INVALID_INPUT, "Participant has already joined this draft"
                )
            if participant.display_name.casefold() == display_name.casefold():
                raise LocalValidationError(
                    FailureKind.INVALID_INPUT, f"Display name '{display_name}' is already taken"
                )

    def _check_leave(self, view: DraftView, participant_id: str) -> None:
        if not any(p.id == participant_id for p in view.participants):
            raise LocalValidationError(
                FailureKind.NOT_FOUND, f"Participant {participant_id} is not in this draft"
            )

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _project(self, payload: Any) -> str:
        action = PendingAction(id=uuid.uuid4().hex, payload=payload, created_at=self._clock())
        self._actions[action.id] = action
        self._touch()
        logger.info(
            "ACTION_PROJECTED",
            extra={"action_id": action.id, "kind": action.kind.value, "draft_id": self.draft_id},
        )
        return action.id

    def _mark_failed(self, action: PendingAction, reason: str) -> None:
        self._actions[action.id] = replace(
            action, status=ActionStatus.FAILED, error=reason, resolved_at=self._clock()
        )
        self._touch()
        logger.warning(
            "ACTION_FAILED",
            extra={"action_id": action.id, "kind": action.kind.value, "reason": reason},
        )

    def _touch(self) -> None:
        self._revision += 1

    def _prune(self) -> None:
        """Drop resolved actions whose display grace period has elapsed."""
        now = self._clock()
        expired = [a.id for a in self._actions.values() if self._expired(a, now)]
        for action_id in expired:
            del self._actions[action_id]
        if expired:
            self._touch()

    def _expired(self, action: PendingAction, now: datetime) -> bool:
        if action.resolved_at is None:
            return False
        if action.status == ActionStatus.CONFIRMED:
            return action.matched and now - action.resolved_at >= self.confirm_grace
        if action.status == ActionStatus.FAILED:
            return now - action.resolved_at >= self.failure_grace
        return False

    def _compose(self) -> DraftView:
        projected = [a for a in self._actions.values() if a.is_projected]

        picks = list(self._picks.values())
        pending_picks: dict[str, list[Pick]] = {}
        for action in projected:
            payload = action.payload
            if isinstance(payload, PickPayload):
                temp = Pick(
                    id=action.temp_id,
                    draft_id=self._draft.id,
                    team_id=payload.team_id,
                    item_id=payload.item_id,
                    item_name=payload.item_name,
                    cost=payload.cost,
                    pick_order=len(picks) + 1,
                    round=payload.round,
                    created_at=action.created_at,
                )
                picks.append(temp)
                pending_picks.setdefault(payload.team_id, []).append(temp)

        confirmed_picks: dict[str, list[Pick]] = {}
        for pick in sorted(self._picks.values(), key=lambda p: p.pick_order):
            confirmed_picks.setdefault(pick.team_id, []).append(pick)

        teams = []
        for team in self._teams.values():
            # a pick can arrive before the team row that charges it
            charged = confirmed_picks.get(team.id, [])
            budget = min(team.budget_remaining, team.initial_budget - sum(p.cost for p in charged))
            pick_ids = team.pick_ids + tuple(p.id for p in charged if p.id not in team.pick_ids)

            own = pending_picks.get(team.id, [])
            budget -= sum(p.cost for p in own)
            pick_ids += tuple(p.id for p in own)
            if budget != team.budget_remaining or pick_ids != team.pick_ids:
                team = replace(team, budget_remaining=max(0, budget), pick_ids=pick_ids)
            teams.append(team)

        auctions = []
        for auction in self._auctions.values():
            overlay = self._bid_overlays.get(auction.id)
            if overlay is not None and auction.is_active:
                auction = replace(auction, current_bid=overlay[0], current_bidder=overlay[1])
            auctions.append(auction)

        bids = list(self._bids.values())
        participants = dict(self._participants)

        for action in projected:
            payload = action.payload
            if isinstance(payload, NominatePayload):
                auctions.append(
                    Auction(
                        id=action.temp_id,
                        draft_id=self._draft.id,
                        item_id=payload.item_id,
                        item_name=payload.item_name,
                        nominated_by=payload.team_id,
                        current_bid=payload.starting_bid,
                        current_bidder=payload.team_id,
                        auction_end=(
                            action.created_at + timedelta(seconds=payload.duration_seconds)
                            if action.created_at
                            else None
                        ),
                        status=AuctionStatus.ACTIVE,
                    )
                )
            elif isinstance(payload, BidPayload):
                bids.append(
                    BidHistoryEntry(
                        id=action.temp_id,
                        auction_id=payload.auction_id,
                        team_id=payload.team_id,
                        amount=payload.amount,
                        team_name=payload.team_name,
                        timestamp=action.created_at,
                    )
                )
            elif isinstance(payload, JoinPayload):
                participant_id = payload.participant_id or action.temp_id
                participants[participant_id] = Participant(
                    id=participant_id,
                    draft_id=self._draft.id,
                    display_name=payload.display_name,
                )
            elif isinstance(payload, LeavePayload):
                participants.pop(payload.participant_id, None)

        return DraftView(
            draft=self._draft,
            teams=tuple(teams),
            picks=tuple(picks),
            auctions=tuple(auctions),
            bid_history=tuple(bids),
            participants=tuple(participants.values()),
            pending_actions=tuple(self._actions.values()),
            revision=self._revision,
        )
