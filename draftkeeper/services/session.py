"""
Draft Session Controller — the async edge around the optimistic engine.

User intents are projected locally first, then submitted to the backend
with a timeout; the outcome confirms or fails the action. Authoritative
state arrives separately through the push channel (run) or an explicit
snapshot pull (refresh) and is handed to reconcile().

The controller is the only component that awaits network I/O.
"""

import asyncio
import contextlib
import logging
from typing import Any

from pydantic import ValidationError

from draftkeeper.channel import PushChannel
from draftkeeper.client.rpc import DraftBackend
from draftkeeper.config import settings
from draftkeeper.models.actions import (
    ActionPayload,
    BidPayload,
    JoinPayload,
    NominatePayload,
    PendingAction,
    PickPayload,
)
from draftkeeper.models.failure import RpcError
from draftkeeper.models.item import DraftItem
from draftkeeper.models.sync import DraftView, ServerSnapshot
from draftkeeper.services.optimistic import OptimisticUpdateEngine

logger = logging.getLogger(__name__)

TIMEOUT_REASON = "Request timed out"


class DraftSessionController:
    """
    Drives one client's draft session.

    Args:
        engine: Optimistic engine holding this session's state
        backend: Authoritative backend client
        channel: Push channel consumed by run(); optional for pull-only clients
        timeout: Seconds before an unanswered submission fails
    """

    def __init__(
        self,
        engine: OptimisticUpdateEngine,
        backend: DraftBackend,
        channel: PushChannel | None = None,
        timeout: float | None = None,
    ):
        self.engine = engine
        self.backend = backend
        self.channel = channel
        self.timeout = timeout if timeout is not None else settings.rpc_timeout_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def draft_id(self) -> str:
        return self.engine.draft_id

    def state(self) -> DraftView:
        return self.engine.current_state()

    # --- Intents ---
    # Each raises LocalValidationError before any network call when the
    # intent is rejected locally, and returns the action id otherwise.

    async def pick(self, item: DraftItem, team_id: str) -> str:
        action_id = self.engine.apply_pick(item, team_id)
        await self._submit(action_id)
        return action_id

    async def bid(self, auction_id: str, team_id: str, amount: int) -> str:
        action_id = self.engine.apply_bid(auction_id, team_id, amount)
        await self._submit(action_id)
        return action_id

    async def nominate(
        self,
        item: DraftItem,
        team_id: str,
        starting_bid: int = 1,
        duration_seconds: int = 30,
    ) -> str:
        action_id = self.engine.apply_nomination(item, team_id, starting_bid, duration_seconds)
        await self._submit(action_id)
        return action_id

    async def join(self, display_name: str, participant_id: str | None = None) -> str:
        action_id = self.engine.apply_join(display_name, participant_id)
        await self._submit(action_id)
        return action_id

    async def leave(self, participant_id: str) -> str:
        action_id = self.engine.apply_leave(participant_id)
        await self._submit(action_id)
        return action_id

    async def retry(self, action_id: str) -> PendingAction:
        """
        Resubmit a failed action.

        Raises:
            RetryLimitExceededError: If the action was retried too often
            LocalValidationError: If the action is no longer valid
        """
        retried = self.engine.retry(action_id)
        await self._submit(action_id)
        return self.engine.get_action(action_id) or retried

    async def _submit(self, action_id: str) -> None:
        action = self.engine.get_action(action_id)
        if action is None:
            return
        try:
            await asyncio.wait_for(self._call(action.payload), timeout=self.timeout)
        except TimeoutError:
            logger.warning("RPC_TIMED_OUT", extra={"action_id": action_id, "timeout": self.timeout})
            self.engine.fail(action_id, TIMEOUT_REASON)
        except RpcError as e:
            self.engine.fail(action_id, e.message)
        else:
            self.engine.confirm(action_id)

    async def _call(self, payload: ActionPayload) -> Any:
        if isinstance(payload, PickPayload):
            return await self.backend.submit_pick(
                self.draft_id, payload.team_id, payload.item_id, payload.item_name, payload.cost
            )
        if isinstance(payload, BidPayload):
            return await self.backend.submit_bid(payload.auction_id, payload.team_id, payload.amount)
        if isinstance(payload, NominatePayload):
            return await self.backend.submit_nomination(
                self.draft_id,
                payload.team_id,
                payload.item_id,
                payload.item_name,
                payload.starting_bid,
                payload.duration_seconds,
            )
        if isinstance(payload, JoinPayload):
            return await self.backend.submit_join(
                self.draft_id, payload.display_name, payload.participant_id
            )
        return await self.backend.submit_leave(self.draft_id, payload.participant_id)

    # --- Authoritative state ---

    async def refresh(self) -> DraftView:
        """
        Pull a full snapshot from the backend and reconcile it.

        Raises:
            RpcError: If any fetch fails; local state is left untouched
        """
        draft, teams, picks, participants, auctions = await asyncio.gather(
            self.backend.fetch_draft(self.draft_id),
            self.backend.fetch_teams(self.draft_id),
            self.backend.fetch_picks(self.draft_id),
            self.backend.fetch_participants(self.draft_id),
            self.backend.fetch_auctions(self.draft_id),
        )
        histories = await asyncio.gather(
            *(self.backend.fetch_bid_history(a.id) for a in auctions)
        )

        self.engine.reconcile(
            ServerSnapshot(
                draft=draft,
                teams=tuple(teams),
                picks=tuple(picks),
                auctions=tuple(auctions),
                bid_history=tuple(b for history in histories for b in history),
                participants=tuple(participants),
            )
        )
        logger.info(
            "SNAPSHOT_RECONCILED",
            extra={"draft_id": self.draft_id, "teams": len(teams), "picks": len(picks)},
        )
        return self.engine.current_state()

    async def run(self) -> None:
        """
        Reconcile every event from the push channel until it closes.

        Malformed events are logged and skipped.
        """
        if self.channel is None:
            raise RuntimeError("No push channel configured for this session")

        async for event in self.channel.subscribe(self.draft_id):
            try:
                self.engine.reconcile(event)
            except ValidationError:
                logger.warning(
                    "CHANGE_EVENT_INVALID",
                    extra={
                        "draft_id": self.draft_id,
                        "entity_kind": event.entity_kind.value,
                        "sequence": event.sequence,
                    },
                    exc_info=True,
                )
        logger.info("PUSH_CHANNEL_CLOSED", extra={"draft_id": self.draft_id})

    def start(self) -> None:
        """Run the reconciliation loop in a background task."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
