"""Tests for the draft session controller."""

import asyncio
from dataclasses import replace

import pytest

from draftkeeper.channel import InMemoryPushChannel
from draftkeeper.models.actions import ActionStatus
from draftkeeper.models.draft import Draft, DraftStatus, Participant, Pick, Team
from draftkeeper.models.failure import FailureKind, LocalValidationError, RpcError
from draftkeeper.models.format import Format
from draftkeeper.models.item import DraftItem
from draftkeeper.models.sync import ChangeEvent, ChangeType, EntityKind, to_payload
from draftkeeper.services.optimistic import OptimisticUpdateEngine
from draftkeeper.services.session import TIMEOUT_REASON, DraftSessionController


class FakeBackend:
    """Records submissions and serves a mutable authoritative state."""

    def __init__(self, draft: Draft, teams: list[Team]):
        self.draft = draft
        self.teams = list(teams)
        self.picks: list[Pick] = []
        self.participants: list[Participant] = []
        self.calls: list[tuple] = []
        self.error: RpcError | None = None
        self.delay = 0.0

    async def _respond(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error

    async def submit_pick(self, draft_id, team_id, item_id, item_name, cost):
        await self._respond("submit_pick", draft_id, team_id, item_id, item_name, cost)
        pick = Pick(
            id=f"pick-{len(self.picks) + 1}",
            draft_id=draft_id,
            team_id=team_id,
            item_id=item_id,
            item_name=item_name,
            cost=cost,
            pick_order=len(self.picks) + 1,
            round=1,
        )
        self.picks.append(pick)
        self.teams = [
            replace(t, budget_remaining=t.budget_remaining - cost, pick_ids=t.pick_ids + (pick.id,))
            if t.id == team_id
            else t
            for t in self.teams
        ]
        return pick

    async def submit_join(self, draft_id, display_name, participant_id=None):
        await self._respond("submit_join", draft_id, display_name, participant_id)
        participant = Participant(
            id=participant_id or f"p-{len(self.participants) + 1}",
            draft_id=draft_id,
            display_name=display_name,
        )
        self.participants.append(participant)
        return participant

    async def fetch_draft(self, draft_id):
        return self.draft

    async def fetch_teams(self, draft_id):
        return list(self.teams)

    async def fetch_picks(self, draft_id):
        return list(self.picks)

    async def fetch_participants(self, draft_id):
        return list(self.participants)

    async def fetch_auctions(self, draft_id):
        return []

    async def fetch_bid_history(self, auction_id):
        return []


@pytest.fixture
def engine(sequential_draft: Draft, simple_format: Format, two_teams: list[Team]):
    return OptimisticUpdateEngine(sequential_draft, simple_format, teams=two_teams)


@pytest.fixture
def backend(sequential_draft: Draft, two_teams: list[Team]) -> FakeBackend:
    return FakeBackend(sequential_draft, two_teams)


@pytest.fixture
def controller(engine: OptimisticUpdateEngine, backend: FakeBackend) -> DraftSessionController:
    return DraftSessionController(engine, backend, timeout=1)


class TestSubmission:
    async def test_accepted_pick_confirms(
        self, controller: DraftSessionController, backend: FakeBackend, strong_item: DraftItem
    ) -> None:
        """An accepted pick is confirmed and stays projected until observed."""
        action_id = await controller.pick(strong_item, "team-a")

        assert backend.calls == [("submit_pick", "draft-1", "team-a", "garchomp", "Garchomp", 15)]
        assert controller.engine.get_action(action_id).status == ActionStatus.CONFIRMED
        assert controller.state().team("team-a").budget_remaining == 85

    async def test_rejected_pick_rolls_back(
        self, controller: DraftSessionController, backend: FakeBackend, strong_item: DraftItem
    ) -> None:
        """A backend rejection fails the action with the backend's message."""
        backend.error = RpcError(
            "It is not Alpha's turn", kind=FailureKind.NOT_YOUR_TURN, status_code=409
        )

        action_id = await controller.pick(strong_item, "team-a")

        action = controller.engine.get_action(action_id)
        assert action.status == ActionStatus.FAILED
        assert action.error == "It is not Alpha's turn"
        assert controller.state().team("team-a").budget_remaining == 100
        assert controller.state().picks == ()

    async def test_timeout_fails_action(
        self, engine: OptimisticUpdateEngine, backend: FakeBackend, strong_item: DraftItem
    ) -> None:
        """An unanswered call fails once the timeout elapses."""
        backend.delay = 1
        controller = DraftSessionController(engine, backend, timeout=0.01)

        action_id = await controller.pick(strong_item, "team-a")

        assert engine.get_action(action_id).error == TIMEOUT_REASON

    async def test_local_rejection_skips_backend(
        self, controller: DraftSessionController, backend: FakeBackend
    ) -> None:
        """Intents rejected locally never reach the backend."""
        banned = DraftItem(id="banned-mon", name="Banned Mon", stat_total=700)

        with pytest.raises(LocalValidationError):
            await controller.pick(banned, "team-a")

        assert backend.calls == []

    async def test_retry_resubmits(
        self, controller: DraftSessionController, backend: FakeBackend, strong_item: DraftItem
    ) -> None:
        """A retried action is submitted again."""
        backend.error = RpcError("Draft server returned 500")
        action_id = await controller.pick(strong_item, "team-a")
        backend.error = None

        retried = await controller.retry(action_id)

        assert retried.status == ActionStatus.CONFIRMED
        assert retried.retry_count == 1
        assert [c[0] for c in backend.calls] == ["submit_pick", "submit_pick"]

    async def test_join(self, controller: DraftSessionController, backend: FakeBackend) -> None:
        """Joins are submitted under the session's draft."""
        await controller.join("  Casey ")

        assert backend.calls == [("submit_join", "draft-1", "Casey", None)]


class TestRefresh:
    async def test_refresh_replaces_projection(
        self, controller: DraftSessionController, strong_item: DraftItem
    ) -> None:
        """A snapshot containing the pick replaces the projection."""
        action_id = await controller.pick(strong_item, "team-a")

        view = await controller.refresh()

        assert [p.id for p in view.picks] == ["pick-1"]
        assert view.team("team-a").budget_remaining == 85
        assert view.team("team-a").pick_ids == ("pick-1",)
        assert controller.engine.get_action(action_id).matched is True


class TestPushLoop:
    async def test_run_reconciles_events(
        self, engine: OptimisticUpdateEngine, backend: FakeBackend, sequential_draft: Draft
    ) -> None:
        """Published events are reconciled until the channel closes."""
        channel = InMemoryPushChannel()
        controller = DraftSessionController(engine, backend, channel=channel)
        task = asyncio.create_task(controller.run())
        await asyncio.sleep(0)

        channel.publish(
            "draft-1",
            ChangeEvent(
                entity_kind=EntityKind.DRAFT,
                change_type=ChangeType.UPDATE,
                payload=to_payload(replace(sequential_draft, status=DraftStatus.PAUSED)),
                draft_id="draft-1",
            ),
        )
        channel.close()
        await task

        assert controller.state().draft.status == DraftStatus.PAUSED

    async def test_run_skips_malformed_event(
        self, engine: OptimisticUpdateEngine, backend: FakeBackend, sequential_draft: Draft
    ) -> None:
        """An event that does not decode is skipped and the loop keeps going."""
        channel = InMemoryPushChannel()
        controller = DraftSessionController(engine, backend, channel=channel)
        task = asyncio.create_task(controller.run())
        await asyncio.sleep(0)

        channel.publish(
            "draft-1",
            ChangeEvent(
                entity_kind=EntityKind.DRAFT,
                change_type=ChangeType.UPDATE,
                payload={"id": "draft-1", "status": "not-a-status"},
                draft_id="draft-1",
            ),
        )
        channel.publish(
            "draft-1",
            ChangeEvent(
                entity_kind=EntityKind.DRAFT,
                change_type=ChangeType.UPDATE,
                payload=to_payload(replace(sequential_draft, status=DraftStatus.PAUSED)),
                draft_id="draft-1",
            ),
        )
        channel.close()
        await task

        assert controller.state().draft.status == DraftStatus.PAUSED

    async def test_stop_cancels_loop(
        self, engine: OptimisticUpdateEngine, backend: FakeBackend
    ) -> None:
        """Stopping the background loop releases the subscription."""
        channel = InMemoryPushChannel()
        controller = DraftSessionController(engine, backend, channel=channel)

        controller.start()
        await asyncio.sleep(0)
        assert channel.subscriber_count("draft-1") == 1

        await controller.stop()
        assert channel.subscriber_count("draft-1") == 0

    async def test_run_requires_channel(self, controller: DraftSessionController) -> None:
        """Pull-only sessions cannot run the push loop."""
        with pytest.raises(RuntimeError):
            await controller.run()
