"""Tests for the optimistic update engine: projection, lifecycle and reconciliation."""

from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from draftkeeper.models.actions import ActionStatus
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
)
from draftkeeper.models.failure import (
    FailureKind,
    KnownError,
    LocalValidationError,
    RetryLimitExceededError,
    UnknownFormatError,
)
from draftkeeper.models.format import CostConfig, Format, FormatRuleset
from draftkeeper.models.item import DraftItem
from draftkeeper.models.sync import (
    ChangeEvent,
    ChangeType,
    EntityKind,
    ServerSnapshot,
    team_payload,
    to_payload,
)
from draftkeeper.services.optimistic import OptimisticUpdateEngine
from draftkeeper.services.selectors import team_budgets


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def priced_format() -> Format:
    """Fixed prices: Big A 60, Big B 50, Garchomp 15."""
    return Format(
        id="priced",
        name="Priced",
        ruleset=FormatRuleset(banned_items=("banned-mon",)),
        cost_config=CostConfig(
            bst_tiers={500: 15, 0: 5},
            cost_overrides={"big-a": 60, "big-b": 50},
            min_cost=1,
            max_cost=100,
        ),
    )


@pytest.fixture
def participants() -> list[Participant]:
    return [
        Participant(id="p-a", draft_id="draft-1", display_name="Avery", team_id="team-a"),
        Participant(id="p-b", draft_id="draft-1", display_name="Blake", team_id="team-b"),
    ]


@pytest.fixture
def engine(
    sequential_draft: Draft,
    priced_format: Format,
    two_teams: list[Team],
    participants: list[Participant],
    clock: FakeClock,
) -> OptimisticUpdateEngine:
    return OptimisticUpdateEngine(
        sequential_draft,
        priced_format,
        teams=two_teams,
        participants=participants,
        max_retries=2,
        confirm_grace=2,
        failure_grace=5,
        clock=clock,
    )


@pytest.fixture
def auction_draft(sequential_draft: Draft) -> Draft:
    return replace(sequential_draft, kind=DraftKind.SIMULTANEOUS_BID, current_turn=None)


@pytest.fixture
def open_auction() -> Auction:
    return Auction(
        id="auc-1",
        draft_id="draft-1",
        item_id="dragonite",
        item_name="Dragonite",
        nominated_by="team-b",
        current_bid=50,
        current_bidder="team-b",
        auction_end=datetime(2026, 1, 1, 12, 1, tzinfo=UTC),
    )


@pytest.fixture
def auction_engine(
    auction_draft: Draft,
    priced_format: Format,
    two_teams: list[Team],
    open_auction: Auction,
    clock: FakeClock,
) -> OptimisticUpdateEngine:
    return OptimisticUpdateEngine(
        auction_draft,
        priced_format,
        teams=two_teams,
        auctions=[open_auction],
        confirm_grace=2,
        failure_grace=5,
        clock=clock,
    )


GARCHOMP = DraftItem(id="garchomp", name="Garchomp", stat_total=600)
BIG_A = DraftItem(id="big-a", name="Big A")
BIG_B = DraftItem(id="big-b", name="Big B")


def _server_pick(team_id: str, item: DraftItem, cost: int, pick_id: str = "pick-1") -> Pick:
    return Pick(
        id=pick_id,
        draft_id="draft-1",
        team_id=team_id,
        item_id=item.id,
        item_name=item.name,
        cost=cost,
        pick_order=1,
        round=1,
    )


def _pick_events(team: Team, pick: Pick) -> list[ChangeEvent]:
    """Feed entries the backend writes for one pick: team, then pick."""
    charged = replace(
        team,
        budget_remaining=team.budget_remaining - pick.cost,
        pick_ids=team.pick_ids + (pick.id,),
    )
    return [
        ChangeEvent(
            EntityKind.TEAM, ChangeType.UPDATE, team_payload(charged, [pick]), draft_id="draft-1"
        ),
        ChangeEvent(EntityKind.PICK, ChangeType.INSERT, to_payload(pick), draft_id="draft-1"),
    ]


class TestConstruction:
    def test_unknown_format_is_fatal(self, sequential_draft: Draft) -> None:
        """An engine cannot be built for an unknown format id."""
        draft = replace(sequential_draft, format_id="no-such-format")

        with pytest.raises(UnknownFormatError):
            OptimisticUpdateEngine(draft)

    def test_initial_view_is_authoritative(self, engine: OptimisticUpdateEngine) -> None:
        """Before any intent the view is the authoritative state."""
        view = engine.current_state()

        assert view.draft.id == "draft-1"
        assert [t.id for t in view.teams] == ["team-a", "team-b"]
        assert view.picks == ()
        assert view.pending_actions == ()


class TestApplyPick:
    def test_projects_temporary_pick(self, engine: OptimisticUpdateEngine) -> None:
        """A legal pick appears at once with a temporary id and charged budget."""
        action_id = engine.apply_pick(GARCHOMP, "team-a")

        view = engine.current_state()
        assert len(view.picks) == 1
        pick = view.picks[0]
        assert pick.id == f"temp-{action_id}"
        assert pick.is_pending is True
        assert pick.cost == 15
        assert view.team("team-a").budget_remaining == 85
        assert view.team("team-a").pick_ids == (pick.id,)
        assert engine.get_action(action_id).status == ActionStatus.PENDING

    def test_illegal_item_rejected_verbatim(self, engine: OptimisticUpdateEngine) -> None:
        """The rules engine's reason is the error message; nothing is projected."""
        with pytest.raises(LocalValidationError) as exc_info:
            engine.apply_pick(DraftItem(id="banned-mon", name="Banned Mon"), "team-a")

        assert exc_info.value.kind == FailureKind.ITEM_ILLEGAL
        assert exc_info.value.message == "Banned Mon is banned in Priced"
        assert engine.current_state().pending_actions == ()

    def test_second_pick_over_budget_rejected(self, engine: OptimisticUpdateEngine) -> None:
        """Budget 100, confirmed pick of 60, then a pick of 50 is rejected locally."""
        first = engine.apply_pick(BIG_A, "team-a")
        engine.confirm(first)

        with pytest.raises(LocalValidationError) as exc_info:
            engine.apply_pick(BIG_B, "team-a")

        assert exc_info.value.kind == FailureKind.INSUFFICIENT_BUDGET
        assert exc_info.value.message == "Insufficient budget: Big B costs 50, 40 remaining"
        assert len(engine.current_state().picks) == 1

    def test_duplicate_item_rejected(self, engine: OptimisticUpdateEngine) -> None:
        """An item pending for one team cannot be picked by another."""
        engine.apply_pick(GARCHOMP, "team-a")

        with pytest.raises(LocalValidationError) as exc_info:
            engine.apply_pick(GARCHOMP, "team-b")

        assert exc_info.value.kind == FailureKind.DUPLICATE_ITEM
        assert exc_info.value.message == "Garchomp has already been drafted"

    def test_roster_full(
        self, sequential_draft: Draft, priced_format: Format, two_teams: list[Team]
    ) -> None:
        """A team at the roster cap cannot pick again."""
        draft = replace(sequential_draft, rounds=1)
        engine = OptimisticUpdateEngine(draft, priced_format, teams=two_teams)
        engine.apply_pick(GARCHOMP, "team-a")

        with pytest.raises(LocalValidationError) as exc_info:
            engine.apply_pick(BIG_B, "team-a")

        assert exc_info.value.kind == FailureKind.ROSTER_FULL
        assert exc_info.value.message == "Alpha already has 1 items"

    def test_draft_not_active(
        self, sequential_draft: Draft, priced_format: Format, two_teams: list[Team]
    ) -> None:
        """Picks are rejected while the draft is paused."""
        draft = replace(sequential_draft, status=DraftStatus.PAUSED)
        engine = OptimisticUpdateEngine(draft, priced_format, teams=two_teams)

        with pytest.raises(LocalValidationError) as exc_info:
            engine.apply_pick(GARCHOMP, "team-a")

        assert exc_info.value.kind == FailureKind.DRAFT_NOT_ACTIVE
        assert exc_info.value.message == "Draft is paused, not active"

    def test_unknown_team(self, engine: OptimisticUpdateEngine) -> None:
        """Picks for a team outside the draft are rejected."""
        with pytest.raises(LocalValidationError) as exc_info:
            engine.apply_pick(GARCHOMP, "team-z")

        assert exc_info.value.kind == FailureKind.TEAM_NOT_FOUND


class TestLifecycle:
    def test_confirm_keeps_projection_until_matched(
        self, engine: OptimisticUpdateEngine, clock: FakeClock
    ) -> None:
        """A confirmed action stays visible until its entity arrives."""
        action_id = engine.apply_pick(GARCHOMP, "team-a")
        engine.confirm(action_id)
        clock.advance(60)

        view = engine.current_state()
        assert engine.get_action(action_id).status == ActionStatus.CONFIRMED
        assert len(view.picks) == 1
        assert view.team("team-a").budget_remaining == 85

    def test_fail_rolls_back(self, engine: OptimisticUpdateEngine) -> None:
        """A failed pick is removed and the budget restored."""
        action_id = engine.apply_pick(GARCHOMP, "team-a")

        engine.fail(action_id, "Network unreachable")

        view = engine.current_state()
        assert view.picks == ()
        assert view.team("team-a").budget_remaining == 100
        action = engine.get_action(action_id)
        assert action.status == ActionStatus.FAILED
        assert action.error == "Network unreachable"

    def test_failed_action_pruned_after_grace(
        self, engine: OptimisticUpdateEngine, clock: FakeClock
    ) -> None:
        """Failed actions stay visible for the failure grace period only."""
        action_id = engine.apply_pick(GARCHOMP, "team-a")
        engine.fail(action_id, "Request timed out")

        clock.advance(4)
        assert len(engine.current_state().pending_actions) == 1

        clock.advance(1)
        assert engine.current_state().pending_actions == ()
        assert engine.get_action(action_id) is None

    def test_matched_action_pruned_after_confirm_grace(
        self, engine: OptimisticUpdateEngine, two_teams: list[Team], clock: FakeClock
    ) -> None:
        """Confirmed and matched actions disappear after the confirm grace."""
        action_id = engine.apply_pick(GARCHOMP, "team-a")
        engine.confirm(action_id)
        for event in _pick_events(two_teams[0], _server_pick("team-a", GARCHOMP, 15)):
            engine.reconcile(event)

        assert len(engine.current_state().pending_actions) == 1
        clock.advance(2)
        assert engine.current_state().pending_actions == ()

    def test_confirm_grace_counts_from_match(
        self, engine: OptimisticUpdateEngine, two_teams: list[Team], clock: FakeClock
    ) -> None:
        """A pick matched long after its confirmation stays visible for the full grace."""
        action_id = engine.apply_pick(GARCHOMP, "team-a")
        engine.confirm(action_id)
        clock.advance(10)

        for event in _pick_events(two_teams[0], _server_pick("team-a", GARCHOMP, 15)):
            engine.reconcile(event)

        assert engine.get_action(action_id).resolved_at == clock.now
        clock.advance(1)
        assert len(engine.current_state().pending_actions) == 1
        clock.advance(1)
        assert engine.get_action(action_id) is None

    def test_confirm_and_fail_ignore_resolved_actions(self, engine: OptimisticUpdateEngine) -> None:
        """Only pending actions can be confirmed or failed."""
        action_id = engine.apply_pick(GARCHOMP, "team-a")
        engine.fail(action_id, "first")

        engine.confirm(action_id)
        engine.fail(action_id, "second")
        engine.confirm("unknown")

        action = engine.get_action(action_id)
        assert action.status == ActionStatus.FAILED
        assert action.error == "first"


class TestRetry:
    def test_retry_reprojects(self, engine: OptimisticUpdateEngine) -> None:
        """A retried action is pending again and projected again."""
        action_id = engine.apply_pick(GARCHOMP, "team-a")
        engine.fail(action_id, "Request timed out")

        retried = engine.retry(action_id)

        assert retried.status == ActionStatus.PENDING
        assert retried.retry_count == 1
        assert retried.error is None
        assert engine.current_state().team("team-a").budget_remaining == 85

    def test_retry_limit(self, engine: OptimisticUpdateEngine) -> None:
        """Retries stop at max_retries."""
        action_id = engine.apply_pick(GARCHOMP, "team-a")
        for _ in range(2):
            engine.fail(action_id, "Request timed out")
            engine.retry(action_id)
        engine.fail(action_id, "Request timed out")

        with pytest.raises(RetryLimitExceededError) as exc_info:
            engine.retry(action_id)

        assert exc_info.value.kind == FailureKind.RETRY_LIMIT_EXCEEDED

    def test_retry_revalidates(
        self, engine: OptimisticUpdateEngine, two_teams: list[Team]
    ) -> None:
        """A retry against state where the item is gone is rejected."""
        action_id = engine.apply_pick(GARCHOMP, "team-a")
        engine.fail(action_id, "Request timed out")
        for event in _pick_events(two_teams[1], _server_pick("team-b", GARCHOMP, 15)):
            engine.reconcile(event)

        with pytest.raises(LocalValidationError) as exc_info:
            engine.retry(action_id)

        assert exc_info.value.kind == FailureKind.DUPLICATE_ITEM
        assert engine.get_action(action_id).status == ActionStatus.FAILED

    def test_only_failed_actions_retry(self, engine: OptimisticUpdateEngine) -> None:
        """Pending actions cannot be retried."""
        action_id = engine.apply_pick(GARCHOMP, "team-a")

        with pytest.raises(LocalValidationError) as exc_info:
            engine.retry(action_id)

        assert exc_info.value.kind == FailureKind.INVALID_INPUT

    def test_unknown_action(self, engine: OptimisticUpdateEngine) -> None:
        """Retrying an unknown action is a 404."""
        with pytest.raises(KnownError) as exc_info:
            engine.retry("missing")

        assert exc_info.value.kind == FailureKind.ACTION_NOT_FOUND
        assert exc_info.value.status_code == 404


class TestReconcilePicks:
    def test_round_trip_leaves_no_duplicate(
        self, engine: OptimisticUpdateEngine, two_teams: list[Team]
    ) -> None:
        """The temporary pick is replaced by the server pick exactly once."""
        action_id = engine.apply_pick(GARCHOMP, "team-a")
        engine.confirm(action_id)

        for event in _pick_events(two_teams[0], _server_pick("team-a", GARCHOMP, 15)):
            engine.reconcile(event)

        view = engine.current_state()
        assert [p.id for p in view.picks] == ["pick-1"]
        assert view.team("team-a").budget_remaining == 85
        assert view.team("team-a").pick_ids == ("pick-1",)
        action = engine.get_action(action_id)
        assert action.status == ActionStatus.CONFIRMED
        assert action.matched is True

    def test_push_before_rpc_response(
        self, engine: OptimisticUpdateEngine, two_teams: list[Team]
    ) -> None:
        """The authoritative entity can confirm an action before the RPC returns."""
        action_id = engine.apply_pick(GARCHOMP, "team-a")

        for event in _pick_events(two_teams[0], _server_pick("team-a", GARCHOMP, 15)):
            engine.reconcile(event)
        engine.confirm(action_id)

        assert engine.get_action(action_id).status == ActionStatus.CONFIRMED
        assert len(engine.current_state().picks) == 1

    def test_snapshot_reconcile_is_idempotent(
        self, engine: OptimisticUpdateEngine, two_teams: list[Team]
    ) -> None:
        """Reconciling the same snapshot twice equals reconciling it once."""
        engine.apply_pick(BIG_B, "team-a")
        pick = _server_pick("team-b", GARCHOMP, 15)
        snapshot = ServerSnapshot(
            teams=(two_teams[0], replace(two_teams[1], budget_remaining=85, pick_ids=("pick-1",))),
            picks=(pick,),
        )

        engine.reconcile(snapshot)
        once = engine.current_state()
        engine.reconcile(snapshot)
        twice = engine.current_state()

        assert once == twice
        assert twice.revision > once.revision

    def test_event_redelivery_is_idempotent(
        self, engine: OptimisticUpdateEngine, two_teams: list[Team]
    ) -> None:
        """The same change event applied twice is a no-op the second time."""
        engine.apply_pick(GARCHOMP, "team-a")
        events = _pick_events(two_teams[0], _server_pick("team-a", GARCHOMP, 15))

        for event in events:
            engine.reconcile(event)
        once = engine.current_state()
        for event in events:
            engine.reconcile(event)

        assert engine.current_state() == once

    def test_two_clients_conflicting_picks(
        self,
        sequential_draft: Draft,
        priced_format: Format,
        two_teams: list[Team],
    ) -> None:
        """Both clients project the same item; the backend's winner stands."""
        client_a = OptimisticUpdateEngine(sequential_draft, priced_format, teams=two_teams)
        client_b = OptimisticUpdateEngine(sequential_draft, priced_format, teams=two_teams)
        action_a = client_a.apply_pick(GARCHOMP, "team-a")
        action_b = client_b.apply_pick(GARCHOMP, "team-b")

        winning = _server_pick("team-a", GARCHOMP, 15)
        snapshot = ServerSnapshot(
            teams=(replace(two_teams[0], budget_remaining=85, pick_ids=("pick-1",)), two_teams[1]),
            picks=(winning,),
        )
        client_a.reconcile(snapshot)
        client_b.reconcile(snapshot)

        assert client_a.get_action(action_a).matched is True
        loser = client_b.get_action(action_b)
        assert loser.status == ActionStatus.FAILED
        assert loser.error == "Garchomp is no longer available"
        for view in (client_a.current_state(), client_b.current_state()):
            assert [p.id for p in view.picks] == ["pick-1"]
            assert view.team("team-b").budget_remaining == 100

    def test_unrelated_pick_keeps_action_pending(
        self, engine: OptimisticUpdateEngine, two_teams: list[Team]
    ) -> None:
        """Picks of other items neither match nor contradict."""
        action_id = engine.apply_pick(GARCHOMP, "team-a")

        for event in _pick_events(two_teams[1], _server_pick("team-b", BIG_B, 50)):
            engine.reconcile(event)

        assert engine.get_action(action_id).status == ActionStatus.PENDING
        assert len(engine.current_state().picks) == 2

    def test_events_for_other_drafts_ignored(self, engine: OptimisticUpdateEngine) -> None:
        """Only this draft's topic is applied."""
        pick = replace(_server_pick("team-a", GARCHOMP, 15), draft_id="draft-2")

        engine.reconcile(
            ChangeEvent(EntityKind.PICK, ChangeType.INSERT, to_payload(pick), draft_id="draft-2")
        )

        assert engine.current_state().picks == ()

    def test_draft_event_replaces_draft(
        self, engine: OptimisticUpdateEngine, sequential_draft: Draft
    ) -> None:
        """Draft updates advance the turn in the view."""
        advanced = replace(sequential_draft, current_turn=2)

        engine.reconcile(ChangeEvent(EntityKind.DRAFT, ChangeType.UPDATE, to_payload(advanced)))

        assert engine.current_state().draft.current_turn == 2

    def test_pick_before_team_row_keeps_budget_charged(
        self, engine: OptimisticUpdateEngine
    ) -> None:
        """A confirmed pick seen before its team row still counts against the budget."""
        action_id = engine.apply_pick(BIG_A, "team-a")
        engine.confirm(action_id)

        pick = _server_pick("team-a", BIG_A, 60)
        engine.reconcile(
            ChangeEvent(EntityKind.PICK, ChangeType.INSERT, to_payload(pick), draft_id="draft-1")
        )

        view = engine.current_state()
        assert engine.get_action(action_id).matched is True
        assert view.team("team-a").budget_remaining == 40
        assert view.team("team-a").pick_ids == ("pick-1",)
        with pytest.raises(LocalValidationError) as exc_info:
            engine.apply_pick(BIG_B, "team-a")
        assert exc_info.value.kind == FailureKind.INSUFFICIENT_BUDGET

    def test_snapshot_with_stale_teams(
        self, engine: OptimisticUpdateEngine, two_teams: list[Team]
    ) -> None:
        """A snapshot whose team rows predate its picks does not refund the pick."""
        engine.reconcile(
            ServerSnapshot(teams=tuple(two_teams), picks=(_server_pick("team-a", BIG_A, 60),))
        )

        assert engine.current_state().team("team-a").budget_remaining == 40

        charged = replace(two_teams[0], budget_remaining=40, pick_ids=("pick-1",))
        engine.reconcile(ServerSnapshot(teams=(charged, two_teams[1])))

        assert engine.current_state().team("team-a") == charged

    def test_late_commit_confirms_failed_action(
        self, engine: OptimisticUpdateEngine, two_teams: list[Team]
    ) -> None:
        """A timed-out pick the server committed anyway ends up confirmed."""
        action_id = engine.apply_pick(GARCHOMP, "team-a")
        engine.fail(action_id, "Request timed out")

        for event in _pick_events(two_teams[0], _server_pick("team-a", GARCHOMP, 15)):
            engine.reconcile(event)

        action = engine.get_action(action_id)
        assert action.status == ActionStatus.CONFIRMED
        assert action.matched is True
        assert action.error is None
        with pytest.raises(LocalValidationError):
            engine.retry(action_id)

    def test_failed_action_lost_to_other_team_stays_failed(
        self, engine: OptimisticUpdateEngine, two_teams: list[Team]
    ) -> None:
        """Another team's pick of the same item does not confirm a failed action."""
        action_id = engine.apply_pick(GARCHOMP, "team-a")
        engine.fail(action_id, "Request timed out")

        for event in _pick_events(two_teams[1], _server_pick("team-b", GARCHOMP, 15)):
            engine.reconcile(event)

        action = engine.get_action(action_id)
        assert action.status == ActionStatus.FAILED
        assert action.error == "Request timed out"

    def test_malformed_event_leaves_state_unchanged(self, engine: OptimisticUpdateEngine) -> None:
        """An invalid team payload raises before anything is applied."""
        before = engine.current_state()
        payload = {
            "id": "team-a",
            "draft_id": "draft-1",
            "name": "Alpha",
            "budget_remaining": "lots",
            "picks": [to_payload(_server_pick("team-a", GARCHOMP, 15))],
        }

        with pytest.raises(ValidationError):
            engine.reconcile(
                ChangeEvent(EntityKind.TEAM, ChangeType.UPDATE, payload, draft_id="draft-1")
            )

        assert engine.current_state() == before


class TestBids:
    def test_bid_below_current_rejected(self, auction_engine: OptimisticUpdateEngine) -> None:
        """A bid of 40 against a current bid of 50 is rejected."""
        with pytest.raises(LocalValidationError) as exc_info:
            auction_engine.apply_bid("auc-1", "team-a", 40)

        assert exc_info.value.kind == FailureKind.BID_TOO_LOW
        assert exc_info.value.message == "Bid must exceed current bid of 50"

    def test_equal_bid_rejected(self, auction_engine: OptimisticUpdateEngine) -> None:
        """Bids must strictly exceed the current bid."""
        with pytest.raises(LocalValidationError):
            auction_engine.apply_bid("auc-1", "team-a", 50)

    def test_bid_projects_current_bid(self, auction_engine: OptimisticUpdateEngine) -> None:
        """An accepted bid raises the auction and appends a temporary entry."""
        action_id = auction_engine.apply_bid("auc-1", "team-a", 60)

        view = auction_engine.current_state()
        auction = view.auction("auc-1")
        assert auction.current_bid == 60
        assert auction.current_bidder == "team-a"
        assert [(b.id, b.amount) for b in view.bid_history] == [(f"temp-{action_id}", 60)]

    def test_bid_against_speculative_bid(self, auction_engine: OptimisticUpdateEngine) -> None:
        """Later bids must beat the projected bid."""
        auction_engine.apply_bid("auc-1", "team-a", 60)

        with pytest.raises(LocalValidationError) as exc_info:
            auction_engine.apply_bid("auc-1", "team-b", 55)

        assert exc_info.value.message == "Bid must exceed current bid of 60"

    def test_bid_over_budget(self, auction_engine: OptimisticUpdateEngine) -> None:
        """Bids beyond the remaining budget are rejected."""
        with pytest.raises(LocalValidationError) as exc_info:
            auction_engine.apply_bid("auc-1", "team-a", 120)

        assert exc_info.value.kind == FailureKind.INSUFFICIENT_BUDGET

    def test_unknown_and_closed_auctions(
        self, auction_engine: OptimisticUpdateEngine, open_auction: Auction
    ) -> None:
        """Bids need an existing, active auction."""
        with pytest.raises(LocalValidationError) as exc_info:
            auction_engine.apply_bid("auc-9", "team-a", 60)
        assert exc_info.value.kind == FailureKind.AUCTION_NOT_FOUND

        ended = replace(open_auction, status=AuctionStatus.ENDED)
        auction_engine.reconcile(
            ChangeEvent(EntityKind.AUCTION, ChangeType.UPDATE, to_payload(ended))
        )
        with pytest.raises(LocalValidationError) as exc_info:
            auction_engine.apply_bid("auc-1", "team-a", 60)
        assert exc_info.value.kind == FailureKind.AUCTION_NOT_ACTIVE
        assert exc_info.value.message == "Auction is no longer active"

    def test_failed_bid_keeps_current_bid_until_server_state(
        self, auction_engine: OptimisticUpdateEngine, open_auction: Auction
    ) -> None:
        """Rollback drops the bid entry; the auction corrects on the next update."""
        action_id = auction_engine.apply_bid("auc-1", "team-a", 60)
        auction_engine.fail(action_id, "Bid must exceed current bid of 65")

        view = auction_engine.current_state()
        assert view.bid_history == ()
        assert view.auction("auc-1").current_bid == 60

        auction_engine.reconcile(
            ChangeEvent(EntityKind.AUCTION, ChangeType.UPDATE, to_payload(open_auction))
        )
        assert auction_engine.current_state().auction("auc-1").current_bid == 50

    def test_bid_matched_by_entry(
        self, auction_engine: OptimisticUpdateEngine, open_auction: Auction
    ) -> None:
        """The server's bid entry confirms the bid."""
        action_id = auction_engine.apply_bid("auc-1", "team-a", 60)
        entry = BidHistoryEntry(id="bid-1", auction_id="auc-1", team_id="team-a", amount=60)
        raised = replace(open_auction, current_bid=60, current_bidder="team-a")

        auction_engine.reconcile(ChangeEvent(EntityKind.BID, ChangeType.INSERT, to_payload(entry)))
        auction_engine.reconcile(
            ChangeEvent(EntityKind.AUCTION, ChangeType.UPDATE, to_payload(raised))
        )

        view = auction_engine.current_state()
        assert auction_engine.get_action(action_id).matched is True
        assert [b.id for b in view.bid_history] == ["bid-1"]
        assert view.auction("auc-1").current_bid == 60

    def test_outbid(self, auction_engine: OptimisticUpdateEngine, open_auction: Auction) -> None:
        """A higher authoritative bid fails the pending bid."""
        action_id = auction_engine.apply_bid("auc-1", "team-a", 60)
        outbid = replace(open_auction, current_bid=70, current_bidder="team-b")

        auction_engine.reconcile(
            ChangeEvent(EntityKind.AUCTION, ChangeType.UPDATE, to_payload(outbid))
        )

        action = auction_engine.get_action(action_id)
        assert action.status == ActionStatus.FAILED
        assert action.error == "Outbid: current bid is 70"
        assert auction_engine.current_state().auction("auc-1").current_bid == 70


class TestNominations:
    @pytest.fixture
    def quiet_engine(
        self,
        auction_draft: Draft,
        priced_format: Format,
        two_teams: list[Team],
        clock: FakeClock,
    ) -> OptimisticUpdateEngine:
        return OptimisticUpdateEngine(auction_draft, priced_format, teams=two_teams, clock=clock)

    def test_nomination_opens_temporary_auction(
        self, quiet_engine: OptimisticUpdateEngine, clock: FakeClock
    ) -> None:
        """The nominator is the first bidder at the starting bid."""
        action_id = quiet_engine.apply_nomination(GARCHOMP, "team-a", starting_bid=5)

        auction = quiet_engine.current_state().active_auction
        assert auction.id == f"temp-{action_id}"
        assert auction.current_bid == 5
        assert auction.current_bidder == "team-a"
        assert auction.auction_end == clock.now + timedelta(seconds=30)

    def test_one_active_auction(self, quiet_engine: OptimisticUpdateEngine) -> None:
        """A second nomination is rejected while one is active."""
        quiet_engine.apply_nomination(GARCHOMP, "team-a")

        with pytest.raises(LocalValidationError) as exc_info:
            quiet_engine.apply_nomination(BIG_B, "team-b")

        assert exc_info.value.kind == FailureKind.AUCTION_ALREADY_ACTIVE

    def test_cannot_bid_on_temporary_auction(self, quiet_engine: OptimisticUpdateEngine) -> None:
        """Bids wait for the auction to exist on the server."""
        action_id = quiet_engine.apply_nomination(GARCHOMP, "team-a")

        with pytest.raises(LocalValidationError) as exc_info:
            quiet_engine.apply_bid(f"temp-{action_id}", "team-b", 10)

        assert exc_info.value.message == "Auction has not been opened yet"

    def test_invalid_duration(self, quiet_engine: OptimisticUpdateEngine) -> None:
        """Durations outside the allowed bounds are rejected."""
        with pytest.raises(LocalValidationError) as exc_info:
            quiet_engine.apply_nomination(GARCHOMP, "team-a", duration_seconds=2)

        assert exc_info.value.kind == FailureKind.INVALID_INPUT

    def test_sequential_drafts_do_not_nominate(self, engine: OptimisticUpdateEngine) -> None:
        """Nominations only exist in auction drafts."""
        with pytest.raises(LocalValidationError) as exc_info:
            engine.apply_nomination(GARCHOMP, "team-a")

        assert exc_info.value.message == "Nominations are only used in auction drafts"

    def test_nomination_matched(self, quiet_engine: OptimisticUpdateEngine) -> None:
        """The server auction for the same item and nominator confirms it."""
        action_id = quiet_engine.apply_nomination(GARCHOMP, "team-a", starting_bid=5)
        server = Auction(
            id="auc-7",
            draft_id="draft-1",
            item_id="garchomp",
            item_name="Garchomp",
            nominated_by="team-a",
            current_bid=5,
            current_bidder="team-a",
        )

        quiet_engine.reconcile(ChangeEvent(EntityKind.AUCTION, ChangeType.INSERT, to_payload(server)))

        assert quiet_engine.get_action(action_id).matched is True
        assert [a.id for a in quiet_engine.current_state().auctions] == ["auc-7"]

    def test_nomination_conflict(self, quiet_engine: OptimisticUpdateEngine) -> None:
        """Another team's auction opening first fails the nomination."""
        action_id = quiet_engine.apply_nomination(GARCHOMP, "team-a")
        other = Auction(
            id="auc-8",
            draft_id="draft-1",
            item_id="big-b",
            item_name="Big B",
            nominated_by="team-b",
            current_bid=1,
            current_bidder="team-b",
        )

        quiet_engine.reconcile(ChangeEvent(EntityKind.AUCTION, ChangeType.INSERT, to_payload(other)))

        action = quiet_engine.get_action(action_id)
        assert action.status == ActionStatus.FAILED
        assert action.error == "Another auction is already active"


class TestMembership:
    def test_join_projects_participant(self, engine: OptimisticUpdateEngine) -> None:
        """Joining shows the participant immediately, name trimmed."""
        action_id = engine.apply_join("  Casey  ")

        names = {p.id: p.display_name for p in engine.current_state().participants}
        assert names[f"temp-{action_id}"] == "Casey"

    def test_join_validation(self, engine: OptimisticUpdateEngine) -> None:
        """Empty, taken or already seated joins are rejected."""
        with pytest.raises(LocalValidationError, match="required"):
            engine.apply_join("   ")
        with pytest.raises(LocalValidationError, match="already taken"):
            engine.apply_join("avery")
        with pytest.raises(LocalValidationError, match="already joined"):
            engine.apply_join("Dana", participant_id="p-a")

    def test_join_matched_by_name(self, engine: OptimisticUpdateEngine) -> None:
        """The server participant replaces the projection."""
        action_id = engine.apply_join("Casey")
        casey = Participant(id="p-c", draft_id="draft-1", display_name="Casey")

        engine.reconcile(
            ChangeEvent(EntityKind.PARTICIPANT, ChangeType.INSERT, to_payload(casey))
        )

        assert engine.get_action(action_id).matched is True
        names = [p.display_name for p in engine.current_state().participants]
        assert names.count("Casey") == 1

    def test_leave(self, engine: OptimisticUpdateEngine, participants: list[Participant]) -> None:
        """Leaving hides the participant until the server removes them."""
        action_id = engine.apply_leave("p-b")
        assert "p-b" not in {p.id for p in engine.current_state().participants}

        engine.reconcile(
            ChangeEvent(EntityKind.PARTICIPANT, ChangeType.DELETE, to_payload(participants[1]))
        )

        assert engine.get_action(action_id).matched is True

    def test_leave_unknown(self, engine: OptimisticUpdateEngine) -> None:
        """Only seated participants can leave."""
        with pytest.raises(LocalValidationError) as exc_info:
            engine.apply_leave("nobody")

        assert exc_info.value.kind == FailureKind.NOT_FOUND


class TestSelectors:
    def test_select_is_cached_per_revision(self, engine: OptimisticUpdateEngine) -> None:
        """Selectors run once per revision."""
        assert engine.select(team_budgets) == {"team-a": 100, "team-b": 100}
        engine.select(team_budgets)
        assert engine.selectors.hits == 1

        engine.apply_pick(GARCHOMP, "team-b")

        assert engine.select(team_budgets) == {"team-a": 100, "team-b": 85}
        assert engine.selectors.misses == 2
