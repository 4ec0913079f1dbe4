"""
Derived-state selectors over a DraftView.

Selectors are pure functions of a view. SelectorCache memoizes their
results per view revision: a new revision drops every cached value, so
invalidation never depends on object identity.
"""

from collections.abc import Callable
from typing import Any, TypeVar

from draftkeeper.models.actions import ActionStatus, PendingAction
from draftkeeper.models.draft import Auction, DraftKind, Pick, RosterSummary, summarize_team
from draftkeeper.models.sync import DraftView
from draftkeeper.services.draft_order import current_team_id, is_draft_complete

T = TypeVar("T")


class SelectorCache:
    """Revision-keyed memo for selector results."""

    def __init__(self) -> None:
        self._revision: int | None = None
        self._values: dict[Callable[[DraftView], Any], Any] = {}
        self.hits = 0
        self.misses = 0

    def get(self, view: DraftView, selector: Callable[[DraftView], T]) -> T:
        if view.revision != self._revision:
            self._values.clear()
            self._revision = view.revision

        if selector in self._values:
            self.hits += 1
            cached: T = self._values[selector]
            return cached

        self.misses += 1
        value = selector(view)
        self._values[selector] = value
        return value


def picks_by_team(view: DraftView) -> dict[str, list[Pick]]:
    grouped: dict[str, list[Pick]] = {team.id: [] for team in view.teams}
    for pick in view.picks:
        grouped.setdefault(pick.team_id, []).append(pick)
    return grouped


def drafted_item_ids(view: DraftView) -> frozenset[str]:
    """Items already taken, confirmed or pending."""
    return frozenset(pick.item_id for pick in view.picks)


def team_budgets(view: DraftView) -> dict[str, int]:
    return {team.id: team.budget_remaining for team in view.teams}


def roster_summaries(view: DraftView) -> dict[str, RosterSummary]:
    return {team.id: summarize_team(team, list(view.picks)) for team in view.teams}


def active_auction(view: DraftView) -> Auction | None:
    return view.active_auction


def team_on_the_clock(view: DraftView) -> str | None:
    """Team whose turn it is in a snake draft."""
    if view.draft.kind != DraftKind.SEQUENTIAL:
        return None
    ordered = sorted(view.teams, key=lambda t: t.draft_order)
    return current_team_id(ordered, view.draft.rounds, view.draft.current_turn)


def pending_actions(view: DraftView) -> list[PendingAction]:
    return [a for a in view.pending_actions if a.status == ActionStatus.PENDING]


def failed_actions(view: DraftView) -> list[PendingAction]:
    return [a for a in view.pending_actions if a.status == ActionStatus.FAILED]


def draft_complete(view: DraftView) -> bool:
    return is_draft_complete(view.draft, view.teams)
