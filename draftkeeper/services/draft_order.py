"""
Draft order calculation.

Pure functions for snake (sequential) order, turn/round bookkeeping and
completion status of both draft kinds.

Snake order: round r (0-indexed) goes 1..n when r is even, n..1 when odd.
The full order is the concatenation across rounds (n * rounds slots).
Turns are 1-based.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from draftkeeper.models.draft import Draft, DraftKind, Team


@dataclass(frozen=True, slots=True)
class RoundInfo:
    round: int
    pick_in_round: int
    is_reverse_round: bool
    total_picks: int


def generate_snake_order(total_teams: int, rounds: int) -> list[int]:
    """
    Team order positions for every turn of a snake draft.

    Returns an empty list when there are no teams or no rounds.
    """
    order: list[int] = []
    if total_teams <= 0:
        return order

    ascending = list(range(1, total_teams + 1))
    for round_index in range(rounds):
        order.extend(ascending if round_index % 2 == 0 else reversed(ascending))
    return order


def total_turns(total_teams: int, rounds: int) -> int:
    return max(total_teams, 0) * max(rounds, 0)


def team_order_for_turn(order: Sequence[int], current_turn: int) -> int | None:
    """Draft order position on the clock at `current_turn`, or None if out of range."""
    if current_turn <= 0 or current_turn > len(order):
        return None
    return order[current_turn - 1]


def next_team_order(order: Sequence[int], current_turn: int) -> int | None:
    """Draft order position on the clock after `current_turn`."""
    return team_order_for_turn(order, current_turn + 1)


def round_for_turn(current_turn: int, total_teams: int) -> int:
    """1-based round of a 1-based turn."""
    return (current_turn - 1) // total_teams + 1


def pick_in_round(current_turn: int, total_teams: int) -> int:
    """1-based pick number within the turn's round."""
    return (current_turn - 1) % total_teams + 1


def round_info(current_turn: int, total_teams: int) -> RoundInfo:
    current_round = round_for_turn(current_turn, total_teams)
    return RoundInfo(
        round=current_round,
        pick_in_round=pick_in_round(current_turn, total_teams),
        is_reverse_round=current_round % 2 == 0,
        total_picks=current_turn,
    )


def current_team_id(
    teams: Sequence[Team], rounds: int, current_turn: int | None
) -> str | None:
    """Id of the team on the clock in a snake draft, or None."""
    if not teams or current_turn is None:
        return None

    order_position = team_order_for_turn(generate_snake_order(len(teams), rounds), current_turn)
    if order_position is None:
        return None

    for team in teams:
        if team.draft_order == order_position:
            return team.id
    return None


def is_sequential_complete(current_turn: int | None, order: Sequence[int]) -> bool:
    """A snake draft is complete once the turn passes the end of the order."""
    if not order:
        return True
    if current_turn is None:
        return False
    return current_turn > len(order)


def is_simultaneous_complete(teams: Sequence[Team], max_items_per_team: int) -> bool:
    """An auction draft is complete when every team is broke or full."""
    return all(
        team.budget_remaining == 0 or len(team.pick_ids) >= max_items_per_team for team in teams
    )


def is_draft_complete(draft: Draft, teams: Sequence[Team]) -> bool:
    if draft.kind == DraftKind.SEQUENTIAL:
        order = generate_snake_order(len(teams), draft.rounds)
        return is_sequential_complete(draft.current_turn, order)
    return is_simultaneous_complete(teams, draft.max_items_per_team)
