import pytest

from draftkeeper.models import failure as failure_module
from draftkeeper.models.draft import Draft, DraftKind, DraftStatus, Team
from draftkeeper.models.format import CostConfig, CostKind, Format, FormatRuleset
from draftkeeper.models.item import DraftItem


@pytest.fixture(autouse=True)
def clear_finalized_responses():
    """Clear the finalized responses set between tests.

    This prevents test isolation issues where Python reuses memory
    addresses for new objects, causing id() collisions with previously
    finalized responses.
    """
    failure_module._finalized_responses.clear()
    yield
    failure_module._finalized_responses.clear()


@pytest.fixture
def simple_format() -> Format:
    """A small format: one ban, thresholds 300/500, costs clamped to [1, 20]."""
    return Format(
        id="test-format",
        name="Test Format",
        ruleset=FormatRuleset(species_clause=True, banned_items=("banned-mon",)),
        cost_config=CostConfig(
            kind=CostKind.BST, bst_tiers={300: 10, 500: 15}, min_cost=1, max_cost=20
        ),
    )


@pytest.fixture
def sequential_draft() -> Draft:
    """An active two-team snake draft on its first turn."""
    return Draft(
        id="draft-1",
        name="Test Draft",
        format_id="test-format",
        kind=DraftKind.SEQUENTIAL,
        status=DraftStatus.ACTIVE,
        team_ids=("team-a", "team-b"),
        current_turn=1,
        current_round=1,
        budget_per_team=100,
        rounds=6,
    )


@pytest.fixture
def two_teams() -> list[Team]:
    return [
        Team(id="team-a", draft_id="draft-1", name="Alpha", owner_id="p-a", draft_order=1),
        Team(id="team-b", draft_id="draft-1", name="Bravo", owner_id="p-b", draft_order=2),
    ]


@pytest.fixture
def strong_item() -> DraftItem:
    """Costs 15 under simple_format."""
    return DraftItem(id="garchomp", name="Garchomp", generation=4, stat_total=600)
