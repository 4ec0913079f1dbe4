from draftkeeper.db.database import get_session, init_db
from draftkeeper.db.operations import (
    close_expired_auctions,
    create_draft,
    delete_draft,
    get_active_auction,
    get_auction,
    get_auctions,
    get_bid_history,
    get_changes,
    get_draft,
    get_participants,
    get_picks,
    get_teams,
    join_draft,
    leave_draft,
    nominate_item,
    place_bid,
    resolve_auction,
    set_draft_status,
    start_draft,
    submit_pick,
)

__all__ = [
    "close_expired_auctions",
    "create_draft",
    "delete_draft",
    "get_active_auction",
    "get_auction",
    "get_auctions",
    "get_bid_history",
    "get_changes",
    "get_draft",
    "get_participants",
    "get_picks",
    "get_session",
    "get_teams",
    "init_db",
    "join_draft",
    "leave_draft",
    "nominate_item",
    "place_bid",
    "resolve_auction",
    "set_draft_status",
    "start_draft",
    "submit_pick",
]
