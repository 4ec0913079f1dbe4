from draftkeeper.models.actions import (
    ActionKind,
    ActionPayload,
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
    RosterSummary,
    Team,
    can_transition,
    is_temp_id,
)
from draftkeeper.models.failure import (
    STANDARD_MESSAGES,
    ApiResponse,
    DraftStateError,
    FailureDetail,
    FailureKind,
    KnownError,
    LocalValidationError,
    OutcomeType,
    ReconciliationConflict,
    RetryLimitExceededError,
    RpcError,
    UnknownFormatError,
    create_success,
    create_unknown_failure,
    finalize_response,
    is_finalized,
)
from draftkeeper.models.format import CostConfig, CostKind, Format, FormatCategory, FormatRuleset
from draftkeeper.models.item import DraftItem, SpecialCategory
from draftkeeper.models.sync import ChangeEvent, ChangeType, DraftView, EntityKind, ServerSnapshot

__all__ = [
    "ActionKind",
    "ActionPayload",
    "ActionStatus",
    "ApiResponse",
    "Auction",
    "AuctionStatus",
    "BidHistoryEntry",
    "BidPayload",
    "ChangeEvent",
    "ChangeType",
    "CostConfig",
    "CostKind",
    "Draft",
    "DraftItem",
    "DraftKind",
    "DraftStateError",
    "DraftStatus",
    "DraftView",
    "EntityKind",
    "FailureDetail",
    "FailureKind",
    "Format",
    "FormatCategory",
    "FormatRuleset",
    "JoinPayload",
    "KnownError",
    "LeavePayload",
    "LocalValidationError",
    "NominatePayload",
    "OutcomeType",
    "Participant",
    "PendingAction",
    "Pick",
    "PickPayload",
    "ReconciliationConflict",
    "RetryLimitExceededError",
    "RosterSummary",
    "RpcError",
    "STANDARD_MESSAGES",
    "ServerSnapshot",
    "SpecialCategory",
    "Team",
    "UnknownFormatError",
    "can_transition",
    "create_success",
    "create_unknown_failure",
    "finalize_response",
    "is_finalized",
    "is_temp_id",
]
