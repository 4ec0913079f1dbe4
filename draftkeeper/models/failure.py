"""
Failure Classification — Draft Error Taxonomy and Response Envelope.

Every failure the engine or the backend can produce is classified into a
FailureKind and carried by a KnownError subclass:

- LocalValidationError: rejected before any network call (illegal item,
  insufficient budget, duplicate, auction already active). Not retryable.
- RpcError: the authoritative backend refused the call or could not be
  reached. Surfaced as a failed PendingAction; retryable.
- ReconciliationConflict: authoritative state contradicts an optimistic
  projection. Never raised out of reconciliation; its message becomes the
  failure reason of the losing action.
- UnknownFormatError: unknown format id. Fatal at construction time.
- DraftStateError: turn order or lifecycle violations on the backend.

API responses use the ApiResponse envelope. All user-visible responses
pass through `finalize_response()`.
"""

from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Classification of failure types."""

    # Input validation failures
    INVALID_INPUT = "invalid_input"

    # Resource failures
    NOT_FOUND = "not_found"
    DRAFT_NOT_FOUND = "draft_not_found"
    TEAM_NOT_FOUND = "team_not_found"
    AUCTION_NOT_FOUND = "auction_not_found"
    ACTION_NOT_FOUND = "action_not_found"

    # Rules violations
    ITEM_ILLEGAL = "item_illegal"
    DUPLICATE_ITEM = "duplicate_item"
    INSUFFICIENT_BUDGET = "insufficient_budget"
    ROSTER_FULL = "roster_full"

    # Auction violations
    AUCTION_ALREADY_ACTIVE = "auction_already_active"
    AUCTION_NOT_ACTIVE = "auction_not_active"
    BID_TOO_LOW = "bid_too_low"

    # Draft state violations
    DRAFT_NOT_ACTIVE = "draft_not_active"
    NOT_YOUR_TURN = "not_your_turn"
    INVALID_TRANSITION = "invalid_transition"
    DRAFT_FULL = "draft_full"

    # Format failures
    UNKNOWN_FORMAT = "unknown_format"

    # Optimistic update lifecycle
    RETRY_LIMIT_EXCEEDED = "retry_limit_exceeded"
    RECONCILIATION_CONFLICT = "reconciliation_conflict"

    # Service failures
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    SERVICE_UNAVAILABLE = "service_unavailable"

    # Unknown
    UNKNOWN = "unknown"


class OutcomeType(str, Enum):
    """High-level outcome classification."""

    SUCCESS = "success"
    KNOWN_FAILURE = "known_failure"
    UNKNOWN_FAILURE = "unknown_failure"


T = TypeVar("T")


class FailureDetail(BaseModel):
    """Detailed information about a failure."""

    kind: FailureKind = Field(
        ...,
        description="Classification of the failure",
    )
    message: str = Field(
        ...,
        description="User-appropriate explanation of what went wrong",
    )
    detail: str | None = Field(
        default=None,
        description="Additional technical detail (optional)",
    )
    suggestion: str | None = Field(
        default=None,
        description="Suggested action for the user",
    )


class ApiResponse(BaseModel, Generic[T]):
    """
    Response envelope for backend endpoints that report failures.

    Every failure is classified, so no error reaches a client unexplained.
    """

    outcome: OutcomeType = Field(
        ...,
        description="High-level classification of the result",
    )
    data: T | None = Field(
        default=None,
        description="Response data (present on success)",
    )
    failure: FailureDetail | None = Field(
        default=None,
        description="Failure details (present on non-success)",
    )


# =============================================================================
# ERROR HIERARCHY
# =============================================================================


class KnownError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclass this for errors where the system knows exactly what went wrong.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
        status_code: int = 400,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.suggestion = suggestion
        self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ApiResponse[Any]:
        """Convert to a finalized ApiResponse."""
        response: ApiResponse[Any] = ApiResponse(
            outcome=OutcomeType.KNOWN_FAILURE,
            failure=FailureDetail(
                kind=self.kind,
                message=self.message,
                detail=self.detail,
                suggestion=self.suggestion,
            ),
        )
        return finalize_response(response)


class LocalValidationError(KnownError):
    """
    A local intent was rejected before any network call.

    The message is the validation reason and is shown to the user verbatim.
    Retrying the same intent against the same state fails the same way.
    """

    def __init__(self, kind: FailureKind, message: str, detail: str | None = None):
        super().__init__(kind=kind, message=message, detail=detail, status_code=422)


class UnknownFormatError(KnownError):
    """Raised when a format id does not resolve to a known format."""

    def __init__(self, format_id: str):
        self.format_id = format_id
        super().__init__(
            kind=FailureKind.UNKNOWN_FORMAT,
            message=f"Format '{format_id}' not found",
            suggestion="Choose one of the available formats.",
            status_code=404,
        )


class DraftStateError(KnownError):
    """Raised by the backend for turn order and lifecycle violations."""

    def __init__(self, kind: FailureKind, message: str, detail: str | None = None):
        super().__init__(kind=kind, message=message, detail=detail, status_code=409)


class RpcError(KnownError):
    """
    The authoritative backend refused a call or could not be reached.

    `kind` carries the backend's classification when it sent one,
    NETWORK_ERROR or TIMEOUT otherwise.
    """

    def __init__(
        self,
        message: str,
        kind: FailureKind = FailureKind.NETWORK_ERROR,
        status_code: int = 502,
    ):
        super().__init__(
            kind=kind,
            message=message,
            suggestion="Retry the action.",
            status_code=status_code,
        )


class RetryLimitExceededError(KnownError):
    """Raised when a failed action has been retried too many times."""

    def __init__(self, action_id: str, limit: int):
        self.action_id = action_id
        self.limit = limit
        super().__init__(
            kind=FailureKind.RETRY_LIMIT_EXCEEDED,
            message=f"Action {action_id} was retried {limit} times and cannot be retried again",
            status_code=429,
        )


class ReconciliationConflict(KnownError):
    """
    Authoritative state contradicts an optimistic projection.

    Someone else won the item, opened the auction first, or outbid us.
    """

    def __init__(self, message: str):
        super().__init__(
            kind=FailureKind.RECONCILIATION_CONFLICT,
            message=message,
            status_code=409,
        )


# =============================================================================
# FAILURE AUTHORITY BOUNDARY
# =============================================================================

STANDARD_MESSAGES: dict[OutcomeType, str] = {
    OutcomeType.KNOWN_FAILURE: "The operation failed due to a known issue.",
    OutcomeType.UNKNOWN_FAILURE: (
        "The draft server failed unexpectedly. Refresh the draft and try again."
    ),
}

# Ids of responses that passed through finalize_response()
_finalized_responses: set[int] = set()


def finalize_response(response: ApiResponse[Any]) -> ApiResponse[Any]:
    """
    Finalize a response through the authority boundary.

    Raises:
        ValueError: If response structure is invalid
    """
    if response.outcome == OutcomeType.SUCCESS:
        if response.failure is not None:
            raise ValueError("Success response must not have failure details")
    else:
        if response.failure is None:
            raise ValueError(f"{response.outcome.value} response must have failure details")

    _finalized_responses.add(id(response))
    return response


def is_finalized(response: ApiResponse[Any]) -> bool:
    """Check if a response has passed through the authority boundary."""
    return id(response) in _finalized_responses


def create_unknown_failure(exception: Exception) -> ApiResponse[Any]:
    """Create a finalized unknown failure response from an exception."""
    response: ApiResponse[Any] = ApiResponse(
        outcome=OutcomeType.UNKNOWN_FAILURE,
        failure=FailureDetail(
            kind=FailureKind.UNKNOWN,
            message=STANDARD_MESSAGES[OutcomeType.UNKNOWN_FAILURE],
            detail=type(exception).__name__,
        ),
    )
    return finalize_response(response)


def create_success(data: T) -> ApiResponse[T]:
    """Create a finalized success response."""
    response = ApiResponse[T](outcome=OutcomeType.SUCCESS, data=data)
    return finalize_response(response)
