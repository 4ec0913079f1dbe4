"""
RPC client for the authoritative draft backend.

`DraftBackend` is the contract the session controller depends on;
`HttpDraftBackend` implements it over the backend's HTTP API with httpx.

Every failure surfaces as RpcError. When the backend classified the
failure, its FailureKind and message are carried over unchanged, so a
rejected pick reads the same as a locally rejected one.
"""

import logging
from collections.abc import Callable
from typing import Any, Protocol, Self

import httpx

from draftkeeper.config import settings
from draftkeeper.models.draft import Auction, BidHistoryEntry, Draft, Participant, Pick, Team
from draftkeeper.models.failure import FailureKind, RpcError
from draftkeeper.models.sync import ChangeEvent, event_from_payload, from_payload

logger = logging.getLogger(__name__)


class DraftBackend(Protocol):
    """Submission and snapshot-fetch calls against the authoritative store."""

    async def submit_pick(
        self, draft_id: str, team_id: str, item_id: str, item_name: str, cost: int
    ) -> Pick: ...

    async def submit_bid(self, auction_id: str, team_id: str, amount: int) -> BidHistoryEntry: ...

    async def submit_nomination(
        self,
        draft_id: str,
        team_id: str,
        item_id: str,
        item_name: str,
        starting_bid: int,
        duration_seconds: int,
    ) -> Auction: ...

    async def submit_join(
        self, draft_id: str, display_name: str, participant_id: str | None = None
    ) -> Participant: ...

    async def submit_leave(self, draft_id: str, participant_id: str) -> None: ...

    async def fetch_draft(self, draft_id: str) -> Draft: ...

    async def fetch_teams(self, draft_id: str) -> list[Team]: ...

    async def fetch_picks(self, draft_id: str) -> list[Pick]: ...

    async def fetch_participants(self, draft_id: str) -> list[Participant]: ...

    async def fetch_auctions(self, draft_id: str) -> list[Auction]: ...

    async def fetch_active_auction(self, draft_id: str) -> Auction | None: ...

    async def fetch_bid_history(self, auction_id: str) -> list[BidHistoryEntry]: ...

    async def fetch_changes(self, draft_id: str, after: int = 0) -> list[ChangeEvent]: ...


class HttpDraftBackend:
    """
    DraftBackend over HTTP.

    Args:
        base_url: Backend base URL (defaults to settings.backend_url)
        client: Optional httpx client for connection reuse; owned by the caller
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.backend_url,
            timeout=timeout if timeout is not None else settings.rpc_timeout_seconds,
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        parse: Callable[[Any], Any] | None = None,
        **kwargs: Any,
    ) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning("RPC_TIMEOUT", extra={"method": method, "path": path})
            raise RpcError(
                f"Request to {path} timed out", kind=FailureKind.TIMEOUT, status_code=504
            ) from e
        except httpx.HTTPError as e:
            logger.warning("RPC_NETWORK_ERROR", extra={"method": method, "path": path})
            raise RpcError(f"Could not reach the draft server: {e}") from e

        if response.is_error:
            raise _error_from_response(response)

        try:
            data = None if response.status_code == 204 or not response.content else response.json()
            return parse(data) if parse is not None else data
        except (KeyError, TypeError, ValueError) as e:
            # pydantic's ValidationError is a ValueError
            logger.warning(
                "RPC_INVALID_RESPONSE",
                extra={"method": method, "path": path, "error_type": type(e).__name__},
            )
            raise RpcError(f"Draft server sent an invalid response to {path}") from e

    # --- Submissions ---

    async def submit_pick(
        self, draft_id: str, team_id: str, item_id: str, item_name: str, cost: int
    ) -> Pick:
        return await self._request(
            "POST",
            f"/drafts/{draft_id}/picks",
            parse=_one(Pick),
            json={"team_id": team_id, "item_id": item_id, "item_name": item_name, "cost": cost},
        )

    async def submit_bid(self, auction_id: str, team_id: str, amount: int) -> BidHistoryEntry:
        return await self._request(
            "POST",
            f"/auctions/{auction_id}/bids",
            parse=_one(BidHistoryEntry),
            json={"team_id": team_id, "amount": amount},
        )

    async def submit_nomination(
        self,
        draft_id: str,
        team_id: str,
        item_id: str,
        item_name: str,
        starting_bid: int,
        duration_seconds: int,
    ) -> Auction:
        return await self._request(
            "POST",
            f"/drafts/{draft_id}/auctions",
            parse=_one(Auction),
            json={
                "team_id": team_id,
                "item_id": item_id,
                "item_name": item_name,
                "starting_bid": starting_bid,
                "duration_seconds": duration_seconds,
            },
        )

    async def submit_join(
        self, draft_id: str, display_name: str, participant_id: str | None = None
    ) -> Participant:
        body: dict[str, Any] = {"display_name": display_name}
        if participant_id is not None:
            body["participant_id"] = participant_id
        return await self._request(
            "POST",
            f"/drafts/{draft_id}/participants",
            parse=lambda data: from_payload(Participant, data["participant"]),
            json=body,
        )

    async def submit_leave(self, draft_id: str, participant_id: str) -> None:
        await self._request("DELETE", f"/drafts/{draft_id}/participants/{participant_id}")

    # --- Snapshot fetches ---

    async def fetch_draft(self, draft_id: str) -> Draft:
        return await self._request("GET", f"/drafts/{draft_id}", parse=_one(Draft))

    async def fetch_teams(self, draft_id: str) -> list[Team]:
        return await self._request("GET", f"/drafts/{draft_id}/teams", parse=_many(Team))

    async def fetch_picks(self, draft_id: str) -> list[Pick]:
        return await self._request("GET", f"/drafts/{draft_id}/picks", parse=_many(Pick))

    async def fetch_participants(self, draft_id: str) -> list[Participant]:
        return await self._request(
            "GET", f"/drafts/{draft_id}/participants", parse=_many(Participant)
        )

    async def fetch_auctions(self, draft_id: str) -> list[Auction]:
        return await self._request("GET", f"/drafts/{draft_id}/auctions", parse=_many(Auction))

    async def fetch_active_auction(self, draft_id: str) -> Auction | None:
        return await self._request(
            "GET",
            f"/drafts/{draft_id}/auctions/active",
            parse=lambda data: from_payload(Auction, data) if data else None,
        )

    async def fetch_bid_history(self, auction_id: str) -> list[BidHistoryEntry]:
        return await self._request(
            "GET", f"/auctions/{auction_id}/bids", parse=_many(BidHistoryEntry)
        )

    async def fetch_changes(self, draft_id: str, after: int = 0) -> list[ChangeEvent]:
        return await self._request(
            "GET",
            f"/drafts/{draft_id}/changes",
            parse=lambda data: [event_from_payload(c) for c in data["changes"]],
            params={"after": after},
        )


def _one(entity_type: type) -> Callable[[Any], Any]:
    return lambda data: from_payload(entity_type, data)


def _many(entity_type: type) -> Callable[[Any], Any]:
    return lambda data: [from_payload(entity_type, item) for item in data]


def _error_from_response(response: httpx.Response) -> RpcError:
    """Carry the backend's failure classification over when it sent one."""
    # request validation errors carry no failure envelope
    kind = FailureKind.INVALID_INPUT if response.status_code == 422 else FailureKind.NETWORK_ERROR
    message = f"Draft server returned {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        body = None
    failure = body.get("failure") if isinstance(body, dict) else None
    if isinstance(failure, dict):
        try:
            kind = FailureKind(failure.get("kind", kind.value))
        except ValueError:
            kind = FailureKind.UNKNOWN
        message = failure.get("message") or message
    if response.status_code == 503:
        kind = FailureKind.SERVICE_UNAVAILABLE

    logger.info(
        "RPC_REJECTED",
        extra={"status_code": response.status_code, "kind": kind.value, "path": response.request.url.path},
    )
    return RpcError(message, kind=kind, status_code=response.status_code)
