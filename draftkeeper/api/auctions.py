"""
Auction API endpoints for simultaneous-bid drafts.

Nominations open an auction, bids raise it, and closing it awards the item
to the highest bidder. Expired auctions are also closed by the
close_auctions job.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from draftkeeper.api.schemas import (
    AuctionResponse,
    BidRequest,
    BidResponse,
    CloseAuctionResponse,
    NominateRequest,
    PickResponse,
)
from draftkeeper.db import (
    get_active_auction,
    get_auction,
    get_auctions,
    get_bid_history,
    get_draft,
    nominate_item,
    place_bid,
    resolve_auction,
)
from draftkeeper.db.database import get_session
from draftkeeper.models.failure import FailureKind, KnownError

router = APIRouter(tags=["auctions"])


async def _require_draft(session: AsyncSession, draft_id: str) -> None:
    if await get_draft(session, draft_id) is None:
        raise KnownError(
            kind=FailureKind.DRAFT_NOT_FOUND,
            message=f"Draft {draft_id} not found",
            status_code=404,
        )


@router.post(
    "/drafts/{draft_id}/auctions",
    response_model=AuctionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def nominate(
    draft_id: str,
    request: NominateRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> AuctionResponse:
    """Open an auction. Returns 409 while another auction is active."""
    auction = await nominate_item(
        session,
        draft_id,
        team_id=request.team_id,
        item_id=request.item_id,
        item_name=request.item_name,
        starting_bid=request.starting_bid,
        duration_seconds=request.duration_seconds,
    )
    return AuctionResponse.model_validate(auction)


@router.get("/drafts/{draft_id}/auctions", response_model=list[AuctionResponse])
async def list_auctions(
    draft_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> list[AuctionResponse]:
    await _require_draft(session, draft_id)
    return [AuctionResponse.model_validate(a) for a in await get_auctions(session, draft_id)]


@router.get("/drafts/{draft_id}/auctions/active", response_model=AuctionResponse | None)
async def active_auction(
    draft_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> AuctionResponse | None:
    """The draft's active auction, or null."""
    await _require_draft(session, draft_id)
    auction = await get_active_auction(session, draft_id)
    return AuctionResponse.model_validate(auction) if auction is not None else None


@router.post(
    "/auctions/{auction_id}/bids",
    response_model=BidResponse,
    status_code=status.HTTP_201_CREATED,
)
async def bid(
    auction_id: str,
    request: BidRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> BidResponse:
    """Raise the current bid. Returns 409 unless the bid exceeds it."""
    entry = await place_bid(session, auction_id, team_id=request.team_id, amount=request.amount)
    return BidResponse.model_validate(entry)


@router.get("/auctions/{auction_id}/bids", response_model=list[BidResponse])
async def bid_history(
    auction_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> list[BidResponse]:
    if await get_auction(session, auction_id) is None:
        raise KnownError(
            kind=FailureKind.AUCTION_NOT_FOUND,
            message=f"Auction {auction_id} not found",
            status_code=404,
        )
    return [BidResponse.model_validate(b) for b in await get_bid_history(session, auction_id)]


@router.post("/auctions/{auction_id}/close", response_model=CloseAuctionResponse)
async def close(
    auction_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CloseAuctionResponse:
    """Close an auction now, awarding the item to the highest bidder."""
    pick = await resolve_auction(session, auction_id)
    auction = await get_auction(session, auction_id)
    if auction is None:
        raise KnownError(
            kind=FailureKind.AUCTION_NOT_FOUND,
            message=f"Auction {auction_id} not found",
            status_code=404,
        )
    return CloseAuctionResponse(
        auction=AuctionResponse.model_validate(auction),
        pick=PickResponse.model_validate(pick) if pick is not None else None,
    )
