"""
Pick API endpoints.

A pick submission is one atomic unit on the backend: the pick is inserted,
the team's budget decremented and the turn advanced in the request's
transaction, or nothing happens.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from draftkeeper.api.schemas import PickRequest, PickResponse
from draftkeeper.db import get_draft, get_picks, submit_pick
from draftkeeper.db.database import get_session
from draftkeeper.models.failure import FailureKind, KnownError

router = APIRouter(prefix="/drafts/{draft_id}/picks", tags=["picks"])


@router.post("", response_model=PickResponse, status_code=status.HTTP_201_CREATED)
async def create_pick(
    draft_id: str,
    request: PickRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> PickResponse:
    """
    Submit a pick for the team on the clock.

    Returns 409 when it is not the team's turn, the item is already
    drafted or the team cannot afford it.
    """
    try:
        pick = await submit_pick(
            session,
            draft_id,
            team_id=request.team_id,
            item_id=request.item_id,
            item_name=request.item_name,
            cost=request.cost,
        )
    except IntegrityError as e:
        # a concurrent pick of the same item committed first
        await session.rollback()
        raise KnownError(
            kind=FailureKind.DUPLICATE_ITEM,
            message=f"{request.item_name} has already been drafted",
            status_code=409,
        ) from e
    return PickResponse.model_validate(pick)


@router.get("", response_model=list[PickResponse])
async def list_picks(
    draft_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> list[PickResponse]:
    """Confirmed picks in pick order."""
    if await get_draft(session, draft_id) is None:
        raise KnownError(
            kind=FailureKind.DRAFT_NOT_FOUND,
            message=f"Draft {draft_id} not found",
            status_code=404,
        )
    return [PickResponse.model_validate(p) for p in await get_picks(session, draft_id)]
