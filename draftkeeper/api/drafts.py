"""
Draft API endpoints.

Lifecycle, membership and the per-draft change feed. The change feed is
what PollingPushChannel consumes.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from draftkeeper.api.schemas import (
    ChangeListResponse,
    ChangeResponse,
    CreateDraftRequest,
    CreateDraftResponse,
    DraftResponse,
    JoinRequest,
    JoinResponse,
    ParticipantResponse,
    TeamResponse,
)
from draftkeeper.db import (
    create_draft,
    delete_draft,
    get_changes,
    get_draft,
    get_participants,
    get_picks,
    get_teams,
    join_draft,
    leave_draft,
    set_draft_status,
)
from draftkeeper.db.database import get_session
from draftkeeper.models.draft import Draft, DraftStatus
from draftkeeper.models.failure import FailureKind, KnownError

router = APIRouter(prefix="/drafts", tags=["drafts"])


async def _require_draft(session: AsyncSession, draft_id: str) -> Draft:
    draft = await get_draft(session, draft_id)
    if draft is None:
        raise KnownError(
            kind=FailureKind.DRAFT_NOT_FOUND,
            message=f"Draft {draft_id} not found",
            status_code=404,
        )
    return draft


@router.post("", response_model=CreateDraftResponse, status_code=status.HTTP_201_CREATED)
async def create(
    request: CreateDraftRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CreateDraftResponse:
    """Create a pending draft with the host seated at the first team."""
    draft, participant, team = await create_draft(
        session,
        name=request.name,
        format_id=request.format_id,
        host_name=request.host_name,
        kind=request.kind,
        budget_per_team=request.budget_per_team,
        rounds=request.rounds,
        max_items_per_team=request.max_items_per_team,
        max_teams=request.max_teams,
        team_name=request.team_name,
    )
    return CreateDraftResponse(
        draft=DraftResponse.model_validate(draft),
        participant=ParticipantResponse.model_validate(participant),
        team=TeamResponse.build(team, []),
    )


@router.get("/{draft_id}", response_model=DraftResponse)
async def read(
    draft_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DraftResponse:
    return DraftResponse.model_validate(await _require_draft(session, draft_id))


@router.delete("/{draft_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete(
    draft_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Response:
    """Delete an abandoned draft and all of its rows."""
    if not await delete_draft(session, draft_id):
        raise KnownError(
            kind=FailureKind.DRAFT_NOT_FOUND,
            message=f"Draft {draft_id} not found",
            status_code=404,
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


async def _transition(session: AsyncSession, draft_id: str, target: DraftStatus) -> DraftResponse:
    draft = await set_draft_status(session, draft_id, target)
    return DraftResponse.model_validate(draft)


@router.post("/{draft_id}/start", response_model=DraftResponse)
async def start(
    draft_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DraftResponse:
    return await _transition(session, draft_id, DraftStatus.ACTIVE)


@router.post("/{draft_id}/pause", response_model=DraftResponse)
async def pause(
    draft_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DraftResponse:
    return await _transition(session, draft_id, DraftStatus.PAUSED)


@router.post("/{draft_id}/resume", response_model=DraftResponse)
async def resume(
    draft_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DraftResponse:
    draft = await _require_draft(session, draft_id)
    if draft.status != DraftStatus.PAUSED:
        raise KnownError(
            kind=FailureKind.INVALID_TRANSITION,
            message=f"Only paused drafts can be resumed (draft is {draft.status.value})",
            status_code=409,
        )
    return await _transition(session, draft_id, DraftStatus.ACTIVE)


@router.post("/{draft_id}/complete", response_model=DraftResponse)
async def complete(
    draft_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DraftResponse:
    return await _transition(session, draft_id, DraftStatus.COMPLETED)


@router.post(
    "/{draft_id}/participants",
    response_model=JoinResponse,
    status_code=status.HTTP_201_CREATED,
)
async def join(
    draft_id: str,
    request: JoinRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> JoinResponse:
    participant, team = await join_draft(
        session,
        draft_id,
        display_name=request.display_name,
        participant_id=request.participant_id,
        team_name=request.team_name,
    )
    return JoinResponse(
        participant=ParticipantResponse.model_validate(participant),
        team=TeamResponse.build(team, []),
    )


@router.delete("/{draft_id}/participants/{participant_id}", status_code=status.HTTP_204_NO_CONTENT)
async def leave(
    draft_id: str,
    participant_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Response:
    await leave_draft(session, draft_id, participant_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{draft_id}/participants", response_model=list[ParticipantResponse])
async def participants(
    draft_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> list[ParticipantResponse]:
    await _require_draft(session, draft_id)
    return [ParticipantResponse.model_validate(p) for p in await get_participants(session, draft_id)]


@router.get("/{draft_id}/teams", response_model=list[TeamResponse])
async def teams(
    draft_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> list[TeamResponse]:
    """Teams in draft order with their confirmed picks."""
    await _require_draft(session, draft_id)
    picks = await get_picks(session, draft_id)
    return [TeamResponse.build(t, picks) for t in await get_teams(session, draft_id)]


@router.get("/{draft_id}/changes", response_model=ChangeListResponse)
async def changes(
    draft_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
    after: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int, Query(ge=1, le=1000)] = 500,
) -> ChangeListResponse:
    """
    Change-feed entries after a sequence number, in commit order.

    `last_sequence` echoes `after` when there is nothing new.
    """
    entries = await get_changes(session, draft_id, after=after, limit=limit)
    last_sequence = after
    if entries and entries[-1].sequence is not None:
        last_sequence = entries[-1].sequence
    return ChangeListResponse(
        changes=[ChangeResponse.model_validate(e) for e in entries],
        last_sequence=last_sequence,
    )
