"""
Health check endpoints.

`/ready` reports the draft store and the size of the format catalog;
drafts cannot be created until both are available.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from draftkeeper.db.database import get_session
from draftkeeper.rules.formats import list_formats

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    database: str | None = None
    formats: int | None = None


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Liveness probe. Does not touch the draft store."""
    return HealthResponse(status="healthy")


@router.get(
    "/ready",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse}},
)
async def ready(
    response: Response,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> HealthResponse:
    formats = len(list_formats())
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("READINESS_DATABASE_UNAVAILABLE", exc_info=True)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="not ready", database="disconnected", formats=formats)

    if formats == 0:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="not ready", database="connected", formats=0)
    return HealthResponse(status="ready", database="connected", formats=formats)
