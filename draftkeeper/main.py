import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from draftkeeper.api import (
    auctions_router,
    drafts_router,
    formats_router,
    health_router,
    picks_router,
)
from draftkeeper.config import settings
from draftkeeper.db.database import init_db
from draftkeeper.models.failure import KnownError, create_unknown_failure
from draftkeeper.rules.formats import load_formats_from_file

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    if settings.formats_file:
        loaded = load_formats_from_file(Path(settings.formats_file))
        logger.info("CUSTOM_FORMATS_LOADED", extra={"count": len(loaded)})
    await init_db()
    yield


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("draftkeeper"),
    lifespan=lifespan,
)


@app.exception_handler(KnownError)
async def known_error_handler(_request: Request, exc: KnownError) -> JSONResponse:
    """Every known failure leaves the API as a finalized ApiResponse."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(mode="json"),
    )


@app.exception_handler(Exception)
async def unknown_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("UNHANDLED_ERROR", extra={"error_type": type(exc).__name__})
    return JSONResponse(
        status_code=500,
        content=create_unknown_failure(exc).model_dump(mode="json"),
    )


app.include_router(auctions_router)
app.include_router(drafts_router)
app.include_router(formats_router)
app.include_router(health_router)
app.include_router(picks_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
