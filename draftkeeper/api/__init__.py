from draftkeeper.api.auctions import router as auctions_router
from draftkeeper.api.drafts import router as drafts_router
from draftkeeper.api.formats import router as formats_router
from draftkeeper.api.health import router as health_router
from draftkeeper.api.picks import router as picks_router

__all__ = [
    "auctions_router",
    "drafts_router",
    "formats_router",
    "health_router",
    "picks_router",
]
