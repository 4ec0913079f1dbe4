from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "DraftKeeper"
    debug: bool = False

    database_url: str = "postgresql+asyncpg://localhost:5432/draftkeeper"

    # Base URL of the authoritative draft backend (used by the RPC client)
    backend_url: str = "http://localhost:8000"

    default_format_id: str = "vgc-reg-h"

    # Optional JSON file of custom formats registered at startup
    formats_file: str | None = None

    # Session controller: RPC calls slower than this are failed locally
    rpc_timeout_seconds: float = 10.0
    poll_interval_seconds: float = 1.0

    # Optimistic engine: retry cap and how long resolved actions stay visible
    max_action_retries: int = 3
    confirm_grace_seconds: float = 2.0
    failure_grace_seconds: float = 5.0

    # Budget validator thresholds
    budget_tight_ratio: float = 0.9
    budget_inefficient_pct: float = 60.0
    budget_slack_units: int = 20
    budget_unavailable_ratio: float = 0.3
    budget_optimize_pct: float = 80.0
    budget_near_limit_ratio: float = 0.95


settings = Settings()


# =============================================================================
# DRAFT LIMITS
# =============================================================================

# Temporary ids for optimistic entities never collide with server ids
TEMP_ID_PREFIX = "temp-"

# Simultaneous-bid drafts end once every team holds this many items
DEFAULT_MAX_ITEMS_PER_TEAM = 10

MAX_TEAMS = 16
MAX_ROUNDS = 30

# Auction duration bounds (seconds)
MIN_AUCTION_SECONDS = 5
MAX_AUCTION_SECONDS = 600
