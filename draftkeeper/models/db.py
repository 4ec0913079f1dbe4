"""
SQLAlchemy ORM models for the authoritative draft store.

Models mirror the dataclass models in `draftkeeper.models.draft` and add
persistence. `ChangeEventDB` is the append-only change feed; its sequence
is assigned in commit order and is what clients poll.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class DraftDB(Base):
    """A draft and its turn/lifecycle state."""

    __tablename__ = "drafts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    format_id: Mapped[str] = mapped_column(String(64), index=True)
    kind: Mapped[str] = mapped_column(String(32))
    status: Mapped[str] = mapped_column(String(16), index=True)

    current_turn: Mapped[int | None] = mapped_column(Integer, nullable=True)
    current_round: Mapped[int] = mapped_column(Integer, default=1)

    budget_per_team: Mapped[int] = mapped_column(Integer)
    rounds: Mapped[int] = mapped_column(Integer)
    max_items_per_team: Mapped[int] = mapped_column(Integer)
    max_teams: Mapped[int] = mapped_column(Integer)
    host_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<DraftDB(id={self.id}, status={self.status})>"


class TeamDB(Base):
    """A team seated in a draft. Budget never drops below zero."""

    __tablename__ = "teams"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    draft_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("drafts.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(255))
    owner_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    draft_order: Mapped[int] = mapped_column(Integer)
    budget_remaining: Mapped[int] = mapped_column(Integer)
    initial_budget: Mapped[int] = mapped_column(Integer)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<TeamDB(name={self.name}, budget={self.budget_remaining})>"


class PickDB(Base):
    """
    A confirmed pick.

    An item can be drafted once per draft.
    """

    __tablename__ = "picks"
    __table_args__ = (UniqueConstraint("draft_id", "item_id", name="uq_draft_item"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    draft_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("drafts.id", ondelete="CASCADE"), index=True
    )
    team_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("teams.id", ondelete="CASCADE"), index=True
    )
    item_id: Mapped[str] = mapped_column(String(128))
    item_name: Mapped[str] = mapped_column(String(255))
    cost: Mapped[int] = mapped_column(Integer)
    pick_order: Mapped[int] = mapped_column(Integer)
    round: Mapped[int] = mapped_column(Integer)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<PickDB(item={self.item_id}, team={self.team_id}, cost={self.cost})>"


class ParticipantDB(Base):
    """A user seated in a draft."""

    __tablename__ = "participants"
    __table_args__ = (
        UniqueConstraint("draft_id", "display_name", name="uq_draft_display_name"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    draft_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("drafts.id", ondelete="CASCADE"), index=True
    )
    display_name: Mapped[str] = mapped_column(String(64))
    team_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    is_host: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<ParticipantDB(name={self.display_name}, draft={self.draft_id})>"


class AuctionDB(Base):
    """A time-boxed auction for one item. At most one is active per draft."""

    __tablename__ = "auctions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    draft_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("drafts.id", ondelete="CASCADE"), index=True
    )
    item_id: Mapped[str] = mapped_column(String(128))
    item_name: Mapped[str] = mapped_column(String(255))
    nominated_by: Mapped[str] = mapped_column(String(36))
    current_bid: Mapped[int] = mapped_column(Integer)
    current_bidder: Mapped[str | None] = mapped_column(String(36), nullable=True)
    auction_end: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    status: Mapped[str] = mapped_column(String(16), index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<AuctionDB(item={self.item_id}, bid={self.current_bid}, status={self.status})>"


class BidHistoryDB(Base):
    """Append-only bid log. Amounts strictly increase per auction."""

    __tablename__ = "bid_history"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    auction_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("auctions.id", ondelete="CASCADE"), index=True
    )
    team_id: Mapped[str] = mapped_column(String(36))
    team_name: Mapped[str] = mapped_column(String(255))
    amount: Mapped[int] = mapped_column(Integer)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<BidHistoryDB(auction={self.auction_id}, amount={self.amount})>"


class ChangeEventDB(Base):
    """One row of the per-draft change feed."""

    __tablename__ = "change_events"

    sequence: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    draft_id: Mapped[str] = mapped_column(String(36), index=True)
    entity_kind: Mapped[str] = mapped_column(String(16))
    change_type: Mapped[str] = mapped_column(String(16))
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<ChangeEventDB(seq={self.sequence}, {self.entity_kind}:{self.change_type})>"
