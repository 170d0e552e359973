from __future__ import annotations

from datetime import datetime
import uuid

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pronos.models.base import Base


class Draft(Base):
    __tablename__ = "drafts"
    __table_args__ = (UniqueConstraint("game_id", name="uq_drafts_game"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id"), nullable=False, index=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="NOT_STARTED", index=True)
    total_rounds: Mapped[int] = mapped_column(Integer, nullable=False)
    # Absolute 1-based index of the next pick; the round is derived from it.
    current_pick: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paused_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    turn_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    participants: Mapped[list["DraftParticipant"]] = relationship(
        "DraftParticipant",
        back_populates="draft",
        cascade="all, delete-orphan",
        order_by="DraftParticipant.draft_order",
        lazy="selectin",
    )
    picks: Mapped[list["DraftPick"]] = relationship("DraftPick", back_populates="draft", cascade="all, delete-orphan")


class DraftParticipant(Base):
    __tablename__ = "draft_participants"
    __table_args__ = (
        UniqueConstraint("draft_id", "draft_order", name="uq_draft_participants_order"),
        UniqueConstraint("draft_id", "team_id", name="uq_draft_participants_team"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    draft_id: Mapped[int] = mapped_column(ForeignKey("drafts.id"), nullable=False, index=True)
    team_id: Mapped[int] = mapped_column(ForeignKey("teams.id"), nullable=False, index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    draft_order: Mapped[int] = mapped_column(Integer, nullable=False)

    draft: Mapped["Draft"] = relationship("Draft", back_populates="participants")
