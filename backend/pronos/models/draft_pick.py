from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pronos.models.base import Base


class DraftPick(Base):
    __tablename__ = "draft_picks"
    __table_args__ = (
        UniqueConstraint("draft_id", "player_id", name="uq_draft_picks_draft_player"),
        UniqueConstraint("draft_id", "pick_number", name="uq_draft_picks_draft_number"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    draft_id: Mapped[int] = mapped_column(ForeignKey("drafts.id"), nullable=False, index=True)
    participant_id: Mapped[int] = mapped_column(ForeignKey("draft_participants.id"), nullable=False, index=True)
    team_id: Mapped[int] = mapped_column(ForeignKey("teams.id"), nullable=False, index=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False, index=True)

    round: Mapped[int] = mapped_column(Integer, nullable=False)
    pick_number: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    # True when the pick was made by the timeout handler, not by the participant.
    auto: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    picked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    draft: Mapped["Draft"] = relationship("Draft", back_populates="picks")
