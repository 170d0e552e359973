from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pronos.models.base import Base


class RosterSlot(Base):
    __tablename__ = "roster_slots"
    __table_args__ = (Index("ix_roster_slots_player_active", "player_id", "removed_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    team_id: Mapped[int] = mapped_column(ForeignKey("teams.id"), nullable=False, index=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # NULL while the player is on the team; slots are closed, never deleted.
    removed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    team: Mapped["Team"] = relationship("Team", back_populates="slots")
