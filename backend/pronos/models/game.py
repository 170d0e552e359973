from __future__ import annotations

from datetime import datetime
import uuid

from sqlalchemy import Boolean, DateTime, Integer, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pronos.models.base import Base


class Game(Base):
    __tablename__ = "games"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    creator_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    season: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    trading_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    trade_deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    max_trades_per_team: Mapped[int] = mapped_column(Integer, nullable=False, default=5)

    draft_rounds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pick_time_limit_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    teams: Mapped[list["Team"]] = relationship("Team", back_populates="game", cascade="all, delete-orphan")
    quotas: Mapped[list["RegionQuota"]] = relationship(
        "RegionQuota", back_populates="game", cascade="all, delete-orphan"
    )
