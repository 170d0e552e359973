from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pronos.models.base import Base


class Trade(Base):
    __tablename__ = "trades"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id"), nullable=False, index=True)
    from_team_id: Mapped[int] = mapped_column(ForeignKey("teams.id"), nullable=False, index=True)
    to_team_id: Mapped[int] = mapped_column(ForeignKey("teams.id"), nullable=False, index=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING", index=True)
    original_trade_id: Mapped[int | None] = mapped_column(ForeignKey("trades.id"), nullable=True, index=True)

    proposed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    countered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    players: Mapped[list["TradePlayer"]] = relationship(
        "TradePlayer",
        back_populates="trade",
        cascade="all, delete-orphan",
        order_by="TradePlayer.position",
        lazy="selectin",
    )


class TradePlayer(Base):
    __tablename__ = "trade_players"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    trade_id: Mapped[int] = mapped_column(ForeignKey("trades.id"), nullable=False, index=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False, index=True)
    # "offered" (from_team -> to_team) or "requested" (to_team -> from_team).
    side: Mapped[str] = mapped_column(String(10), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    trade: Mapped["Trade"] = relationship("Trade", back_populates="players")
