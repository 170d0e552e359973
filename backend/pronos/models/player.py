from __future__ import annotations

from sqlalchemy import Boolean, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from pronos.models.base import Base


class Player(Base):
    __tablename__ = "players"
    __table_args__ = (UniqueConstraint("nickname", "season", name="uq_players_nickname_season"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    nickname: Mapped[str] = mapped_column(String(80), nullable=False, index=True)
    region: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    season: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    # Locked players can be neither drafted nor traded.
    locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    rank: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    tranche: Mapped[str | None] = mapped_column(String(20), nullable=True)
