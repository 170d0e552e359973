from __future__ import annotations

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pronos.models.base import Base


class RegionQuota(Base):
    __tablename__ = "region_quotas"
    __table_args__ = (UniqueConstraint("game_id", "region", name="uq_region_quotas_game_region"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id"), nullable=False, index=True)
    region: Mapped[str] = mapped_column(String(10), nullable=False)
    max_players: Mapped[int] = mapped_column(Integer, nullable=False)

    game: Mapped["Game"] = relationship("Game", back_populates="quotas")
