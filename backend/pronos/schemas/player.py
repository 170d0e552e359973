from __future__ import annotations

from pronos.schemas.base import ORMBaseModel


class PlayerOut(ORMBaseModel):
    id: int
    nickname: str
    region: str
    season: int
    locked: bool
    rank: int | None = None
    tranche: str | None = None
