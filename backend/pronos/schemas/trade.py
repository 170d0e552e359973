from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from pronos.schemas.base import ORMBaseModel
from pronos.services.events import LeagueEvent


class TradeCreate(BaseModel):
    from_team_id: int
    to_team_id: int
    offered_player_ids: list[int] = Field(default_factory=list)
    requested_player_ids: list[int] = Field(default_factory=list)


class TradeCounter(BaseModel):
    # Players from the original recipient's roster, and players asked of the original proposer.
    offered_player_ids: list[int] = Field(default_factory=list)
    requested_player_ids: list[int] = Field(default_factory=list)


class TradeOut(ORMBaseModel):
    id: int
    game_id: int
    from_team_id: int
    to_team_id: int
    offered_player_ids: list[int]
    requested_player_ids: list[int]
    status: str
    proposed_at: datetime
    accepted_at: datetime | None = None
    rejected_at: datetime | None = None
    cancelled_at: datetime | None = None
    countered_at: datetime | None = None
    original_trade_id: int | None = None


class TradeResultOut(BaseModel):
    trade: TradeOut
    superseded: TradeOut | None = None
    events: list[LeagueEvent] = Field(default_factory=list)


class TradeStatisticsOut(ORMBaseModel):
    game_id: int
    accepted: int
    pending: int
    rejected: int
    cancelled: int
    countered: int
    total: int
