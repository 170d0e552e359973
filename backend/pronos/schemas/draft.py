from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from pronos.schemas.base import ORMBaseModel
from pronos.schemas.event import ErrorOut
from pronos.services.events import LeagueEvent


class DraftStart(BaseModel):
    game_id: int


class PickCreate(BaseModel):
    player_id: int


class DraftFinish(BaseModel):
    # Close the draft even though picks remain.
    force: bool = False


class ParticipantOut(ORMBaseModel):
    id: int
    team_id: int
    user_id: uuid.UUID
    draft_order: int


class DraftOut(ORMBaseModel):
    id: int
    game_id: int
    status: str
    total_rounds: int
    current_pick: int
    current_round: int
    total_picks: int
    started_at: datetime | None = None
    finished_at: datetime | None = None
    paused_at: datetime | None = None
    turn_started_at: datetime | None = None
    participants: list[ParticipantOut] = Field(default_factory=list)


class DraftPickOut(ORMBaseModel):
    id: int
    draft_id: int
    participant_id: int
    team_id: int
    player_id: int
    round: int
    pick_number: int
    picked_at: datetime
    auto: bool


class TurnOut(BaseModel):
    draft_id: int
    status: str
    pick_number: int
    round: int
    participant: ParticipantOut | None = None
    turn_started_at: datetime | None = None
    deadline: datetime | None = None


class PickResultOut(BaseModel):
    draft: DraftOut
    pick: DraftPickOut
    events: list[LeagueEvent] = Field(default_factory=list)


class TimeoutOut(BaseModel):
    draft_id: int
    timed_out: bool
    pick: DraftPickOut | None = None
    error: ErrorOut | None = None
    events: list[LeagueEvent] = Field(default_factory=list)
