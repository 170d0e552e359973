"""
Domain entities for rosters, drafts and trades.

Entities reference each other by id only. Whoever needs a related entity reads it
explicitly through the repository; nothing here performs I/O.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Region(StrEnum):
    EU = "EU"
    NAW = "NAW"
    BR = "BR"
    ASIA = "ASIA"
    OCE = "OCE"
    NAC = "NAC"
    ME = "ME"
    NA = "NA"


class DraftStatus(StrEnum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    PAUSED = "PAUSED"
    FINISHED = "FINISHED"


class TradeStatus(StrEnum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    COUNTERED = "COUNTERED"

    @property
    def is_terminal(self) -> bool:
        return self is not TradeStatus.PENDING


def snake_position(pick_number: int, participant_count: int) -> tuple[int, int]:
    """
    Map an absolute 1-based pick number to (round, draft_order) for a snake draft.

    Odd rounds run 1..N, even rounds run N..1, so whoever picks last in one round
    picks first in the next.
    """
    if participant_count <= 0:
        raise ValueError("participant_count must be positive")
    if pick_number < 1:
        raise ValueError("pick_number must be >= 1")
    round_number = math.ceil(pick_number / participant_count)
    within = ((pick_number - 1) % participant_count) + 1
    if round_number % 2 == 1:
        return round_number, within
    return round_number, participant_count - within + 1


@dataclass
class Player:
    nickname: str
    region: Region
    season: int
    locked: bool = False
    # Power-ranking position; lower is better. Unranked players sort last.
    rank: int | None = None
    tranche: str | None = None
    id: int | None = None


@dataclass
class Game:
    name: str
    creator_id: uuid.UUID
    season: int
    trading_enabled: bool = True
    trade_deadline: datetime | None = None
    max_trades_per_team: int = 5
    draft_rounds: int | None = None
    pick_time_limit_seconds: int | None = None
    id: int | None = None


@dataclass
class Team:
    name: str
    owner_id: uuid.UUID
    game_id: int
    season: int
    joined_at: datetime = field(default_factory=utcnow)
    completed_trades: int = 0
    id: int | None = None


@dataclass
class RosterSlot:
    team_id: int
    player_id: int
    position: int
    added_at: datetime = field(default_factory=utcnow)
    removed_at: datetime | None = None
    id: int | None = None

    @property
    def active(self) -> bool:
        return self.removed_at is None


@dataclass
class RegionQuota:
    game_id: int
    region: Region
    max_players: int
    id: int | None = None


@dataclass
class Participant:
    team_id: int
    user_id: uuid.UUID
    draft_order: int
    id: int | None = None


@dataclass
class Draft:
    game_id: int
    total_rounds: int
    participants: list[Participant] = field(default_factory=list)
    status: DraftStatus = DraftStatus.NOT_STARTED
    # Absolute 1-based index of the next pick to be made. Round is always derived from it.
    current_pick: int = 1
    started_at: datetime | None = None
    finished_at: datetime | None = None
    paused_at: datetime | None = None
    turn_started_at: datetime | None = None
    id: int | None = None

    @property
    def participant_count(self) -> int:
        return len(self.participants)

    @property
    def total_picks(self) -> int:
        return self.total_rounds * self.participant_count

    @property
    def picks_exhausted(self) -> bool:
        return self.current_pick > self.total_picks

    @property
    def current_round(self) -> int:
        if not self.participants:
            return 1
        if self.picks_exhausted:
            return self.total_rounds
        return snake_position(self.current_pick, self.participant_count)[0]

    def participant_on_clock(self) -> Participant | None:
        """Participant whose turn it is, or None once every pick has been made."""
        if not self.participants or self.picks_exhausted:
            return None
        _, order = snake_position(self.current_pick, self.participant_count)
        return next((p for p in self.participants if p.draft_order == order), None)

    def participant_for_user(self, user_id: uuid.UUID) -> Participant | None:
        return next((p for p in self.participants if p.user_id == user_id), None)

    def participant_for_team(self, team_id: int) -> Participant | None:
        return next((p for p in self.participants if p.team_id == team_id), None)


@dataclass
class DraftPick:
    draft_id: int
    participant_id: int
    team_id: int
    player_id: int
    round: int
    pick_number: int
    picked_at: datetime = field(default_factory=utcnow)
    auto: bool = False
    id: int | None = None


@dataclass
class Trade:
    game_id: int
    from_team_id: int
    to_team_id: int
    offered_player_ids: list[int] = field(default_factory=list)
    requested_player_ids: list[int] = field(default_factory=list)
    status: TradeStatus = TradeStatus.PENDING
    proposed_at: datetime = field(default_factory=utcnow)
    accepted_at: datetime | None = None
    rejected_at: datetime | None = None
    cancelled_at: datetime | None = None
    countered_at: datetime | None = None
    original_trade_id: int | None = None
    id: int | None = None

    @property
    def team_ids(self) -> tuple[int, int]:
        return (self.from_team_id, self.to_team_id)

    @property
    def player_ids(self) -> list[int]:
        return [*self.offered_player_ids, *self.requested_player_ids]
