from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from enum import StrEnum
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

from pronos.entities import Draft, DraftPick, Trade, utcnow

logger = logging.getLogger("pronos.events")


class EventType(StrEnum):
    DRAFT_STARTED = "DRAFT_STARTED"
    DRAFT_PICKED = "DRAFT_PICKED"
    DRAFT_PAUSED = "DRAFT_PAUSED"
    DRAFT_RESUMED = "DRAFT_RESUMED"
    DRAFT_FINISHED = "DRAFT_FINISHED"
    TRADE_PROPOSED = "TRADE_PROPOSED"
    TRADE_ACCEPTED = "TRADE_ACCEPTED"
    TRADE_REJECTED = "TRADE_REJECTED"
    TRADE_CANCELLED = "TRADE_CANCELLED"
    TRADE_COUNTERED = "TRADE_COUNTERED"


class LeagueEvent(BaseModel):
    """Payload handed to the notification collaborator after a transition commits."""

    model_config = ConfigDict(frozen=True)

    type: EventType
    game_id: int
    team_ids: list[int] = Field(default_factory=list)
    player_ids: list[int] = Field(default_factory=list)
    status: str
    draft_id: int | None = None
    trade_id: int | None = None
    occurred_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def for_draft(cls, type_: EventType, draft: Draft, *, occurred_at: datetime | None = None) -> LeagueEvent:
        return cls(
            type=type_,
            game_id=draft.game_id,
            team_ids=[p.team_id for p in draft.participants],
            status=draft.status.value,
            draft_id=draft.id,
            occurred_at=occurred_at or utcnow(),
        )

    @classmethod
    def for_pick(cls, draft: Draft, pick: DraftPick) -> LeagueEvent:
        return cls(
            type=EventType.DRAFT_PICKED,
            game_id=draft.game_id,
            team_ids=[pick.team_id],
            player_ids=[pick.player_id],
            status=draft.status.value,
            draft_id=draft.id,
            occurred_at=pick.picked_at,
        )

    @classmethod
    def for_trade(cls, type_: EventType, trade: Trade, *, occurred_at: datetime | None = None) -> LeagueEvent:
        return cls(
            type=type_,
            game_id=trade.game_id,
            team_ids=[trade.from_team_id, trade.to_team_id],
            player_ids=trade.player_ids,
            status=trade.status.value,
            trade_id=trade.id,
            occurred_at=occurred_at or utcnow(),
        )


class EventPublisher(Protocol):
    async def publish(self, event: LeagueEvent) -> None: ...


class LoggingEventPublisher:
    async def publish(self, event: LeagueEvent) -> None:
        logger.info(
            "event type=%s game_id=%s teams=%s players=%s status=%s",
            event.type.value,
            event.game_id,
            event.team_ids,
            event.player_ids,
            event.status,
        )


class CollectingPublisher:
    """Keeps every published event in memory, in order."""

    def __init__(self) -> None:
        self.events: list[LeagueEvent] = []

    async def publish(self, event: LeagueEvent) -> None:
        self.events.append(event)

    def types(self) -> list[EventType]:
        return [e.type for e in self.events]


async def publish_all(publisher: EventPublisher | None, events: Iterable[LeagueEvent]) -> None:
    """
    Deliver already-committed events. A failing publisher is logged and skipped:
    the transition it reports has happened and must not be undone.
    """
    if publisher is None:
        return
    for event in events:
        try:
            await publisher.publish(event)
        except Exception:
            logger.exception("event publisher failed type=%s game_id=%s", event.type.value, event.game_id)
