from __future__ import annotations

import asyncio
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import pytest

from pronos.entities import Draft, Game, Player, Region, RegionQuota, RosterSlot, Team, Trade
from pronos.repositories.base import LeagueRepository, next_position
from pronos.repositories.memory import MemoryLeagueRepository
from pronos.services.draft_engine import DraftTurnEngine
from pronos.services.events import CollectingPublisher
from pronos.services.locks import LockRegistry
from pronos.services.trade_engine import TradeTransactionEngine

SEASON = 2026
NOW = datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)
CREATOR = uuid.UUID(int=1)
OWNERS = [uuid.UUID(int=100 + i) for i in range(1, 5)]
STRANGER = uuid.UUID(int=999)

# nickname -> (region, rank, locked)
DEFAULT_PLAYERS: dict[str, tuple[Region, int | None, bool]] = {
    "eu1": (Region.EU, 1, False),
    "eu2": (Region.EU, 2, False),
    "eu3": (Region.EU, 3, False),
    "eu4": (Region.EU, 4, False),
    "nac1": (Region.NAC, 5, False),
    "nac2": (Region.NAC, 6, False),
    "nac3": (Region.NAC, 7, False),
    "br1": (Region.BR, 8, False),
    "eu5": (Region.EU, 9, False),
    "asia1": (Region.ASIA, None, False),
    "locked_eu": (Region.EU, 0, True),
}


@dataclass
class League:
    repo: LeagueRepository
    game: Game
    teams: list[Team]
    players: dict[str, Player] = field(default_factory=dict)

    def pid(self, nickname: str) -> int:
        return self.players[nickname].id

    def pids(self, *nicknames: str) -> list[int]:
        return [self.pid(n) for n in nicknames]

    async def give(self, team_index: int, *nicknames: str) -> None:
        """Put players straight onto a roster, bypassing the draft."""
        team = self.teams[team_index]
        async with self.repo.transaction():
            for nickname in nicknames:
                slots = await self.repo.active_slots(team.id)
                await self.repo.add_slot(
                    RosterSlot(team_id=team.id, player_id=self.pid(nickname), position=next_position(slots), added_at=NOW)
                )

    async def roster(self, team_index: int) -> set[str]:
        by_id = {p.id: name for name, p in self.players.items()}
        return {by_id[s.player_id] for s in await self.repo.active_slots(self.teams[team_index].id)}


async def build_league(
    repo: LeagueRepository,
    *,
    team_count: int = 3,
    quotas: Mapping[Region, int] | None = None,
    players: Mapping[str, tuple[Region, int | None, bool]] | None = None,
    extra_players: Sequence[Player] = (),
    **game_fields,
) -> League:
    quotas = {Region.EU: 2, Region.NAC: 2} if quotas is None else quotas
    players = DEFAULT_PLAYERS if players is None else players
    async with repo.transaction():
        game = await repo.add_game(Game(name="Spring Cup", creator_id=CREATOR, season=SEASON, **game_fields))
        for region, limit in quotas.items():
            await repo.add_quota(RegionQuota(game_id=game.id, region=region, max_players=limit))
        teams = [
            await repo.add_team(
                Team(
                    name=f"team-{i + 1}",
                    owner_id=OWNERS[i],
                    game_id=game.id,
                    season=SEASON,
                    joined_at=NOW - timedelta(days=1) + timedelta(minutes=i),
                )
            )
            for i in range(team_count)
        ]
        stored = {}
        for nickname, (region, rank, locked) in players.items():
            stored[nickname] = await repo.add_player(
                Player(nickname=nickname, region=region, season=SEASON, rank=rank, locked=locked)
            )
        for player in extra_players:
            stored[player.nickname] = await repo.add_player(player)
    return League(repo=repo, game=game, teams=teams, players=stored)


@pytest.fixture
def repo() -> MemoryLeagueRepository:
    return MemoryLeagueRepository()


class YieldingLeagueRepository(MemoryLeagueRepository):
    """Memory store whose hot reads suspend, so concurrent callers interleave like they would over a real database."""

    async def get_draft(self, draft_id: int) -> Draft:
        await asyncio.sleep(0)
        return await super().get_draft(draft_id)

    async def get_trade(self, trade_id: int) -> Trade:
        await asyncio.sleep(0)
        return await super().get_trade(trade_id)

    async def active_slots(self, team_id: int) -> list[RosterSlot]:
        await asyncio.sleep(0)
        return await super().active_slots(team_id)


@pytest.fixture
def yielding_repo() -> YieldingLeagueRepository:
    return YieldingLeagueRepository()


@pytest.fixture
def locks() -> LockRegistry:
    return LockRegistry(timeout=1.0)


@pytest.fixture
def publisher() -> CollectingPublisher:
    return CollectingPublisher()


@pytest.fixture
def draft_engine(repo, locks, publisher) -> DraftTurnEngine:
    return DraftTurnEngine(repo, locks=locks, publisher=publisher, pick_time_limit_seconds=12 * 3600)


@pytest.fixture
def trade_engine(repo, locks, publisher) -> TradeTransactionEngine:
    return TradeTransactionEngine(repo, locks=locks, publisher=publisher)
