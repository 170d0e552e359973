from __future__ import annotations

from collections.abc import Iterable
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Protocol

from pronos.entities import (
    Draft,
    DraftPick,
    DraftStatus,
    Game,
    Player,
    RegionQuota,
    RosterSlot,
    Team,
    Trade,
    TradeStatus,
)


class LeagueRepository(Protocol):
    """
    Read/write port used by the draft and trade engines.

    Reads return detached copies: changing an entity has no effect until it is
    passed back to a save/add method. `get_*` methods raise NotFoundError.
    """

    def transaction(self) -> AbstractAsyncContextManager[None]:
        """Commit everything written inside the block, or nothing if it raises."""
        ...

    # games, teams, players, quotas
    async def add_game(self, game: Game) -> Game: ...
    async def get_game(self, game_id: int) -> Game: ...
    async def add_team(self, team: Team) -> Team: ...
    async def get_team(self, team_id: int) -> Team: ...
    async def save_team(self, team: Team) -> None: ...
    async def teams_for_game(self, game_id: int) -> list[Team]: ...
    async def add_player(self, player: Player) -> Player: ...
    async def get_player(self, player_id: int) -> Player: ...
    async def get_players(self, player_ids: Iterable[int]) -> list[Player]: ...
    async def players_for_season(self, season: int) -> list[Player]: ...
    async def add_quota(self, quota: RegionQuota) -> RegionQuota: ...
    async def quotas_for_game(self, game_id: int) -> list[RegionQuota]: ...

    # roster slots
    async def add_slot(self, slot: RosterSlot) -> RosterSlot: ...
    async def close_slot(self, slot_id: int, removed_at: datetime) -> None: ...
    async def active_slots(self, team_id: int) -> list[RosterSlot]: ...
    async def active_slot_for_player(self, game_id: int, player_id: int) -> RosterSlot | None: ...
    async def rostered_player_ids(self, game_id: int) -> set[int]: ...

    # drafts
    async def add_draft(self, draft: Draft) -> Draft: ...
    async def get_draft(self, draft_id: int) -> Draft: ...
    async def draft_for_game(self, game_id: int) -> Draft | None: ...
    async def save_draft(self, draft: Draft) -> None: ...
    async def drafts_with_status(self, status: DraftStatus) -> list[Draft]: ...
    async def add_pick(self, pick: DraftPick) -> DraftPick: ...
    async def picks_for_draft(self, draft_id: int) -> list[DraftPick]: ...
    async def drafted_player_ids(self, draft_id: int) -> set[int]: ...

    # trades
    async def add_trade(self, trade: Trade) -> Trade: ...
    async def get_trade(self, trade_id: int) -> Trade: ...
    async def save_trade(self, trade: Trade) -> None: ...
    async def trades_for_team(self, team_id: int) -> list[Trade]: ...
    async def trades_for_game(self, game_id: int, status: TradeStatus | None = None) -> list[Trade]: ...


async def roster_players(repo: LeagueRepository, team_id: int) -> list[Player]:
    """Players currently on a team, in roster position order."""
    slots = await repo.active_slots(team_id)
    return await repo.get_players(s.player_id for s in slots)


def next_position(slots: Iterable[RosterSlot]) -> int:
    return max((s.position for s in slots), default=0) + 1
