from __future__ import annotations

import copy
import itertools
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, TypeVar

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
from pronos.services.errors import NotFoundError

T = TypeVar("T")


class MemoryLeagueRepository:
    """
    In-process store: one dict per entity kind, keyed by id.

    Every read hands out a deep copy and every write stores one, so callers get
    the same detached-row behaviour they would get from the SQL adapter.
    `transaction()` snapshots the whole store and restores it on error.
    """

    def __init__(self) -> None:
        self.games: dict[int, Game] = {}
        self.teams: dict[int, Team] = {}
        self.players: dict[int, Player] = {}
        self.quotas: dict[int, RegionQuota] = {}
        self.slots: dict[int, RosterSlot] = {}
        self.drafts: dict[int, Draft] = {}
        self.picks: dict[int, DraftPick] = {}
        self.trades: dict[int, Trade] = {}
        self._ids: dict[str, itertools.count[int]] = {}
        self._tx_depth = 0

    def _next_id(self, kind: str) -> int:
        return next(self._ids.setdefault(kind, itertools.count(1)))

    def _store(self, kind: str, table: dict[int, T], entity: Any) -> T:
        if entity.id is None:
            entity.id = self._next_id(kind)
        else:
            # Keep generated ids clear of explicitly seeded ones.
            counter = self._ids.setdefault(kind, itertools.count(1))
            self._ids[kind] = itertools.count(max(next(counter), entity.id + 1))
        table[entity.id] = copy.deepcopy(entity)
        return copy.deepcopy(entity)

    @staticmethod
    def _get(table: dict[int, T], kind: str, ref: int) -> T:
        row = table.get(ref)
        if row is None:
            raise NotFoundError(kind, ref)
        return copy.deepcopy(row)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._tx_depth:
            self._tx_depth += 1
            try:
                yield
            finally:
                self._tx_depth -= 1
            return

        snapshot = copy.deepcopy(
            (self.games, self.teams, self.players, self.quotas, self.slots, self.drafts, self.picks, self.trades)
        )
        self._tx_depth = 1
        try:
            yield
        except BaseException:
            (
                self.games,
                self.teams,
                self.players,
                self.quotas,
                self.slots,
                self.drafts,
                self.picks,
                self.trades,
            ) = snapshot
            raise
        finally:
            self._tx_depth = 0

    # games, teams, players, quotas

    async def add_game(self, game: Game) -> Game:
        return self._store("game", self.games, game)

    async def get_game(self, game_id: int) -> Game:
        return self._get(self.games, "game", game_id)

    async def add_team(self, team: Team) -> Team:
        return self._store("team", self.teams, team)

    async def get_team(self, team_id: int) -> Team:
        return self._get(self.teams, "team", team_id)

    async def save_team(self, team: Team) -> None:
        if team.id not in self.teams:
            raise NotFoundError("team", team.id)
        self.teams[team.id] = copy.deepcopy(team)

    async def teams_for_game(self, game_id: int) -> list[Team]:
        rows = [t for t in self.teams.values() if t.game_id == game_id]
        rows.sort(key=lambda t: (t.joined_at, t.id))
        return copy.deepcopy(rows)

    async def add_player(self, player: Player) -> Player:
        return self._store("player", self.players, player)

    async def get_player(self, player_id: int) -> Player:
        return self._get(self.players, "player", player_id)

    async def get_players(self, player_ids: Iterable[int]) -> list[Player]:
        return [self._get(self.players, "player", pid) for pid in player_ids]

    async def players_for_season(self, season: int) -> list[Player]:
        return copy.deepcopy([p for p in self.players.values() if p.season == season])

    async def add_quota(self, quota: RegionQuota) -> RegionQuota:
        return self._store("quota", self.quotas, quota)

    async def quotas_for_game(self, game_id: int) -> list[RegionQuota]:
        return copy.deepcopy([q for q in self.quotas.values() if q.game_id == game_id])

    # roster slots

    async def add_slot(self, slot: RosterSlot) -> RosterSlot:
        return self._store("slot", self.slots, slot)

    async def close_slot(self, slot_id: int, removed_at: datetime) -> None:
        slot = self.slots.get(slot_id)
        if slot is None:
            raise NotFoundError("slot", slot_id)
        slot.removed_at = removed_at

    async def active_slots(self, team_id: int) -> list[RosterSlot]:
        rows = [s for s in self.slots.values() if s.team_id == team_id and s.active]
        rows.sort(key=lambda s: (s.position, s.id))
        return copy.deepcopy(rows)

    async def active_slot_for_player(self, game_id: int, player_id: int) -> RosterSlot | None:
        for slot in self.slots.values():
            if slot.player_id == player_id and slot.active and self.teams[slot.team_id].game_id == game_id:
                return copy.deepcopy(slot)
        return None

    async def rostered_player_ids(self, game_id: int) -> set[int]:
        return {
            s.player_id for s in self.slots.values() if s.active and self.teams[s.team_id].game_id == game_id
        }

    # drafts

    async def add_draft(self, draft: Draft) -> Draft:
        for participant in draft.participants:
            if participant.id is None:
                participant.id = self._next_id("participant")
        return self._store("draft", self.drafts, draft)

    async def get_draft(self, draft_id: int) -> Draft:
        return self._get(self.drafts, "draft", draft_id)

    async def draft_for_game(self, game_id: int) -> Draft | None:
        for draft in self.drafts.values():
            if draft.game_id == game_id:
                return copy.deepcopy(draft)
        return None

    async def save_draft(self, draft: Draft) -> None:
        if draft.id not in self.drafts:
            raise NotFoundError("draft", draft.id)
        self.drafts[draft.id] = copy.deepcopy(draft)

    async def drafts_with_status(self, status: DraftStatus) -> list[Draft]:
        return copy.deepcopy([d for d in self.drafts.values() if d.status is status])

    async def add_pick(self, pick: DraftPick) -> DraftPick:
        for existing in self.picks.values():
            if existing.draft_id == pick.draft_id and existing.player_id == pick.player_id:
                raise ValueError(f"player {pick.player_id} already drafted in draft {pick.draft_id}")
        return self._store("pick", self.picks, pick)

    async def picks_for_draft(self, draft_id: int) -> list[DraftPick]:
        rows = [p for p in self.picks.values() if p.draft_id == draft_id]
        rows.sort(key=lambda p: p.pick_number)
        return copy.deepcopy(rows)

    async def drafted_player_ids(self, draft_id: int) -> set[int]:
        return {p.player_id for p in self.picks.values() if p.draft_id == draft_id}

    # trades

    async def add_trade(self, trade: Trade) -> Trade:
        return self._store("trade", self.trades, trade)

    async def get_trade(self, trade_id: int) -> Trade:
        return self._get(self.trades, "trade", trade_id)

    async def save_trade(self, trade: Trade) -> None:
        if trade.id not in self.trades:
            raise NotFoundError("trade", trade.id)
        self.trades[trade.id] = copy.deepcopy(trade)

    async def trades_for_team(self, team_id: int) -> list[Trade]:
        rows = [t for t in self.trades.values() if team_id in t.team_ids]
        rows.sort(key=lambda t: (t.proposed_at, t.id), reverse=True)
        return copy.deepcopy(rows)

    async def trades_for_game(self, game_id: int, status: TradeStatus | None = None) -> list[Trade]:
        rows = [t for t in self.trades.values() if t.game_id == game_id and (status is None or t.status is status)]
        rows.sort(key=lambda t: (t.proposed_at, t.id), reverse=True)
        return copy.deepcopy(rows)
