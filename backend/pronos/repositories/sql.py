from __future__ import annotations

from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Select, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from pronos import models
from pronos.entities import (
    Draft,
    DraftPick,
    DraftStatus,
    Game,
    Participant,
    Player,
    Region,
    RegionQuota,
    RosterSlot,
    Team,
    Trade,
    TradeStatus,
)
from pronos.services.errors import NotFoundError


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands timezone-aware columns back naive; everything stored is UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _game(row: models.Game) -> Game:
    return Game(
        id=row.id,
        name=row.name,
        creator_id=row.creator_id,
        season=row.season,
        trading_enabled=row.trading_enabled,
        trade_deadline=_aware(row.trade_deadline),
        max_trades_per_team=row.max_trades_per_team,
        draft_rounds=row.draft_rounds,
        pick_time_limit_seconds=row.pick_time_limit_seconds,
    )


def _team(row: models.Team) -> Team:
    return Team(
        id=row.id,
        name=row.name,
        owner_id=row.owner_id,
        game_id=row.game_id,
        season=row.season,
        joined_at=_aware(row.joined_at),
        completed_trades=row.completed_trades,
    )


def _player(row: models.Player) -> Player:
    return Player(
        id=row.id,
        nickname=row.nickname,
        region=Region(row.region),
        season=row.season,
        locked=row.locked,
        rank=row.rank,
        tranche=row.tranche,
    )


def _quota(row: models.RegionQuota) -> RegionQuota:
    return RegionQuota(id=row.id, game_id=row.game_id, region=Region(row.region), max_players=row.max_players)


def _slot(row: models.RosterSlot) -> RosterSlot:
    return RosterSlot(
        id=row.id,
        team_id=row.team_id,
        player_id=row.player_id,
        position=row.position,
        added_at=_aware(row.added_at),
        removed_at=_aware(row.removed_at),
    )


def _draft(row: models.Draft) -> Draft:
    return Draft(
        id=row.id,
        game_id=row.game_id,
        total_rounds=row.total_rounds,
        participants=[
            Participant(id=p.id, team_id=p.team_id, user_id=p.user_id, draft_order=p.draft_order)
            for p in row.participants
        ],
        status=DraftStatus(row.status),
        current_pick=row.current_pick,
        started_at=_aware(row.started_at),
        finished_at=_aware(row.finished_at),
        paused_at=_aware(row.paused_at),
        turn_started_at=_aware(row.turn_started_at),
    )


def _pick(row: models.DraftPick) -> DraftPick:
    return DraftPick(
        id=row.id,
        draft_id=row.draft_id,
        participant_id=row.participant_id,
        team_id=row.team_id,
        player_id=row.player_id,
        round=row.round,
        pick_number=row.pick_number,
        picked_at=_aware(row.picked_at),
        auto=row.auto,
    )


def _trade(row: models.Trade) -> Trade:
    return Trade(
        id=row.id,
        game_id=row.game_id,
        from_team_id=row.from_team_id,
        to_team_id=row.to_team_id,
        offered_player_ids=[p.player_id for p in row.players if p.side == "offered"],
        requested_player_ids=[p.player_id for p in row.players if p.side == "requested"],
        status=TradeStatus(row.status),
        proposed_at=_aware(row.proposed_at),
        accepted_at=_aware(row.accepted_at),
        rejected_at=_aware(row.rejected_at),
        cancelled_at=_aware(row.cancelled_at),
        countered_at=_aware(row.countered_at),
        original_trade_id=row.original_trade_id,
    )


class SqlLeagueRepository:
    """
    LeagueRepository backed by an AsyncSession.

    Writes are flushed immediately so ids are available, and only become durable
    when the enclosing `transaction()` commits. Reads always refresh from the
    database so rows changed by another session are never served stale.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self._tx_depth = 0

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._tx_depth:
            self._tx_depth += 1
            try:
                yield
            finally:
                self._tx_depth -= 1
            return

        self._tx_depth = 1
        try:
            yield
            await self.session.commit()
        except BaseException:
            await self.session.rollback()
            raise
        finally:
            self._tx_depth = 0

    async def _get_row(self, model: type[Any], kind: str, ref: int) -> Any:
        row = await self.session.get(model, ref, populate_existing=True)
        if row is None:
            raise NotFoundError(kind, ref)
        return row

    async def _rows(self, stmt: Select[Any]) -> list[Any]:
        res = await self.session.execute(stmt.execution_options(populate_existing=True))
        return list(res.scalars().all())

    async def _add(self, row: Any) -> Any:
        self.session.add(row)
        await self.session.flush()
        return row

    # games, teams, players, quotas

    async def add_game(self, game: Game) -> Game:
        row = await self._add(
            models.Game(
                id=game.id,
                name=game.name,
                creator_id=game.creator_id,
                season=game.season,
                trading_enabled=game.trading_enabled,
                trade_deadline=game.trade_deadline,
                max_trades_per_team=game.max_trades_per_team,
                draft_rounds=game.draft_rounds,
                pick_time_limit_seconds=game.pick_time_limit_seconds,
            )
        )
        return _game(row)

    async def get_game(self, game_id: int) -> Game:
        return _game(await self._get_row(models.Game, "game", game_id))

    async def add_team(self, team: Team) -> Team:
        row = await self._add(
            models.Team(
                id=team.id,
                name=team.name,
                owner_id=team.owner_id,
                game_id=team.game_id,
                season=team.season,
                joined_at=team.joined_at,
                completed_trades=team.completed_trades,
            )
        )
        return _team(row)

    async def get_team(self, team_id: int) -> Team:
        return _team(await self._get_row(models.Team, "team", team_id))

    async def save_team(self, team: Team) -> None:
        row = await self._get_row(models.Team, "team", team.id)
        row.name = team.name
        row.completed_trades = team.completed_trades
        await self.session.flush()

    async def teams_for_game(self, game_id: int) -> list[Team]:
        stmt = select(models.Team).where(models.Team.game_id == game_id).order_by(models.Team.joined_at, models.Team.id)
        return [_team(r) for r in await self._rows(stmt)]

    async def add_player(self, player: Player) -> Player:
        row = await self._add(
            models.Player(
                id=player.id,
                nickname=player.nickname,
                region=player.region.value,
                season=player.season,
                locked=player.locked,
                rank=player.rank,
                tranche=player.tranche,
            )
        )
        return _player(row)

    async def get_player(self, player_id: int) -> Player:
        return _player(await self._get_row(models.Player, "player", player_id))

    async def get_players(self, player_ids: Iterable[int]) -> list[Player]:
        ids = list(player_ids)
        if not ids:
            return []
        rows = await self._rows(select(models.Player).where(models.Player.id.in_(ids)))
        by_id = {r.id: r for r in rows}
        missing = [pid for pid in ids if pid not in by_id]
        if missing:
            raise NotFoundError("player", missing[0])
        return [_player(by_id[pid]) for pid in ids]

    async def players_for_season(self, season: int) -> list[Player]:
        stmt = select(models.Player).where(models.Player.season == season).order_by(models.Player.id)
        return [_player(r) for r in await self._rows(stmt)]

    async def add_quota(self, quota: RegionQuota) -> RegionQuota:
        row = await self._add(
            models.RegionQuota(
                id=quota.id, game_id=quota.game_id, region=quota.region.value, max_players=quota.max_players
            )
        )
        return _quota(row)

    async def quotas_for_game(self, game_id: int) -> list[RegionQuota]:
        stmt = select(models.RegionQuota).where(models.RegionQuota.game_id == game_id).order_by(models.RegionQuota.id)
        return [_quota(r) for r in await self._rows(stmt)]

    # roster slots

    async def add_slot(self, slot: RosterSlot) -> RosterSlot:
        row = await self._add(
            models.RosterSlot(
                id=slot.id,
                team_id=slot.team_id,
                player_id=slot.player_id,
                position=slot.position,
                added_at=slot.added_at,
                removed_at=slot.removed_at,
            )
        )
        return _slot(row)

    async def close_slot(self, slot_id: int, removed_at: datetime) -> None:
        row = await self._get_row(models.RosterSlot, "slot", slot_id)
        row.removed_at = removed_at
        await self.session.flush()

    async def active_slots(self, team_id: int) -> list[RosterSlot]:
        stmt = (
            select(models.RosterSlot)
            .where(models.RosterSlot.team_id == team_id, models.RosterSlot.removed_at.is_(None))
            .order_by(models.RosterSlot.position, models.RosterSlot.id)
        )
        return [_slot(r) for r in await self._rows(stmt)]

    async def active_slot_for_player(self, game_id: int, player_id: int) -> RosterSlot | None:
        stmt = (
            select(models.RosterSlot)
            .join(models.Team, models.Team.id == models.RosterSlot.team_id)
            .where(
                models.Team.game_id == game_id,
                models.RosterSlot.player_id == player_id,
                models.RosterSlot.removed_at.is_(None),
            )
            .limit(1)
        )
        rows = await self._rows(stmt)
        return _slot(rows[0]) if rows else None

    async def rostered_player_ids(self, game_id: int) -> set[int]:
        stmt = (
            select(models.RosterSlot.player_id)
            .join(models.Team, models.Team.id == models.RosterSlot.team_id)
            .where(models.Team.game_id == game_id, models.RosterSlot.removed_at.is_(None))
        )
        res = await self.session.execute(stmt)
        return set(res.scalars().all())

    # drafts

    async def add_draft(self, draft: Draft) -> Draft:
        row = await self._add(
            models.Draft(
                id=draft.id,
                game_id=draft.game_id,
                status=draft.status.value,
                total_rounds=draft.total_rounds,
                current_pick=draft.current_pick,
                started_at=draft.started_at,
                finished_at=draft.finished_at,
                paused_at=draft.paused_at,
                turn_started_at=draft.turn_started_at,
                participants=[
                    models.DraftParticipant(team_id=p.team_id, user_id=p.user_id, draft_order=p.draft_order)
                    for p in draft.participants
                ],
            )
        )
        return _draft(row)

    async def get_draft(self, draft_id: int) -> Draft:
        return _draft(await self._get_row(models.Draft, "draft", draft_id))

    async def draft_for_game(self, game_id: int) -> Draft | None:
        rows = await self._rows(select(models.Draft).where(models.Draft.game_id == game_id))
        return _draft(rows[0]) if rows else None

    async def save_draft(self, draft: Draft) -> None:
        # Participants are fixed at creation; only the draft's own state moves.
        row = await self._get_row(models.Draft, "draft", draft.id)
        row.status = draft.status.value
        row.current_pick = draft.current_pick
        row.started_at = draft.started_at
        row.finished_at = draft.finished_at
        row.paused_at = draft.paused_at
        row.turn_started_at = draft.turn_started_at
        await self.session.flush()

    async def drafts_with_status(self, status: DraftStatus) -> list[Draft]:
        stmt = select(models.Draft).where(models.Draft.status == status.value).order_by(models.Draft.id)
        return [_draft(r) for r in await self._rows(stmt)]

    async def add_pick(self, pick: DraftPick) -> DraftPick:
        row = await self._add(
            models.DraftPick(
                id=pick.id,
                draft_id=pick.draft_id,
                participant_id=pick.participant_id,
                team_id=pick.team_id,
                player_id=pick.player_id,
                round=pick.round,
                pick_number=pick.pick_number,
                auto=pick.auto,
                picked_at=pick.picked_at,
            )
        )
        return _pick(row)

    async def picks_for_draft(self, draft_id: int) -> list[DraftPick]:
        stmt = select(models.DraftPick).where(models.DraftPick.draft_id == draft_id).order_by(models.DraftPick.pick_number)
        return [_pick(r) for r in await self._rows(stmt)]

    async def drafted_player_ids(self, draft_id: int) -> set[int]:
        res = await self.session.execute(
            select(models.DraftPick.player_id).where(models.DraftPick.draft_id == draft_id)
        )
        return set(res.scalars().all())

    # trades

    async def add_trade(self, trade: Trade) -> Trade:
        players = [
            models.TradePlayer(player_id=pid, side="offered", position=i)
            for i, pid in enumerate(trade.offered_player_ids)
        ] + [
            models.TradePlayer(player_id=pid, side="requested", position=i)
            for i, pid in enumerate(trade.requested_player_ids)
        ]
        row = await self._add(
            models.Trade(
                id=trade.id,
                game_id=trade.game_id,
                from_team_id=trade.from_team_id,
                to_team_id=trade.to_team_id,
                status=trade.status.value,
                original_trade_id=trade.original_trade_id,
                proposed_at=trade.proposed_at,
                accepted_at=trade.accepted_at,
                rejected_at=trade.rejected_at,
                cancelled_at=trade.cancelled_at,
                countered_at=trade.countered_at,
                players=players,
            )
        )
        return _trade(row)

    async def get_trade(self, trade_id: int) -> Trade:
        return _trade(await self._get_row(models.Trade, "trade", trade_id))

    async def save_trade(self, trade: Trade) -> None:
        # The player lists never change after a proposal.
        row = await self._get_row(models.Trade, "trade", trade.id)
        row.status = trade.status.value
        row.accepted_at = trade.accepted_at
        row.rejected_at = trade.rejected_at
        row.cancelled_at = trade.cancelled_at
        row.countered_at = trade.countered_at
        await self.session.flush()

    async def trades_for_team(self, team_id: int) -> list[Trade]:
        stmt = (
            select(models.Trade)
            .where(or_(models.Trade.from_team_id == team_id, models.Trade.to_team_id == team_id))
            .order_by(models.Trade.proposed_at.desc(), models.Trade.id.desc())
        )
        return [_trade(r) for r in await self._rows(stmt)]

    async def trades_for_game(self, game_id: int, status: TradeStatus | None = None) -> list[Trade]:
        stmt = select(models.Trade).where(models.Trade.game_id == game_id)
        if status is not None:
            stmt = stmt.where(models.Trade.status == status.value)
        stmt = stmt.order_by(models.Trade.proposed_at.desc(), models.Trade.id.desc())
        return [_trade(r) for r in await self._rows(stmt)]
