from __future__ import annotations

import logging
import uuid
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from pronos.config import settings
from pronos.entities import Game, Player, RosterSlot, Team, Trade, TradeStatus, utcnow
from pronos.repositories.base import LeagueRepository, next_position
from pronos.services.errors import AuthorizationError, ConflictError, ValidationError
from pronos.services.events import EventPublisher, EventType, LeagueEvent, LoggingEventPublisher, publish_all
from pronos.services.locks import LockRegistry, lock_registry, team_key, trade_key
from pronos.services.quota import check_roster, quota_table, simulate_swap

logger = logging.getLogger("pronos.trades")


@dataclass
class TradeOutcome:
    trade: Trade
    # Set by counter(): the trade the new proposal replaced.
    superseded: Trade | None = None
    events: list[LeagueEvent] = field(default_factory=list)


@dataclass(frozen=True)
class TradeStatistics:
    game_id: int
    accepted: int = 0
    pending: int = 0
    rejected: int = 0
    cancelled: int = 0
    countered: int = 0

    @property
    def total(self) -> int:
        return self.accepted + self.pending + self.rejected + self.cancelled + self.countered


class TradeTransactionEngine:
    """
    Trade lifecycle: propose, accept, reject, cancel, counter.

    Acceptance is the only transition that moves players. It runs under the trade
    lock and both team locks, re-validates everything against the current rosters,
    and commits the whole swap in one repository transaction.
    """

    def __init__(
        self,
        repo: LeagueRepository,
        *,
        publisher: EventPublisher | None = None,
        locks: LockRegistry | None = None,
        max_players_per_side: int | None = None,
    ) -> None:
        self.repo = repo
        self.publisher = publisher or LoggingEventPublisher()
        self.locks = locks or lock_registry
        self.max_players_per_side = max_players_per_side or settings.max_players_per_trade_side

    # -- transitions ---------------------------------------------------------------------

    async def propose(
        self,
        from_team_id: int,
        to_team_id: int,
        offered_player_ids: Sequence[int],
        requested_player_ids: Sequence[int],
        acting_user_id: uuid.UUID,
        *,
        now: datetime | None = None,
    ) -> TradeOutcome:
        now = now or utcnow()
        from_team = await self.repo.get_team(from_team_id)
        to_team = await self.repo.get_team(to_team_id)
        if from_team.owner_id != acting_user_id:
            raise AuthorizationError("not_team_owner", team_id=from_team_id, user_id=str(acting_user_id))

        trade = await self._build_proposal(from_team, to_team, offered_player_ids, requested_player_ids, now)
        async with self.repo.transaction():
            trade = await self.repo.add_trade(trade)

        logger.info(
            "trade proposed trade_id=%s from_team=%s to_team=%s offered=%s requested=%s",
            trade.id,
            trade.from_team_id,
            trade.to_team_id,
            trade.offered_player_ids,
            trade.requested_player_ids,
        )
        events = [LeagueEvent.for_trade(EventType.TRADE_PROPOSED, trade, occurred_at=now)]
        await publish_all(self.publisher, events)
        return TradeOutcome(trade=trade, events=events)

    async def accept(self, trade_id: int, acting_user_id: uuid.UUID, *, now: datetime | None = None) -> TradeOutcome:
        now = now or utcnow()
        trade = await self.repo.get_trade(trade_id)

        async with self.locks.hold(trade_key(trade_id), team_key(trade.from_team_id), team_key(trade.to_team_id)):
            trade = await self.repo.get_trade(trade_id)
            from_team = await self.repo.get_team(trade.from_team_id)
            to_team = await self.repo.get_team(trade.to_team_id)
            if to_team.owner_id != acting_user_id:
                raise AuthorizationError("not_trade_recipient", trade_id=trade_id, user_id=str(acting_user_id))
            self._require_pending(trade)

            game = await self.repo.get_game(trade.game_id)
            self._check_window(game, now)
            self._check_caps(game, from_team, to_team)

            from_slots = await self.repo.active_slots(from_team.id)
            to_slots = await self.repo.active_slots(to_team.id)
            moving_out = self._slots_still_owned(trade, from_team, from_slots, trade.offered_player_ids)
            moving_in = self._slots_still_owned(trade, to_team, to_slots, trade.requested_player_ids)

            offered = await self.repo.get_players(trade.offered_player_ids)
            requested = await self.repo.get_players(trade.requested_player_ids)
            self._check_unlocked([*offered, *requested])

            quotas = quota_table(await self.repo.quotas_for_game(game.id))
            from_roster = await self.repo.get_players(s.player_id for s in from_slots)
            to_roster = await self.repo.get_players(s.player_id for s in to_slots)
            for team, after in (
                (from_team, simulate_swap(from_roster, trade.offered_player_ids, requested)),
                (to_team, simulate_swap(to_roster, trade.requested_player_ids, offered)),
            ):
                check = check_roster(after, quotas)
                if not check.valid:
                    logger.warning(
                        "trade accept rejected trade_id=%s team_id=%s reason=quota_exceeded region=%s",
                        trade_id,
                        team.id,
                        check.region,
                    )
                    raise ValidationError("quota_exceeded", trade_id=trade_id, team_id=team.id, **check.as_detail())

            async with self.repo.transaction():
                await self._move(moving_out, to_team.id, to_slots, now)
                await self._move(moving_in, from_team.id, from_slots, now)
                from_team.completed_trades += 1
                to_team.completed_trades += 1
                await self.repo.save_team(from_team)
                await self.repo.save_team(to_team)
                trade.status = TradeStatus.ACCEPTED
                trade.accepted_at = now
                await self.repo.save_trade(trade)

        self.locks.forget([trade_key(trade_id)])
        logger.info(
            "trade accepted trade_id=%s from_team=%s to_team=%s moved=%s",
            trade_id,
            from_team.id,
            to_team.id,
            trade.player_ids,
        )
        events = [LeagueEvent.for_trade(EventType.TRADE_ACCEPTED, trade, occurred_at=now)]
        await publish_all(self.publisher, events)
        return TradeOutcome(trade=trade, events=events)

    async def reject(self, trade_id: int, acting_user_id: uuid.UUID, *, now: datetime | None = None) -> TradeOutcome:
        now = now or utcnow()
        async with self.locks.hold(trade_key(trade_id)):
            trade = await self.repo.get_trade(trade_id)
            to_team = await self.repo.get_team(trade.to_team_id)
            if to_team.owner_id != acting_user_id:
                raise AuthorizationError("not_trade_recipient", trade_id=trade_id, user_id=str(acting_user_id))
            self._require_pending(trade)
            trade.status = TradeStatus.REJECTED
            trade.rejected_at = now
            async with self.repo.transaction():
                await self.repo.save_trade(trade)

        self.locks.forget([trade_key(trade_id)])
        logger.info("trade rejected trade_id=%s", trade_id)
        events = [LeagueEvent.for_trade(EventType.TRADE_REJECTED, trade, occurred_at=now)]
        await publish_all(self.publisher, events)
        return TradeOutcome(trade=trade, events=events)

    async def cancel(self, trade_id: int, acting_user_id: uuid.UUID, *, now: datetime | None = None) -> TradeOutcome:
        now = now or utcnow()
        async with self.locks.hold(trade_key(trade_id)):
            trade = await self.repo.get_trade(trade_id)
            from_team = await self.repo.get_team(trade.from_team_id)
            if from_team.owner_id != acting_user_id:
                raise AuthorizationError("not_trade_proposer", trade_id=trade_id, user_id=str(acting_user_id))
            self._require_pending(trade)
            trade.status = TradeStatus.CANCELLED
            trade.cancelled_at = now
            async with self.repo.transaction():
                await self.repo.save_trade(trade)

        self.locks.forget([trade_key(trade_id)])
        logger.info("trade cancelled trade_id=%s", trade_id)
        events = [LeagueEvent.for_trade(EventType.TRADE_CANCELLED, trade, occurred_at=now)]
        await publish_all(self.publisher, events)
        return TradeOutcome(trade=trade, events=events)

    async def counter(
        self,
        original_trade_id: int,
        acting_user_id: uuid.UUID,
        offered_player_ids: Sequence[int],
        requested_player_ids: Sequence[int],
        *,
        now: datetime | None = None,
    ) -> TradeOutcome:
        """
        Replace a pending trade with a new proposal going the other way.

        `offered_player_ids` come from the original recipient's roster. The original
        is only marked COUNTERED once the new proposal has passed every check.
        """
        now = now or utcnow()
        async with self.locks.hold(trade_key(original_trade_id)):
            original = await self.repo.get_trade(original_trade_id)
            recipient = await self.repo.get_team(original.to_team_id)
            proposer = await self.repo.get_team(original.from_team_id)
            if recipient.owner_id != acting_user_id:
                raise AuthorizationError(
                    "not_trade_recipient", trade_id=original_trade_id, user_id=str(acting_user_id)
                )
            self._require_pending(original)

            counter = await self._build_proposal(recipient, proposer, offered_player_ids, requested_player_ids, now)
            counter.original_trade_id = original.id

            original.status = TradeStatus.COUNTERED
            original.countered_at = now
            async with self.repo.transaction():
                await self.repo.save_trade(original)
                counter = await self.repo.add_trade(counter)

        self.locks.forget([trade_key(original_trade_id)])
        logger.info("trade countered trade_id=%s counter_trade_id=%s", original_trade_id, counter.id)
        events = [
            LeagueEvent.for_trade(EventType.TRADE_COUNTERED, original, occurred_at=now),
            LeagueEvent.for_trade(EventType.TRADE_PROPOSED, counter, occurred_at=now),
        ]
        await publish_all(self.publisher, events)
        return TradeOutcome(trade=counter, superseded=original, events=events)

    # -- queries -------------------------------------------------------------------------

    async def get_trade(self, trade_id: int) -> Trade:
        return await self.repo.get_trade(trade_id)

    async def team_trade_history(self, team_id: int) -> list[Trade]:
        await self.repo.get_team(team_id)
        return await self.repo.trades_for_team(team_id)

    async def pending_trades_for_team(self, team_id: int) -> list[Trade]:
        return [t for t in await self.team_trade_history(team_id) if t.status is TradeStatus.PENDING]

    async def game_trades(self, game_id: int, status: TradeStatus | None = None) -> list[Trade]:
        await self.repo.get_game(game_id)
        return await self.repo.trades_for_game(game_id, status)

    async def game_trade_statistics(self, game_id: int) -> TradeStatistics:
        counts = Counter(t.status for t in await self.game_trades(game_id))
        return TradeStatistics(
            game_id=game_id,
            accepted=counts[TradeStatus.ACCEPTED],
            pending=counts[TradeStatus.PENDING],
            rejected=counts[TradeStatus.REJECTED],
            cancelled=counts[TradeStatus.CANCELLED],
            countered=counts[TradeStatus.COUNTERED],
        )

    # -- helpers -------------------------------------------------------------------------

    async def _build_proposal(
        self,
        from_team: Team,
        to_team: Team,
        offered_player_ids: Sequence[int],
        requested_player_ids: Sequence[int],
        now: datetime,
    ) -> Trade:
        offered_ids = list(offered_player_ids)
        requested_ids = list(requested_player_ids)

        if from_team.id == to_team.id:
            raise ValidationError("same_team", team_id=from_team.id)
        if from_team.game_id != to_team.game_id:
            raise ValidationError(
                "different_games", from_game_id=from_team.game_id, to_game_id=to_team.game_id
            )

        game = await self.repo.get_game(from_team.game_id)
        self._check_window(game, now)
        self._check_caps(game, from_team, to_team)

        sides = (("offered", from_team, offered_ids), ("requested", to_team, requested_ids))
        for side, team, ids in sides:
            duplicates = sorted(pid for pid, n in Counter(ids).items() if n > 1)
            if duplicates:
                raise ValidationError("duplicate_player", side=side, player_ids=duplicates)
            await self._check_side(game, team, ids, side)
        for side, _, ids in sides:
            if not ids:
                raise ValidationError("empty_trade_side", side=side)
            if len(ids) > self.max_players_per_side:
                raise ValidationError(
                    "too_many_players", side=side, count=len(ids), limit=self.max_players_per_side
                )

        return Trade(
            game_id=game.id,
            from_team_id=from_team.id,
            to_team_id=to_team.id,
            offered_player_ids=offered_ids,
            requested_player_ids=requested_ids,
            proposed_at=now,
        )

    async def _check_side(self, game: Game, team: Team, player_ids: list[int], side: str) -> None:
        players = await self.repo.get_players(player_ids)
        for player in players:
            slot = await self.repo.active_slot_for_player(game.id, player.id)
            if slot is None or slot.team_id != team.id:
                raise ValidationError("player_not_owned", player_id=player.id, team_id=team.id, side=side)
        self._check_unlocked(players)

    @staticmethod
    def _check_unlocked(players: Iterable[Player]) -> None:
        for player in players:
            if player.locked:
                raise ValidationError("player_locked", player_id=player.id)

    @staticmethod
    def _check_window(game: Game, now: datetime) -> None:
        if not game.trading_enabled:
            raise ConflictError("trading_disabled", game_id=game.id)
        if game.trade_deadline is not None and now > game.trade_deadline:
            raise ConflictError("trade_deadline_passed", game_id=game.id, deadline=game.trade_deadline.isoformat())

    @staticmethod
    def _check_caps(game: Game, *teams: Team) -> None:
        for team in teams:
            if team.completed_trades >= game.max_trades_per_team:
                raise ConflictError(
                    "trade_cap_reached",
                    team_id=team.id,
                    completed_trades=team.completed_trades,
                    limit=game.max_trades_per_team,
                )

    @staticmethod
    def _require_pending(trade: Trade) -> None:
        if trade.status is not TradeStatus.PENDING:
            raise ConflictError("trade_not_pending", trade_id=trade.id, status=trade.status.value)

    @staticmethod
    def _slots_still_owned(trade: Trade, team: Team, slots: list[RosterSlot], player_ids: list[int]) -> list[RosterSlot]:
        by_player = {s.player_id: s for s in slots}
        moving = []
        for pid in player_ids:
            slot = by_player.get(pid)
            if slot is None:
                raise ConflictError("trade_stale", trade_id=trade.id, player_id=pid, expected_team_id=team.id)
            moving.append(slot)
        return moving

    async def _move(self, slots: list[RosterSlot], receiving_team_id: int, receiving_slots: list[RosterSlot], now: datetime) -> None:
        position = next_position(receiving_slots)
        for slot in slots:
            await self.repo.close_slot(slot.id, now)
            await self.repo.add_slot(
                RosterSlot(team_id=receiving_team_id, player_id=slot.player_id, position=position, added_at=now)
            )
            position += 1
