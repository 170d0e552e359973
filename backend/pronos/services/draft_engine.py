from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from pronos.config import settings
from pronos.entities import (
    Draft,
    DraftPick,
    DraftStatus,
    Game,
    Participant,
    Player,
    Region,
    RosterSlot,
    snake_position,
    utcnow,
)
from pronos.repositories.base import LeagueRepository, next_position, roster_players
from pronos.services.draft_validator import check_pick
from pronos.services.errors import AuthorizationError, ConflictError, LeagueError, ValidationError
from pronos.services.events import EventPublisher, EventType, LeagueEvent, LoggingEventPublisher, publish_all
from pronos.services.locks import LockRegistry, draft_key, game_key, lock_registry, team_key
from pronos.services.quota import check_addition, quota_table

logger = logging.getLogger("pronos.draft")


@dataclass
class PickOutcome:
    draft: Draft
    pick: DraftPick
    events: list[LeagueEvent] = field(default_factory=list)


@dataclass
class TimeoutOutcome:
    draft_id: int
    timed_out: bool = False
    pick: DraftPick | None = None
    error: LeagueError | None = None
    events: list[LeagueEvent] = field(default_factory=list)


def best_available(players: list[Player]) -> list[Player]:
    """Ranked players first (lowest rank wins), then unranked; ties broken by id."""
    return sorted(players, key=lambda p: (p.rank is None, p.rank if p.rank is not None else 0, p.id or 0))


class DraftTurnEngine:
    """
    Snake-draft turn engine.

    Pick execution, manual or automatic, is serialized per draft through the lock
    registry and always runs the full pick validation before anything is written.
    """

    def __init__(
        self,
        repo: LeagueRepository,
        *,
        publisher: EventPublisher | None = None,
        locks: LockRegistry | None = None,
        pick_time_limit_seconds: int | None = None,
        default_rounds: int | None = None,
    ) -> None:
        self.repo = repo
        self.publisher = publisher or LoggingEventPublisher()
        self.locks = locks or lock_registry
        self._pick_time_limit_seconds = pick_time_limit_seconds
        self._default_rounds = default_rounds

    # -- turn order (lock-free reads) -------------------------------------------------

    @staticmethod
    def current_participant(draft: Draft) -> Participant | None:
        return draft.participant_on_clock()

    @staticmethod
    def is_complete(draft: Draft) -> bool:
        # FINISHED is authoritative; the counter check covers a draft whose status write is pending.
        return draft.status is DraftStatus.FINISHED or draft.picks_exhausted

    @staticmethod
    def remaining_picks(draft: Draft) -> int:
        if draft.status is DraftStatus.FINISHED:
            return 0
        return max(0, draft.total_picks - draft.current_pick + 1)

    async def whose_turn(self, draft_id: int) -> Participant | None:
        return self.current_participant(await self.repo.get_draft(draft_id))

    def pick_time_limit(self, game: Game) -> timedelta:
        seconds = game.pick_time_limit_seconds or self._pick_time_limit_seconds or settings.pick_time_limit_seconds
        return timedelta(seconds=seconds)

    async def turn_deadline(self, draft: Draft) -> datetime | None:
        """When the participant on the clock gets auto-picked. None unless the clock is running."""
        if draft.status is not DraftStatus.IN_PROGRESS or draft.turn_started_at is None:
            return None
        return draft.turn_started_at + self.pick_time_limit(await self.repo.get_game(draft.game_id))

    # -- lifecycle ---------------------------------------------------------------------

    async def start_draft(self, game_id: int, acting_user_id: uuid.UUID, *, now: datetime | None = None) -> Draft:
        now = now or utcnow()
        game = await self.repo.get_game(game_id)
        self._require_creator(game, acting_user_id)

        async with self.locks.hold(game_key(game_id)):
            if await self.repo.draft_for_game(game_id) is not None:
                raise ConflictError("draft_already_exists", game_id=game_id)

            teams = await self.repo.teams_for_game(game_id)
            if len(teams) < 2:
                raise ConflictError("not_enough_participants", game_id=game_id, count=len(teams))

            quotas = await self.repo.quotas_for_game(game_id)
            total_rounds = (
                game.draft_rounds
                or sum(q.max_players for q in quotas)
                or self._default_rounds
                or settings.default_draft_rounds
            )
            draft = Draft(
                game_id=game_id,
                total_rounds=total_rounds,
                participants=[
                    Participant(team_id=t.id, user_id=t.owner_id, draft_order=i) for i, t in enumerate(teams, start=1)
                ],
                status=DraftStatus.IN_PROGRESS,
                started_at=now,
                turn_started_at=now,
            )
            async with self.repo.transaction():
                draft = await self.repo.add_draft(draft)

        logger.info(
            "draft started draft_id=%s game_id=%s participants=%s rounds=%s",
            draft.id,
            game_id,
            draft.participant_count,
            total_rounds,
        )
        self.locks.forget([game_key(game_id)])
        await publish_all(self.publisher, [LeagueEvent.for_draft(EventType.DRAFT_STARTED, draft, occurred_at=now)])
        return draft

    async def pause(self, draft_id: int, acting_user_id: uuid.UUID, *, now: datetime | None = None) -> Draft:
        now = now or utcnow()
        async with self.locks.hold(draft_key(draft_id)):
            draft = await self.repo.get_draft(draft_id)
            self._require_creator(await self.repo.get_game(draft.game_id), acting_user_id)
            if draft.status is not DraftStatus.IN_PROGRESS:
                raise ConflictError("draft_not_in_progress", draft_id=draft_id, status=draft.status.value)
            draft.status = DraftStatus.PAUSED
            draft.paused_at = now
            async with self.repo.transaction():
                await self.repo.save_draft(draft)

        logger.info("draft paused draft_id=%s pick=%s", draft_id, draft.current_pick)
        await publish_all(self.publisher, [LeagueEvent.for_draft(EventType.DRAFT_PAUSED, draft, occurred_at=now)])
        return draft

    async def resume(self, draft_id: int, acting_user_id: uuid.UUID, *, now: datetime | None = None) -> Draft:
        now = now or utcnow()
        async with self.locks.hold(draft_key(draft_id)):
            draft = await self.repo.get_draft(draft_id)
            self._require_creator(await self.repo.get_game(draft.game_id), acting_user_id)
            if draft.status is not DraftStatus.PAUSED:
                raise ConflictError("draft_not_paused", draft_id=draft_id, status=draft.status.value)
            # The clock does not run while paused: push the turn start forward by the paused span.
            if draft.turn_started_at is not None and draft.paused_at is not None:
                draft.turn_started_at += max(now - draft.paused_at, timedelta(0))
            draft.status = DraftStatus.IN_PROGRESS
            draft.paused_at = None
            async with self.repo.transaction():
                await self.repo.save_draft(draft)

        logger.info("draft resumed draft_id=%s pick=%s", draft_id, draft.current_pick)
        await publish_all(self.publisher, [LeagueEvent.for_draft(EventType.DRAFT_RESUMED, draft, occurred_at=now)])
        return draft

    async def finish(
        self,
        draft_id: int,
        acting_user_id: uuid.UUID,
        *,
        force: bool = False,
        now: datetime | None = None,
    ) -> Draft:
        """Administrative close. Incomplete drafts only close with force=True."""
        now = now or utcnow()
        async with self.locks.hold(draft_key(draft_id)):
            draft = await self.repo.get_draft(draft_id)
            self._require_creator(await self.repo.get_game(draft.game_id), acting_user_id)
            if draft.status is DraftStatus.FINISHED:
                raise ConflictError("draft_already_finished", draft_id=draft_id)
            if not self.is_complete(draft) and not force:
                raise ConflictError("draft_incomplete", draft_id=draft_id, remaining_picks=self.remaining_picks(draft))
            draft.status = DraftStatus.FINISHED
            draft.finished_at = now
            draft.paused_at = None
            async with self.repo.transaction():
                await self.repo.save_draft(draft)

        logger.info("draft finished draft_id=%s forced=%s", draft_id, force)
        self._forget_if_finished(draft)
        await publish_all(self.publisher, [LeagueEvent.for_draft(EventType.DRAFT_FINISHED, draft, occurred_at=now)])
        return draft

    # -- picks ---------------------------------------------------------------------------

    async def execute_pick(
        self,
        draft_id: int,
        acting_user_id: uuid.UUID,
        player_id: int,
        *,
        now: datetime | None = None,
    ) -> PickOutcome:
        draft = await self.repo.get_draft(draft_id)
        participant = draft.participant_for_user(acting_user_id)
        if participant is None:
            raise AuthorizationError("not_a_participant", draft_id=draft_id, user_id=str(acting_user_id))

        async with self.locks.hold(draft_key(draft_id), team_key(participant.team_id)):
            outcome = await self._pick_locked(draft_id, participant.id, player_id, now=now or utcnow(), auto=False)

        self._forget_if_finished(outcome.draft)
        await publish_all(self.publisher, outcome.events)
        return outcome

    async def handle_timeout(self, draft_id: int, *, now: datetime | None = None) -> TimeoutOutcome:
        """
        Auto-pick for the participant on the clock if their time is up.

        At most one pick per call. Failures are returned in the outcome, not raised,
        so a scheduler can keep ticking; the draft is left as it was.
        """
        now = now or utcnow()
        draft = await self.repo.get_draft(draft_id)
        on_clock = self.current_participant(draft)
        if draft.status is not DraftStatus.IN_PROGRESS or on_clock is None:
            return TimeoutOutcome(draft_id)

        async with self.locks.hold(draft_key(draft_id), team_key(on_clock.team_id)):
            draft = await self.repo.get_draft(draft_id)
            participant = self.current_participant(draft)
            # Someone picked while we waited for the lock; the new turn has a fresh clock.
            if draft.status is not DraftStatus.IN_PROGRESS or participant is None or participant.id != on_clock.id:
                return TimeoutOutcome(draft_id)

            game = await self.repo.get_game(draft.game_id)
            started = draft.turn_started_at or draft.started_at or now
            if now - started <= self.pick_time_limit(game):
                return TimeoutOutcome(draft_id)

            candidates = await self._eligible_players(draft, game, participant)
            if not candidates:
                error = ValidationError(
                    "no_eligible_player",
                    "No eligible player left for auto-pick",
                    draft_id=draft_id,
                    participant_id=participant.id,
                )
                logger.warning("auto-pick failed draft_id=%s participant_id=%s reason=%s", draft_id, participant.id, error.reason)
                return TimeoutOutcome(draft_id, timed_out=True, error=error)

            try:
                outcome = await self._pick_locked(draft_id, participant.id, candidates[0].id, now=now, auto=True)
            except LeagueError as e:
                logger.warning("auto-pick rejected draft_id=%s participant_id=%s reason=%s", draft_id, participant.id, e.reason)
                return TimeoutOutcome(draft_id, timed_out=True, error=e)

        self._forget_if_finished(outcome.draft)
        await publish_all(self.publisher, outcome.events)
        return TimeoutOutcome(draft_id, timed_out=True, pick=outcome.pick, events=outcome.events)

    async def _pick_locked(
        self,
        draft_id: int,
        participant_id: int,
        player_id: int,
        *,
        now: datetime,
        auto: bool,
    ) -> PickOutcome:
        # Caller holds the draft lock and the participant's team lock.
        draft = await self.repo.get_draft(draft_id)
        participant = next(p for p in draft.participants if p.id == participant_id)
        game = await self.repo.get_game(draft.game_id)
        player = await self.repo.get_player(player_id)
        roster = await roster_players(self.repo, participant.team_id)

        check = check_pick(
            draft,
            participant,
            player,
            drafted_player_ids=await self.repo.drafted_player_ids(draft_id),
            rostered_player_ids=await self.repo.rostered_player_ids(draft.game_id),
            roster=roster,
            quotas=quota_table(await self.repo.quotas_for_game(draft.game_id)),
            season=game.season,
        )
        if not check.valid:
            logger.warning(
                "pick rejected draft_id=%s participant_id=%s player_id=%s reason=%s",
                draft_id,
                participant_id,
                player_id,
                check.rejection,
            )
            check.raise_for_rejection()

        round_number, _ = snake_position(draft.current_pick, draft.participant_count)
        pick = DraftPick(
            draft_id=draft_id,
            participant_id=participant.id,
            team_id=participant.team_id,
            player_id=player.id,
            round=round_number,
            pick_number=draft.current_pick,
            picked_at=now,
            auto=auto,
        )
        slot = RosterSlot(
            team_id=participant.team_id,
            player_id=player.id,
            position=next_position(await self.repo.active_slots(participant.team_id)),
            added_at=now,
        )

        draft.current_pick += 1
        draft.turn_started_at = now
        if draft.picks_exhausted:
            draft.status = DraftStatus.FINISHED
            draft.finished_at = now

        async with self.repo.transaction():
            pick = await self.repo.add_pick(pick)
            await self.repo.add_slot(slot)
            await self.repo.save_draft(draft)

        logger.info(
            "pick made draft_id=%s pick=%s round=%s team_id=%s player_id=%s auto=%s",
            draft_id,
            pick.pick_number,
            pick.round,
            pick.team_id,
            pick.player_id,
            auto,
        )
        events = [LeagueEvent.for_pick(draft, pick)]
        if draft.status is DraftStatus.FINISHED:
            logger.info("draft complete draft_id=%s picks=%s", draft_id, draft.total_picks)
            events.append(LeagueEvent.for_draft(EventType.DRAFT_FINISHED, draft, occurred_at=now))
        return PickOutcome(draft=draft, pick=pick, events=events)

    # -- queries -------------------------------------------------------------------------

    async def get_draft(self, draft_id: int) -> Draft:
        return await self.repo.get_draft(draft_id)

    async def get_draft_for_game(self, game_id: int) -> Draft | None:
        await self.repo.get_game(game_id)
        return await self.repo.draft_for_game(game_id)

    async def list_picks(self, draft_id: int) -> list[DraftPick]:
        await self.repo.get_draft(draft_id)
        return await self.repo.picks_for_draft(draft_id)

    async def available_players(
        self,
        draft_id: int,
        *,
        team_id: int | None = None,
        region: Region | None = None,
    ) -> list[Player]:
        """
        Undrafted, unrostered, unlocked players of the game's season, best first.
        With `team_id`, also drops players that would put that team over quota;
        with `region`, keeps only that region.
        """
        draft = await self.repo.get_draft(draft_id)
        game = await self.repo.get_game(draft.game_id)
        participant = draft.participant_for_team(team_id) if team_id is not None else None
        if team_id is not None and participant is None:
            raise ValidationError("team_not_in_draft", draft_id=draft_id, team_id=team_id)
        players = await self._eligible_players(draft, game, participant)
        if region is not None:
            players = [p for p in players if p.region is region]
        return players

    async def _eligible_players(self, draft: Draft, game: Game, participant: Participant | None) -> list[Player]:
        taken = await self.repo.drafted_player_ids(draft.id) | await self.repo.rostered_player_ids(draft.game_id)
        pool = [
            p for p in await self.repo.players_for_season(game.season) if p.id not in taken and not p.locked
        ]
        if participant is not None:
            roster = await roster_players(self.repo, participant.team_id)
            quotas = quota_table(await self.repo.quotas_for_game(draft.game_id))
            pool = [p for p in pool if check_addition(roster, p, quotas).valid]
        return best_available(pool)

    def _forget_if_finished(self, draft: Draft) -> None:
        # A finished draft takes no further picks or lifecycle calls.
        if draft.status is DraftStatus.FINISHED:
            self.locks.forget([draft_key(draft.id)])

    @staticmethod
    def _require_creator(game: Game, acting_user_id: uuid.UUID) -> None:
        if game.creator_id != acting_user_id:
            raise AuthorizationError("not_game_creator", game_id=game.id, user_id=str(acting_user_id))
