from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from conftest import CREATOR, NOW, OWNERS, SEASON, STRANGER, build_league
from pronos.entities import DraftStatus, Player, Region
from pronos.services.draft_engine import DraftTurnEngine
from pronos.services.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from pronos.services.events import EventType
from pronos.services.locks import draft_key, game_key


class TestStartDraft:
    async def test_participants_follow_join_order(self, repo, draft_engine, publisher):
        league = await build_league(repo)

        draft = await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)

        assert draft.status is DraftStatus.IN_PROGRESS
        assert [p.team_id for p in draft.participants] == [t.id for t in league.teams]
        assert [p.draft_order for p in draft.participants] == [1, 2, 3]
        assert [p.user_id for p in draft.participants] == OWNERS[:3]
        assert draft.current_pick == 1
        assert draft.turn_started_at == NOW
        assert publisher.types() == [EventType.DRAFT_STARTED]

    async def test_rounds_default_to_quota_sum(self, repo, draft_engine):
        league = await build_league(repo, quotas={Region.EU: 2, Region.NAC: 1})
        draft = await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)
        assert draft.total_rounds == 3

    async def test_game_rounds_override_quota_sum(self, repo, draft_engine):
        league = await build_league(repo, draft_rounds=1)
        draft = await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)
        assert draft.total_rounds == 1

    async def test_falls_back_to_configured_rounds(self, repo, locks):
        league = await build_league(repo, quotas={})
        engine = DraftTurnEngine(repo, locks=locks, default_rounds=7)
        draft = await engine.start_draft(league.game.id, CREATOR, now=NOW)
        assert draft.total_rounds == 7

    async def test_only_creator_can_start(self, repo, draft_engine):
        league = await build_league(repo)
        with pytest.raises(AuthorizationError) as exc:
            await draft_engine.start_draft(league.game.id, OWNERS[0], now=NOW)
        assert exc.value.reason == "not_game_creator"
        assert await repo.draft_for_game(league.game.id) is None

    async def test_needs_two_teams(self, repo, draft_engine):
        league = await build_league(repo, team_count=1)
        with pytest.raises(ConflictError) as exc:
            await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)
        assert exc.value.reason == "not_enough_participants"

    async def test_cannot_start_twice(self, repo, draft_engine):
        league = await build_league(repo)
        await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)
        with pytest.raises(ConflictError) as exc:
            await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)
        assert exc.value.reason == "draft_already_exists"

    async def test_unknown_game(self, draft_engine):
        with pytest.raises(NotFoundError) as exc:
            await draft_engine.start_draft(404, CREATOR)
        assert exc.value.reason == "game_not_found"


class TestExecutePick:
    async def test_three_participant_single_round_scenario(self, repo, draft_engine, publisher):
        league = await build_league(repo, draft_rounds=1)
        # Team 1 already holds one EU player: one more EU pick puts it exactly at quota.
        await league.give(0, "eu5")
        draft = await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)

        with pytest.raises(ConflictError) as exc:
            await draft_engine.execute_pick(draft.id, OWNERS[1], league.pid("eu1"), now=NOW)
        assert exc.value.reason == "not_your_turn"

        with pytest.raises(ValidationError) as exc:
            await draft_engine.execute_pick(draft.id, OWNERS[0], league.pid("locked_eu"), now=NOW)
        assert exc.value.reason == "player_locked"

        assert await repo.picks_for_draft(draft.id) == []
        assert (await repo.get_draft(draft.id)).current_pick == 1

        outcome = await draft_engine.execute_pick(draft.id, OWNERS[0], league.pid("eu1"), now=NOW + timedelta(minutes=5))

        assert outcome.pick.pick_number == 1
        assert outcome.pick.round == 1
        assert outcome.pick.team_id == league.teams[0].id
        assert not outcome.pick.auto
        assert await league.roster(0) == {"eu5", "eu1"}
        on_clock = await draft_engine.whose_turn(draft.id)
        assert on_clock.team_id == league.teams[1].id
        assert (await repo.get_draft(draft.id)).turn_started_at == NOW + timedelta(minutes=5)
        assert publisher.types()[-1] is EventType.DRAFT_PICKED

    async def test_full_snake_draft_finishes(self, repo, draft_engine, publisher):
        league = await build_league(repo, team_count=2, draft_rounds=2)
        draft = await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)

        order = [(0, "eu1"), (1, "eu2"), (1, "nac1"), (0, "nac2")]
        for i, (team_index, nickname) in enumerate(order, start=1):
            outcome = await draft_engine.execute_pick(draft.id, OWNERS[team_index], league.pid(nickname), now=NOW)
            assert outcome.pick.pick_number == i

        assert outcome.draft.status is DraftStatus.FINISHED
        assert outcome.draft.finished_at == NOW
        assert DraftTurnEngine.is_complete(outcome.draft)
        assert DraftTurnEngine.remaining_picks(outcome.draft) == 0
        assert [e.type for e in outcome.events] == [EventType.DRAFT_PICKED, EventType.DRAFT_FINISHED]
        assert [p.round for p in await draft_engine.list_picks(draft.id)] == [1, 1, 2, 2]
        assert await league.roster(0) == {"eu1", "nac2"}
        assert await league.roster(1) == {"eu2", "nac1"}

        with pytest.raises(ConflictError) as exc:
            await draft_engine.execute_pick(draft.id, OWNERS[0], league.pid("eu3"), now=NOW)
        assert exc.value.reason == "draft_not_in_progress"

    async def test_finished_draft_drops_its_locks(self, repo, locks, draft_engine):
        league = await build_league(repo, team_count=2, draft_rounds=1)
        draft = await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)
        assert game_key(league.game.id) not in locks._locks

        await draft_engine.execute_pick(draft.id, OWNERS[0], league.pid("eu1"), now=NOW)
        assert draft_key(draft.id) in locks._locks

        outcome = await draft_engine.execute_pick(draft.id, OWNERS[1], league.pid("eu2"), now=NOW)

        assert outcome.draft.status is DraftStatus.FINISHED
        assert draft_key(draft.id) not in locks._locks
        assert not locks.locked(draft_key(draft.id))

    async def test_player_cannot_be_drafted_twice(self, repo, draft_engine):
        league = await build_league(repo, team_count=2)
        draft = await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)
        await draft_engine.execute_pick(draft.id, OWNERS[0], league.pid("eu1"), now=NOW)

        with pytest.raises(ValidationError) as exc:
            await draft_engine.execute_pick(draft.id, OWNERS[1], league.pid("eu1"), now=NOW)
        assert exc.value.reason == "player_already_drafted"
        assert await league.roster(1) == set()

    async def test_player_rostered_outside_the_draft(self, repo, draft_engine):
        league = await build_league(repo, team_count=2)
        await league.give(1, "br1")
        draft = await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)

        with pytest.raises(ValidationError) as exc:
            await draft_engine.execute_pick(draft.id, OWNERS[0], league.pid("br1"), now=NOW)
        assert exc.value.reason == "player_already_rostered"

    async def test_player_from_another_season(self, repo, draft_engine):
        old = Player(nickname="old_eu", region=Region.EU, season=SEASON - 5, rank=0)
        league = await build_league(repo, team_count=2, extra_players=[old])
        draft = await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)

        with pytest.raises(ValidationError) as exc:
            await draft_engine.execute_pick(draft.id, OWNERS[0], league.pid("old_eu"), now=NOW)

        assert exc.value.reason == "player_wrong_season"
        assert exc.value.detail["player_season"] == SEASON - 5
        assert await league.roster(0) == set()
        assert "old_eu" not in [p.nickname for p in await draft_engine.available_players(draft.id)]

    async def test_quota_exceeded(self, repo, draft_engine):
        league = await build_league(repo, team_count=2, quotas={Region.EU: 1})
        await league.give(0, "eu5")
        draft = await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)

        with pytest.raises(ValidationError) as exc:
            await draft_engine.execute_pick(draft.id, OWNERS[0], league.pid("eu1"), now=NOW)

        assert exc.value.reason == "quota_exceeded"
        assert exc.value.detail["region"] == "EU"
        assert exc.value.detail["limit"] == 1
        assert await league.roster(0) == {"eu5"}

    async def test_non_participant_cannot_pick(self, repo, draft_engine):
        league = await build_league(repo)
        draft = await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)
        with pytest.raises(AuthorizationError):
            await draft_engine.execute_pick(draft.id, STRANGER, league.pid("eu1"), now=NOW)

    async def test_concurrent_picks_for_the_same_turn_allow_exactly_one(self, yielding_repo, locks):
        repo = yielding_repo
        draft_engine = DraftTurnEngine(repo, locks=locks)
        league = await build_league(repo, team_count=2)
        draft = await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)

        results = await asyncio.gather(
            draft_engine.execute_pick(draft.id, OWNERS[0], league.pid("eu1"), now=NOW),
            draft_engine.execute_pick(draft.id, OWNERS[0], league.pid("eu2"), now=NOW),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], ConflictError)
        assert errors[0].reason == "not_your_turn"
        assert len(await repo.picks_for_draft(draft.id)) == 1
        assert (await repo.get_draft(draft.id)).current_pick == 2

    async def test_failing_publisher_does_not_undo_pick(self, repo, locks):
        class BrokenPublisher:
            async def publish(self, event):
                raise RuntimeError("socket closed")

        league = await build_league(repo)
        engine = DraftTurnEngine(repo, locks=locks, publisher=BrokenPublisher())
        draft = await engine.start_draft(league.game.id, CREATOR, now=NOW)

        outcome = await engine.execute_pick(draft.id, OWNERS[0], league.pid("eu1"), now=NOW)

        assert outcome.pick.id is not None
        assert len(await repo.picks_for_draft(draft.id)) == 1


class TestTimeout:
    async def test_no_auto_pick_before_limit(self, repo, draft_engine):
        league = await build_league(repo)
        draft = await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)

        outcome = await draft_engine.handle_timeout(draft.id, now=NOW + timedelta(hours=11))

        assert not outcome.timed_out
        assert outcome.pick is None
        assert await repo.picks_for_draft(draft.id) == []

    async def test_auto_pick_takes_best_ranked_eligible_player(self, repo, draft_engine, publisher):
        league = await build_league(repo)
        later = NOW + timedelta(hours=13)

        draft = await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)
        outcome = await draft_engine.handle_timeout(draft.id, now=later)

        # locked_eu has the best rank but is locked.
        assert outcome.timed_out
        assert outcome.error is None
        assert outcome.pick.player_id == league.pid("eu1")
        assert outcome.pick.auto
        assert outcome.pick.team_id == league.teams[0].id
        assert [e.type for e in outcome.events] == [EventType.DRAFT_PICKED]
        assert (await repo.get_draft(draft.id)).turn_started_at == later

    async def test_auto_pick_respects_quota_and_season(self, repo, draft_engine):
        old = Player(nickname="veteran", region=Region.NAC, season=SEASON - 1, rank=-1)
        league = await build_league(repo, quotas={Region.EU: 1}, extra_players=[old])
        await league.give(0, "eu5")
        draft = await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)

        outcome = await draft_engine.handle_timeout(draft.id, now=NOW + timedelta(hours=13))

        assert outcome.pick.player_id == league.pid("nac1")

    async def test_one_auto_pick_per_call(self, repo, draft_engine):
        league = await build_league(repo)
        draft = await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)

        await draft_engine.handle_timeout(draft.id, now=NOW + timedelta(days=3))

        assert len(await repo.picks_for_draft(draft.id)) == 1
        # The next participant's clock starts at the auto-pick.
        second = await draft_engine.handle_timeout(draft.id, now=NOW + timedelta(days=3, hours=1))
        assert not second.timed_out

    async def test_no_eligible_player_is_reported_and_draft_stays_open(self, repo, draft_engine):
        league = await build_league(repo, quotas={Region.EU: 0}, players={"eu1": (Region.EU, 1, False)})
        draft = await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)

        outcome = await draft_engine.handle_timeout(draft.id, now=NOW + timedelta(hours=13))

        assert outcome.timed_out
        assert outcome.pick is None
        assert outcome.error.reason == "no_eligible_player"
        stored = await repo.get_draft(draft.id)
        assert stored.status is DraftStatus.IN_PROGRESS
        assert stored.current_pick == 1

    async def test_game_override_of_time_limit(self, repo, draft_engine):
        league = await build_league(repo, pick_time_limit_seconds=60)
        draft = await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)

        outcome = await draft_engine.handle_timeout(draft.id, now=NOW + timedelta(minutes=2))

        assert outcome.timed_out
        assert await draft_engine.turn_deadline(await repo.get_draft(draft.id)) == NOW + timedelta(minutes=3)


class TestPauseResumeFinish:
    async def test_pause_freezes_the_clock(self, repo, draft_engine, publisher):
        league = await build_league(repo)
        draft = await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)

        await draft_engine.pause(draft.id, CREATOR, now=NOW + timedelta(hours=10))
        paused = await draft_engine.handle_timeout(draft.id, now=NOW + timedelta(hours=20))
        assert not paused.timed_out

        resumed = await draft_engine.resume(draft.id, CREATOR, now=NOW + timedelta(hours=30))
        # 10h had elapsed before the pause; the 20h pause does not count.
        assert resumed.turn_started_at == NOW + timedelta(hours=20)
        assert resumed.paused_at is None

        assert not (await draft_engine.handle_timeout(draft.id, now=NOW + timedelta(hours=31))).timed_out
        assert (await draft_engine.handle_timeout(draft.id, now=NOW + timedelta(hours=33))).timed_out
        assert EventType.DRAFT_PAUSED in publisher.types()
        assert EventType.DRAFT_RESUMED in publisher.types()

    async def test_no_picks_while_paused(self, repo, draft_engine):
        league = await build_league(repo)
        draft = await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)
        await draft_engine.pause(draft.id, CREATOR, now=NOW)

        with pytest.raises(ConflictError) as exc:
            await draft_engine.execute_pick(draft.id, OWNERS[0], league.pid("eu1"), now=NOW)
        assert exc.value.reason == "draft_not_in_progress"

    async def test_pause_and_resume_state_checks(self, repo, draft_engine):
        league = await build_league(repo)
        draft = await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)

        with pytest.raises(AuthorizationError):
            await draft_engine.pause(draft.id, OWNERS[0], now=NOW)
        with pytest.raises(ConflictError) as exc:
            await draft_engine.resume(draft.id, CREATOR, now=NOW)
        assert exc.value.reason == "draft_not_paused"

        await draft_engine.pause(draft.id, CREATOR, now=NOW)
        with pytest.raises(ConflictError) as exc:
            await draft_engine.pause(draft.id, CREATOR, now=NOW)
        assert exc.value.reason == "draft_not_in_progress"

    async def test_finish_requires_force_while_picks_remain(self, repo, draft_engine):
        league = await build_league(repo)
        draft = await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)

        with pytest.raises(ConflictError) as exc:
            await draft_engine.finish(draft.id, CREATOR, now=NOW)
        assert exc.value.reason == "draft_incomplete"
        assert exc.value.detail["remaining_picks"] == draft.total_picks

        finished = await draft_engine.finish(draft.id, CREATOR, force=True, now=NOW)
        assert finished.status is DraftStatus.FINISHED
        assert DraftTurnEngine.is_complete(finished)

        with pytest.raises(ConflictError) as exc:
            await draft_engine.finish(draft.id, CREATOR, force=True, now=NOW)
        assert exc.value.reason == "draft_already_finished"


class TestQueries:
    async def test_available_players(self, repo, draft_engine):
        old = Player(nickname="veteran", region=Region.NAC, season=SEASON - 1, rank=1)
        league = await build_league(repo, team_count=2, extra_players=[old])
        await league.give(1, "br1")
        draft = await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)
        await draft_engine.execute_pick(draft.id, OWNERS[0], league.pid("eu1"), now=NOW)

        names = [p.nickname for p in await draft_engine.available_players(draft.id)]
        assert names == ["eu2", "eu3", "eu4", "nac1", "nac2", "nac3", "eu5", "asia1"]

        # eu1 + eu2 fill team 1's EU quota of 2.
        await league.give(0, "eu2")
        for_team = [p.nickname for p in await draft_engine.available_players(draft.id, team_id=league.teams[0].id)]
        assert "eu3" not in for_team
        assert "nac1" in for_team

    async def test_available_players_filtered_by_region(self, repo, draft_engine):
        league = await build_league(repo, team_count=2)
        draft = await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)
        await draft_engine.execute_pick(draft.id, OWNERS[0], league.pid("nac2"), now=NOW)

        nac = await draft_engine.available_players(draft.id, region=Region.NAC)
        assert [p.nickname for p in nac] == ["nac1", "nac3"]

        for_team = await draft_engine.available_players(draft.id, team_id=league.teams[1].id, region=Region.BR)
        assert [p.nickname for p in for_team] == ["br1"]

    async def test_available_players_for_unknown_team(self, repo, draft_engine):
        league = await build_league(repo)
        draft = await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)
        with pytest.raises(ValidationError):
            await draft_engine.available_players(draft.id, team_id=999)

    async def test_draft_for_game(self, repo, draft_engine):
        league = await build_league(repo)
        assert await draft_engine.get_draft_for_game(league.game.id) is None
        draft = await draft_engine.start_draft(league.game.id, CREATOR, now=NOW)
        assert (await draft_engine.get_draft_for_game(league.game.id)).id == draft.id
