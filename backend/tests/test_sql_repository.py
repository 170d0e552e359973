"""
The same draft and trade flows as the engine tests, run against the SQLAlchemy
repository on in-memory SQLite.
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from conftest import CREATOR, NOW, OWNERS, build_league
from pronos.entities import DraftStatus, Game, TradeStatus
from pronos.models import Base
from pronos.repositories.sql import SqlLeagueRepository
from pronos.services.draft_engine import DraftTurnEngine
from pronos.services.errors import NotFoundError, ValidationError
from pronos.services.events import CollectingPublisher
from pronos.services.trade_engine import TradeTransactionEngine


@pytest.fixture
async def sessionmaker():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def sql_repo(sessionmaker):
    async with sessionmaker() as session:
        yield SqlLeagueRepository(session)


async def test_rollback_discards_writes(sql_repo):
    with pytest.raises(RuntimeError):
        async with sql_repo.transaction():
            game = await sql_repo.add_game(Game(name="doomed", creator_id=CREATOR, season=2026))
            assert game.id is not None
            raise RuntimeError("abort")

    with pytest.raises(NotFoundError):
        await sql_repo.get_game(game.id)


async def test_committed_rows_are_visible_to_a_new_session(sessionmaker, sql_repo):
    league = await build_league(sql_repo, team_count=2)

    async with sessionmaker() as session:
        other = SqlLeagueRepository(session)
        teams = await other.teams_for_game(league.game.id)
        assert [t.id for t in teams] == [t.id for t in league.teams]
        assert teams[0].joined_at.tzinfo is not None
        assert {q.region.value: q.max_players for q in await other.quotas_for_game(league.game.id)} == {
            "EU": 2,
            "NAC": 2,
        }


async def test_full_draft(sql_repo, locks):
    league = await build_league(sql_repo, team_count=2, draft_rounds=2)
    publisher = CollectingPublisher()
    engine = DraftTurnEngine(sql_repo, locks=locks, publisher=publisher, pick_time_limit_seconds=60)
    draft = await engine.start_draft(league.game.id, CREATOR, now=NOW)

    # Snake order for two teams: 1, 2, 2, 1.
    plan = [(0, "eu1"), (1, "eu2"), (1, "nac1"), (0, "nac2")]
    for i, (team, nickname) in enumerate(plan):
        await engine.execute_pick(draft.id, OWNERS[team], league.pid(nickname), now=NOW + timedelta(seconds=i))

    draft = await engine.get_draft(draft.id)
    assert draft.status is DraftStatus.FINISHED
    picks = await engine.list_picks(draft.id)
    assert [(p.pick_number, p.round, p.team_id) for p in picks] == [
        (1, 1, league.teams[0].id),
        (2, 1, league.teams[1].id),
        (3, 2, league.teams[1].id),
        (4, 2, league.teams[0].id),
    ]
    assert await league.roster(0) == {"eu1", "nac2"}
    assert await league.roster(1) == {"eu2", "nac1"}
    assert publisher.types()[-1] == "DRAFT_FINISHED"


async def test_timeout_auto_pick(sql_repo, locks):
    league = await build_league(sql_repo, team_count=2, draft_rounds=1)
    engine = DraftTurnEngine(sql_repo, locks=locks, pick_time_limit_seconds=60)
    draft = await engine.start_draft(league.game.id, CREATOR, now=NOW)

    outcome = await engine.handle_timeout(draft.id, now=NOW + timedelta(minutes=5))

    assert outcome.timed_out
    assert outcome.pick.auto
    assert outcome.pick.player_id == league.pid("eu1")


async def test_trade_accept(sql_repo, locks):
    league = await build_league(sql_repo, team_count=2)
    await league.give(0, "eu1", "eu2", "nac1")
    await league.give(1, "nac2", "eu3")
    engine = TradeTransactionEngine(sql_repo, locks=locks)

    trade = (
        await engine.propose(
            league.teams[0].id, league.teams[1].id, league.pids("eu1"), league.pids("nac2"), OWNERS[0], now=NOW
        )
    ).trade
    stored = await sql_repo.get_trade(trade.id)
    assert stored.offered_player_ids == league.pids("eu1")
    assert stored.requested_player_ids == league.pids("nac2")

    outcome = await engine.accept(trade.id, OWNERS[1], now=NOW)

    assert outcome.trade.status is TradeStatus.ACCEPTED
    assert await league.roster(0) == {"eu2", "nac1", "nac2"}
    assert await league.roster(1) == {"eu1", "eu3"}
    assert (await sql_repo.get_team(league.teams[1].id)).completed_trades == 1
    assert [t.id for t in await sql_repo.trades_for_game(league.game.id, TradeStatus.ACCEPTED)] == [trade.id]


async def test_quota_breaking_trade_stays_pending(sql_repo, locks):
    league = await build_league(sql_repo, team_count=2)
    await league.give(0, "eu1", "eu2", "nac1")
    await league.give(1, "nac2", "eu3")
    engine = TradeTransactionEngine(sql_repo, locks=locks)
    trade = (
        await engine.propose(
            league.teams[0].id, league.teams[1].id, league.pids("eu1", "eu2"), league.pids("nac2"), OWNERS[0]
        )
    ).trade

    with pytest.raises(ValidationError):
        await engine.accept(trade.id, OWNERS[1], now=NOW)

    assert (await sql_repo.get_trade(trade.id)).status is TradeStatus.PENDING
    assert await league.roster(1) == {"nac2", "eu3"}
