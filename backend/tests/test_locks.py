from __future__ import annotations

import asyncio

import pytest

from pronos.services.errors import ConflictError
from pronos.services.locks import LockRegistry, _sort_key, draft_key, game_key, team_key, trade_key


def test_keys_sort_by_kind_then_numeric_id():
    keys = [team_key(10), team_key(9), trade_key(3), draft_key(2), game_key(7)]
    assert sorted(keys, key=_sort_key) == [game_key(7), draft_key(2), trade_key(3), team_key(9), team_key(10)]


async def test_hold_releases_after_block():
    locks = LockRegistry(timeout=0.5)
    async with locks.hold(team_key(1), team_key(2)):
        assert locks.locked(team_key(1))
        assert locks.locked(team_key(2))
    assert not locks.locked(team_key(1))
    assert not locks.locked(team_key(2))


async def test_hold_releases_when_body_raises():
    locks = LockRegistry(timeout=0.5)
    with pytest.raises(RuntimeError):
        async with locks.hold(draft_key(1)):
            raise RuntimeError("boom")
    assert not locks.locked(draft_key(1))


async def test_timeout_is_a_retryable_conflict():
    locks = LockRegistry(timeout=0.05)

    async with locks.hold(team_key(1)):
        with pytest.raises(ConflictError) as exc:
            async with locks.hold(team_key(1), trade_key(4)):
                pass

    assert exc.value.reason == "lock_timeout"
    assert exc.value.retryable
    assert exc.value.detail == {"resource": "team:1"}
    # The lock acquired before the timeout was given back.
    assert not locks.locked(trade_key(4))


async def test_opposite_key_orders_do_not_deadlock():
    locks = LockRegistry(timeout=1.0)
    seen = []

    async def worker(name, *keys):
        async with locks.hold(*keys):
            seen.append(name)
            await asyncio.sleep(0.01)

    await asyncio.gather(
        worker("a", team_key(1), team_key(2)),
        worker("b", team_key(2), team_key(1)),
        worker("c", trade_key(5), team_key(2)),
    )

    assert sorted(seen) == ["a", "b", "c"]


async def test_duplicate_keys_are_held_once():
    locks = LockRegistry(timeout=0.1)
    async with locks.hold(team_key(3), team_key(3)):
        assert locks.locked(team_key(3))


def test_forget_drops_only_idle_locks():
    locks = LockRegistry()
    locks._lock_for(draft_key(1))
    locks.forget([draft_key(1), draft_key(2)])
    assert draft_key(1) not in locks._locks
