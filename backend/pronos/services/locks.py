from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Hashable, Iterable
from contextlib import asynccontextmanager

from pronos.config import settings
from pronos.services.errors import ConflictError

logger = logging.getLogger("pronos.locks")

# Lock keys are (kind, id) tuples. Kinds sort in this order, which is the order
# every multi-lock operation acquires them in: game, draft, trade, then teams.
_KIND_ORDER = {"game": 0, "draft": 1, "trade": 2, "team": 3}


def game_key(game_id: int) -> tuple[str, int]:
    return ("game", game_id)


def draft_key(draft_id: int) -> tuple[str, int]:
    return ("draft", draft_id)


def trade_key(trade_id: int) -> tuple[str, int]:
    return ("trade", trade_id)


def team_key(team_id: int) -> tuple[str, int]:
    return ("team", team_id)


def _sort_key(key: tuple[str, Hashable]) -> tuple[int, str]:
    kind, ref = key
    # Ids are compared numerically when they are ints so team 10 sorts after team 9.
    return (_KIND_ORDER.get(kind, len(_KIND_ORDER)), f"{ref:020d}" if isinstance(ref, int) else str(ref))


class LockRegistry:
    """
    Process-wide registry of asyncio locks for drafts, trades and teams.

    `hold()` takes any number of keys, acquires them in one fixed total order and
    gives up with a retryable ConflictError if they are not all acquired in time.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._locks: dict[tuple[str, Hashable], asyncio.Lock] = {}
        self._timeout = timeout

    @property
    def timeout(self) -> float:
        return self._timeout if self._timeout is not None else settings.lock_timeout_seconds

    def _lock_for(self, key: tuple[str, Hashable]) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def locked(self, key: tuple[str, Hashable]) -> bool:
        lock = self._locks.get(key)
        return bool(lock and lock.locked())

    @asynccontextmanager
    async def hold(self, *keys: tuple[str, Hashable], timeout: float | None = None) -> AsyncIterator[None]:
        ordered = sorted(set(keys), key=_sort_key)
        wait = self.timeout if timeout is None else timeout
        acquired: list[asyncio.Lock] = []
        try:
            for key in ordered:
                lock = self._lock_for(key)
                try:
                    await asyncio.wait_for(lock.acquire(), timeout=wait)
                except TimeoutError:
                    logger.warning("lock timeout key=%s waited=%.2fs", key, wait)
                    raise ConflictError(
                        "lock_timeout",
                        "Resource is busy, retry the request",
                        resource=f"{key[0]}:{key[1]}",
                    ) from None
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    def forget(self, keys: Iterable[tuple[str, Hashable]]) -> None:
        """Drop idle locks for resources that no longer need them (e.g. finished drafts)."""
        for key in keys:
            lock = self._locks.get(key)
            if lock is not None and not lock.locked():
                del self._locks[key]


lock_registry = LockRegistry()
