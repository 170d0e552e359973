from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime

from pronos.config import settings
from pronos.entities import DraftStatus
from pronos.repositories.base import LeagueRepository
from pronos.services.draft_engine import DraftTurnEngine, TimeoutOutcome
from pronos.services.errors import LeagueError
from pronos.services.events import EventPublisher
from pronos.services.locks import LockRegistry

logger = logging.getLogger("pronos.auto_pick")

RepositoryScope = Callable[[], AbstractAsyncContextManager[LeagueRepository]]


class AutoPickScheduler:
    """
    Background loop that expires overdue turns.

    Every tick opens a fresh repository scope, walks the running drafts and calls
    `handle_timeout` on each. A failing draft never stops the others, and a failing
    tick never stops the loop.
    """

    def __init__(
        self,
        repository_scope: RepositoryScope,
        *,
        interval_seconds: float | None = None,
        publisher: EventPublisher | None = None,
        locks: LockRegistry | None = None,
    ) -> None:
        self.repository_scope = repository_scope
        self.interval_seconds = interval_seconds or settings.auto_pick_interval_seconds
        self.publisher = publisher
        self.locks = locks
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self, now: datetime | None = None) -> list[TimeoutOutcome]:
        outcomes: list[TimeoutOutcome] = []
        async with self.repository_scope() as repo:
            engine = DraftTurnEngine(repo, publisher=self.publisher, locks=self.locks)
            for draft in await repo.drafts_with_status(DraftStatus.IN_PROGRESS):
                try:
                    outcome = await engine.handle_timeout(draft.id, now=now)
                except LeagueError as e:
                    # Typically a lock timeout because a manual pick is in flight.
                    logger.warning("auto-pick skipped draft_id=%s reason=%s", draft.id, e.reason)
                    continue
                if outcome.timed_out:
                    outcomes.append(outcome)
        return outcomes

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="pronos-auto-pick")
        logger.info("auto-pick scheduler started interval=%.1fs", self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("auto-pick scheduler stopped")

    async def _run(self) -> None:
        while True:
            try:
                outcomes = await self.tick()
                for outcome in outcomes:
                    if outcome.error is not None:
                        logger.warning(
                            "draft needs attention draft_id=%s reason=%s", outcome.draft_id, outcome.error.reason
                        )
            except Exception:
                logger.exception("auto-pick tick failed")
            await asyncio.sleep(self.interval_seconds)
