from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from pronos.config import settings
from pronos.repositories.sql import SqlLeagueRepository


_ASYNC_DRIVERS = {
    "postgres://": "postgresql+asyncpg://",
    "postgresql://": "postgresql+asyncpg://",
}
_SSL_MODES = {"disable", "allow", "prefer", "require", "verify-ca", "verify-full"}


def async_database_url(url: str) -> str:
    """Point a plain Postgres URL at asyncpg and move `sslmode` into asyncpg's `ssl` option."""
    url = (url or "").strip()
    if not url:
        return url
    for prefix, replacement in _ASYNC_DRIVERS.items():
        if url.startswith(prefix):
            url = replacement + url[len(prefix) :]
            break

    parts = urlsplit(url)
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    if "sslmode" not in query:
        return url
    mode = query.pop("sslmode").lower()
    if mode in _SSL_MODES:
        query.setdefault("ssl", mode)
    return urlunsplit(parts._replace(query=urlencode(query, doseq=True)))


def create_engine(url: str | None = None) -> AsyncEngine:
    return create_async_engine(
        async_database_url(url or settings.database_url),
        pool_pre_ping=True,
    )


engine = create_engine()
SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_repository() -> AsyncGenerator[SqlLeagueRepository, None]:
    async with SessionLocal() as session:
        yield SqlLeagueRepository(session)


@asynccontextmanager
async def repository_scope() -> AsyncIterator[SqlLeagueRepository]:
    """One session per unit of work, for code running outside a request (scheduler, seed CLI)."""
    async with SessionLocal() as session:
        yield SqlLeagueRepository(session)
