from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pronos.config import settings
from pronos.routers.drafts import router as drafts_router
from pronos.routers.health import router as health_router
from pronos.routers.trades import router as trades_router
from pronos.schemas.event import ErrorOut
from pronos.services.errors import AuthorizationError, ConflictError, LeagueError, NotFoundError, ValidationError

logger = logging.getLogger("pronos.api")

_ERROR_STATUS: dict[type[LeagueError], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ConflictError: status.HTTP_409_CONFLICT,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    AuthorizationError: status.HTTP_403_FORBIDDEN,
}


def _status_for(exc: LeagueError) -> int:
    for cls in type(exc).__mro__:
        if cls in _ERROR_STATUS:
            return _ERROR_STATUS[cls]
    return status.HTTP_400_BAD_REQUEST


async def league_error_handler(request: Request, exc: LeagueError) -> JSONResponse:
    code = _status_for(exc)
    logger.info("request rejected path=%s status=%s reason=%s", request.url.path, code, exc.reason)
    return JSONResponse(status_code=code, content=jsonable_encoder(ErrorOut.from_error(exc)))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    scheduler = None
    if settings.auto_pick_enabled:
        from pronos.database import repository_scope
        from pronos.services.auto_pick import AutoPickScheduler

        scheduler = AutoPickScheduler(repository_scope)
        scheduler.start()
    try:
        yield
    finally:
        if scheduler is not None:
            await scheduler.stop()


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    app = FastAPI(title="Pronos Roster API", lifespan=lifespan)

    allow_origins = [o.strip() for o in settings.cors_allow_origins.split(",") if o.strip()]
    # In local dev the frontend may run on any localhost port.
    app_env = settings.app_env.lower()
    allow_origin_regex = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$" if app_env == "dev" else None
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_origin_regex=allow_origin_regex,
        # The acting user travels in a header, not a cookie.
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(LeagueError, league_error_handler)

    app.include_router(health_router, prefix=settings.api_prefix)
    app.include_router(drafts_router, prefix=settings.api_prefix)
    app.include_router(trades_router, prefix=settings.api_prefix)
    return app


app = create_app()
