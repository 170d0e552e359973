from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from pronos.services.errors import LeagueError


class ErrorOut(BaseModel):
    reason: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)
    retryable: bool = False

    @classmethod
    def from_error(cls, exc: LeagueError) -> ErrorOut:
        return cls(reason=exc.reason, message=exc.message, detail=exc.detail, retryable=exc.retryable)
