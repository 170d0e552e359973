from __future__ import annotations

from typing import Any


class LeagueError(Exception):
    """
    Base error for draft and trade operations.

    `reason` is a stable machine-readable code (e.g. "not_your_turn"); `detail`
    carries whatever is needed to reconstruct the violated rule.
    """

    retryable: bool = False

    def __init__(self, reason: str, message: str | None = None, **detail: Any) -> None:
        self.reason = reason
        self.message = message or reason.replace("_", " ")
        self.detail = detail
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"reason": self.reason, "message": self.message, "detail": self.detail}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(reason={self.reason!r}, detail={self.detail!r})"


class ValidationError(LeagueError):
    """The request breaks a roster or trade rule (quota, locked player, side size...)."""


class ConflictError(LeagueError):
    """The request does not match the current state; safe to retry after re-reading it."""

    retryable = True


class NotFoundError(LeagueError):
    def __init__(self, kind: str, ref: Any) -> None:
        super().__init__(f"{kind}_not_found", f"{kind.capitalize()} not found", **{f"{kind}_id": ref})


class AuthorizationError(LeagueError):
    """The acting user is not the party allowed to perform the operation."""
