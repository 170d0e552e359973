from __future__ import annotations

import uuid

from fastapi import Header, HTTPException, status


async def get_acting_user_id(x_user_id: str | None = Header(default=None)) -> uuid.UUID:
    """
    Identify the acting user from the X-User-Id header.

    Identity is asserted upstream (gateway / session layer); this service only needs
    to know who is acting so it can check ownership and turn order.
    """
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header")
    try:
        return uuid.UUID(x_user_id.strip())
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid X-User-Id header") from e
