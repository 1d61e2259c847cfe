"""FastAPI dependency-injection callables for identifying the caller.

Each callable is designed to be used with ``Depends()`` in route signatures.
They read the ``X-User-Token`` header and validate its format; whether the
token belongs to the organizer is decided against the game itself.
"""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from app.auth.user_token import validate_user_token

logger = logging.getLogger("headcount.auth.dependencies")


async def get_optional_user_token(
    x_user_token: str | None = Header(None),
) -> Optional[str]:
    """Return the caller's token, or None when the header is absent.

    Raises:
        HTTPException 401: Header present but not a valid token.
    """
    if x_user_token is None:
        return None

    if not validate_user_token(x_user_token):
        logger.warning("Malformed X-User-Token presented")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user token format",
        )
    return x_user_token


async def get_current_user_token(
    token: Optional[str] = Depends(get_optional_user_token),
) -> str:
    """Require an ``X-User-Token`` header.

    Raises:
        HTTPException 401: Header missing or token format invalid.
    """
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Token header",
        )
    return token
