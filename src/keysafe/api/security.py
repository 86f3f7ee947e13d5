# API Security - Session token for the local vault API
#
# The vault API only listens on localhost, but any local process can reach
# it there. Every /api/vault request must therefore carry the token printed
# at startup (or supplied by the launcher through KEYSAFE_API_TOKEN) in the
# X-Session-Token header.

import logging
import secrets
from typing import Optional

from fastapi import Header, HTTPException, status

logger = logging.getLogger(__name__)

# token_urlsafe(32) yields 43 characters; supplied tokens must be comparable
MIN_TOKEN_LENGTH = 32

_SESSION_TOKEN: Optional[str] = None


def initialize_session_token(token: Optional[str] = None) -> str:
    """
    Set the token that unlocks the vault API for this process.

    Args:
        token: Token chosen by the launcher. A random 256-bit token is
               generated when omitted.

    Raises:
        ValueError: Supplied token is shorter than MIN_TOKEN_LENGTH.
    """
    global _SESSION_TOKEN
    if token is None:
        token = secrets.token_urlsafe(32)
    elif len(token) < MIN_TOKEN_LENGTH:
        raise ValueError(
            f"API token must be at least {MIN_TOKEN_LENGTH} characters"
        )
    else:
        logger.info("Using API token supplied by the launcher")
    _SESSION_TOKEN = token
    return _SESSION_TOKEN


def clear_session_token() -> None:
    """Forget the token; every vault request answers 503 until a new one is set."""
    global _SESSION_TOKEN
    _SESSION_TOKEN = None


async def verify_session_token(
    x_session_token: Optional[str] = Header(None, alias="X-Session-Token"),
) -> str:
    """
    Dependency guarding every vault route.

    Raises:
        HTTPException: 503 before a token exists, 401 if missing or wrong
    """
    if _SESSION_TOKEN is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Vault API is not ready: no session token issued"
        )

    if not x_session_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Session-Token header"
        )

    if not secrets.compare_digest(x_session_token, _SESSION_TOKEN):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session token"
        )

    return x_session_token
