"""Utilities for issuing and validating operator JWTs for the admin routes."""

from __future__ import annotations

import time
from typing import Any

import jwt

from ..config import get_settings

ADMIN_SCOPE = "guard:admin"


def issue_admin_token(*, subject: str, scopes: list[str] | None = None, ttl_seconds: int = 900) -> str:
    """Create a signed JWT for an operator.

    Parameters
    ----------
    subject:
        Operator identifier embedded in the `sub` claim.
    scopes:
        Scope list; defaults to the block-management scope.
    ttl_seconds:
        Lifetime of the token.
    """

    settings = get_settings()
    now = int(time.time())
    payload: dict[str, Any] = {
        "iss": settings.jwt_issuer,
        "sub": subject,
        "scopes": scopes if scopes is not None else [ADMIN_SCOPE],
        "iat": now,
        "exp": now + ttl_seconds,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and verify a JWT returning its payload.

    Raises
    ------
    jwt.PyJWTError
        Propagated when the token is invalid, expired, or signed by another issuer.
    """

    settings = get_settings()
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=["HS256"],
        issuer=settings.jwt_issuer,
    )
