from __future__ import annotations

from datetime import datetime, timezone

from jose import jwt, JWTError


def _claims(token: str) -> dict | None:
    try:
        return jwt.get_unverified_claims(token)
    except JWTError:
        return None


def token_subject(token: str) -> str | None:
    """Return the ``sub`` claim of a JWT without verifying its signature."""
    claims = _claims(token)
    if not claims or claims.get("sub") is None:
        return None
    return str(claims["sub"])


def is_token_expired(token: str, leeway_seconds: int = 0) -> bool:
    # Opaque tokens are left for the backend to judge.
    claims = _claims(token)
    if not claims:
        return False

    exp = claims.get("exp")
    if exp is None:
        return False

    now = int(datetime.now(timezone.utc).timestamp())
    return int(exp) + leeway_seconds <= now
