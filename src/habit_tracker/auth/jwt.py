"""
Access and refresh tokens.

Access tokens authorise API calls for ``jwt_access_token_expire_minutes``.
Refresh tokens live for ``jwt_refresh_token_expire_days`` and carry the id of
their session row as ``jti``: revoking the session from the admin panel makes
the token unusable even before it expires.

HS* algorithms sign with ``jwt_secret``; RS* algorithms read PEM files from
``jwt_private_key_path`` / ``jwt_public_key_path``.
"""

from __future__ import annotations

from datetime import timedelta
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, NamedTuple

import jwt

from habit_tracker.config import get_settings
from habit_tracker.time_utils import utcnow


class TokenType(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class SigningKeys(NamedTuple):
    sign: str
    verify: str


@lru_cache
def signing_keys() -> SigningKeys:
    settings = get_settings()
    if settings.jwt_algorithm.startswith("HS"):
        return SigningKeys(settings.jwt_secret, settings.jwt_secret)
    return SigningKeys(
        Path(settings.jwt_private_key_path).read_text(),
        Path(settings.jwt_public_key_path).read_text(),
    )


def reset_keys() -> None:
    """Forget loaded keys, e.g. after settings change in tests."""
    signing_keys.cache_clear()


def _issue(user_id: str, token_type: TokenType, ttl: timedelta, **claims: Any) -> str:
    settings = get_settings()
    now = utcnow()
    payload = {
        "sub": user_id,
        "type": token_type.value,
        "iss": settings.jwt_issuer,
        "iat": now,
        "exp": now + ttl,
        **claims,
    }
    return jwt.encode(payload, signing_keys().sign, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: str) -> str:
    minutes = get_settings().jwt_access_token_expire_minutes
    return _issue(user_id, TokenType.ACCESS, timedelta(minutes=minutes))


def create_refresh_token(user_id: str, *, token_id: str) -> str:
    """Refresh token for the session row ``token_id``."""
    days = get_settings().jwt_refresh_token_expire_days
    return _issue(user_id, TokenType.REFRESH, timedelta(days=days), jti=token_id)


def verify_token(token: str, expected_type: str = TokenType.ACCESS.value) -> dict[str, Any]:
    """
    Decode a token and check its issuer, expiry and type.

    Raises:
        jwt.InvalidTokenError: On any failure; expiry reads "Token has expired".
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            signing_keys().verify,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"require": ["sub", "exp", "type"]},
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if payload["type"] != expected_type:
        msg = f"Expected token type '{expected_type}', got '{payload['type']}'"
        raise jwt.InvalidTokenError(msg)
    return payload
