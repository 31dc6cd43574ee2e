"""Access token helpers shared by the party gateway and its tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt

from app.config import get_settings

settings = get_settings()


class TokenValidationError(Exception):
    """Raised when an access token is malformed, forged or expired."""


def create_access_token(data: Dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """Create a signed JWT access token with an expiration time."""

    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta if expires_delta is not None else timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode and validate a JWT access token."""

    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError as exc:
        raise TokenValidationError("Token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise TokenValidationError("Could not validate credentials") from exc


def user_id_from_token(token: str) -> int:
    """Return the numeric user id carried by ``token``.

    Tokens minted by this service put the id in ``sub``; the legacy auth
    service used an ``id`` claim, which is still accepted.
    """

    payload = decode_access_token(token)
    subject = payload.get("sub", payload.get("id"))
    try:
        return int(subject)
    except (TypeError, ValueError) as exc:
        raise TokenValidationError("Token does not identify a user") from exc
