"""Signed identity tokens (HS256 JWT)."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt

from errors import InvalidToken

ALGORITHM = "HS256"
TOKEN_TTL = timedelta(hours=1)


def issue_token(email: str, secret: str, ttl: timedelta = TOKEN_TTL,
                issued_at: datetime | None = None) -> str:
    """Encode a token for `email` that expires `ttl` after `issued_at`."""
    issued_at = issued_at or datetime.now(timezone.utc)
    claims = {
        "email": email,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + ttl).timestamp()),
    }
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


def verify_token(token: str, secret: str) -> str:
    """Return the email of a valid token, else raise `InvalidToken`.

    Signature, expiry and payload failures are not distinguished.
    """
    try:
        claims = jwt.decode(token, secret, algorithms=[ALGORITHM],
                            options={"require": ["email", "exp"]})
    except jwt.PyJWTError as exc:
        raise InvalidToken() from exc

    email = claims.get("email")
    if not isinstance(email, str) or not email:
        raise InvalidToken()
    return email
