"""
Route decorators for authentication.

- `token_required`: request must carry a valid `Authorization: Bearer <token>`.
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import Callable, TypeVar

from flask import g, request

from errors import InvalidToken, Unauthenticated

from .config import auth_settings
from .tokens import verify_token

F = TypeVar("F", bound=Callable[..., object])

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def bearer_token(header: str | None) -> str:
    """
    Extract the token from an `Authorization` header value.

    Raises `Unauthenticated` when the header is absent and `InvalidToken`
    when it is present but not `Bearer <token>`.
    """

    if not header:
        raise Unauthenticated()
    if not header.startswith(BEARER_PREFIX):
        raise InvalidToken()
    token = header[len(BEARER_PREFIX):].strip()
    if not token or " " in token:
        raise InvalidToken()
    return token


def token_required(fn: F) -> F:
    """Verify the bearer token and expose its email as `g.email`."""

    @wraps(fn)
    def wrapper(*args, **kwargs):  # type: ignore[no-untyped-def]
        try:
            token = bearer_token(request.headers.get("Authorization"))
            g.email = verify_token(token, auth_settings().jwt_secret)
        except (Unauthenticated, InvalidToken) as exc:
            logger.info("Rejected %s %s: %s", request.method, request.path, exc.__class__.__name__)
            raise
        return fn(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def current_email() -> str:
    """Email attached by `token_required` for the current request."""

    return g.email
