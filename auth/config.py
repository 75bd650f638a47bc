"""
Authentication configuration.

All secrets are sourced from environment variables (the entry points load a
local `.env` file into the environment first). This module validates presence of required
settings and exposes a single `init_auth(app)` entrypoint.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from flask import Flask, current_app

from errors import ConfigurationError

GITHUB_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"
GITHUB_EMAILS_URL = "https://api.github.com/user/emails"

DEFAULT_TOKEN_TTL_SECONDS = 3600
DEFAULT_CONNECT_TIMEOUT = 5.0
DEFAULT_READ_TIMEOUT = 10.0


@dataclass(frozen=True)
class AuthSettings:
    """Configuration needed for GitHub sign-in and token signing."""

    client_id: str
    client_secret: str = field(repr=False)
    redirect_uri: str
    jwt_secret: str = field(repr=False)
    allowed_domain: str
    frontend_url: str
    scopes: tuple[str, ...] = ("user:email",)
    authorize_url: str = GITHUB_AUTHORIZE_URL
    token_url: str = GITHUB_TOKEN_URL
    emails_url: str = GITHUB_EMAILS_URL
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    read_timeout: float = DEFAULT_READ_TIMEOUT
    token_ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS

    @property
    def scope(self) -> str:
        return " ".join(self.scopes)

    @property
    def http_timeout(self) -> tuple[float, float]:
        """`(connect, read)` timeout for every call to the provider."""
        return self.connect_timeout, self.read_timeout


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


def _positive_number(name: str, raw: str, cast):
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


def load_auth_settings() -> AuthSettings:
    """
    Load auth settings from environment variables.

    Required:
      - GITHUB_CLIENT_ID
      - GITHUB_CLIENT_SECRET
      - GITHUB_REDIRECT_URI
      - JWT_SECRET
      - ALLOWED_DOMAIN
      - FRONTEND_URL

    Optional:
      - GITHUB_SCOPES (default: 'user:email')
      - GITHUB_AUTHORIZE_URL, GITHUB_TOKEN_URL, GITHUB_EMAILS_URL
      - OAUTH_CONNECT_TIMEOUT (seconds, default: 5)
      - OAUTH_READ_TIMEOUT (seconds, default: 10)
      - TOKEN_TTL_SECONDS (default: 3600)
    """

    required = {
        name: _env(name)
        for name in (
            "GITHUB_CLIENT_ID",
            "GITHUB_CLIENT_SECRET",
            "GITHUB_REDIRECT_URI",
            "JWT_SECRET",
            "ALLOWED_DOMAIN",
            "FRONTEND_URL",
        )
    }
    missing = [k for k, v in required.items() if not v]
    if missing:
        raise ConfigurationError(
            "Missing required auth environment variables: "
            + ", ".join(missing)
            + ". Set them in the environment or a .env file before starting the gateway."
        )

    allowed_domain = required["ALLOWED_DOMAIN"].lower().lstrip("@")
    if not allowed_domain or "@" in allowed_domain:
        raise ConfigurationError(f"ALLOWED_DOMAIN is not a domain: {required['ALLOWED_DOMAIN']!r}")

    scopes = tuple(s for s in _env("GITHUB_SCOPES", "user:email").split() if s)

    return AuthSettings(
        client_id=required["GITHUB_CLIENT_ID"],
        client_secret=required["GITHUB_CLIENT_SECRET"],
        redirect_uri=required["GITHUB_REDIRECT_URI"],
        jwt_secret=required["JWT_SECRET"],
        allowed_domain=allowed_domain,
        frontend_url=required["FRONTEND_URL"].rstrip("/"),
        scopes=scopes or ("user:email",),
        authorize_url=_env("GITHUB_AUTHORIZE_URL", GITHUB_AUTHORIZE_URL),
        token_url=_env("GITHUB_TOKEN_URL", GITHUB_TOKEN_URL),
        emails_url=_env("GITHUB_EMAILS_URL", GITHUB_EMAILS_URL),
        connect_timeout=_positive_number("OAUTH_CONNECT_TIMEOUT", _env("OAUTH_CONNECT_TIMEOUT", "5"), float),
        read_timeout=_positive_number("OAUTH_READ_TIMEOUT", _env("OAUTH_READ_TIMEOUT", "10"), float),
        token_ttl_seconds=_positive_number("TOKEN_TTL_SECONDS", _env("TOKEN_TTL_SECONDS", "3600"), int),
    )


def init_auth(app: Flask, settings: AuthSettings | None = None) -> AuthSettings:
    """
    Validate and attach auth settings to Flask `app.config`.

    Returns the `AuthSettings` for convenience.
    """

    settings = settings or load_auth_settings()
    app.config["AUTH_SETTINGS"] = settings
    return settings


def auth_settings() -> AuthSettings:
    settings = current_app.config.get("AUTH_SETTINGS")
    if not isinstance(settings, AuthSettings):
        raise RuntimeError("Auth settings not initialized. Call auth.config.init_auth(app) at startup.")
    return settings
