"""
GitHub OAuth helpers.

This wraps the three provider round-trips of the OAuth2 Authorization Code
Flow: building the authorize URL, exchanging the code for an access token,
and listing the user's email addresses with that token.
"""

from __future__ import annotations

import logging
import secrets
from typing import Any
from urllib.parse import urlencode

import requests

from errors import IdentityUnresolved, OAuthExchangeFailed

from .config import AuthSettings

logger = logging.getLogger(__name__)

STATE_BYTES = 16


def new_state_token() -> str:
    """Generate a cryptographically secure state token for CSRF protection."""

    return secrets.token_urlsafe(STATE_BYTES)


def states_match(expected: str | None, received: str | None) -> bool:
    if not expected or not received:
        return False
    return secrets.compare_digest(expected.encode(), received.encode())


class GitHubOAuthClient:
    """Server-side half of the GitHub authorization code flow."""

    def __init__(self, settings: AuthSettings, session: requests.Session | None = None):
        self._settings = settings
        self._http = session or requests.Session()

    def authorization_url(self, state: str) -> str:
        query = urlencode(
            {
                "client_id": self._settings.client_id,
                "redirect_uri": self._settings.redirect_uri,
                "scope": self._settings.scope,
                "state": state,
            }
        )
        return f"{self._settings.authorize_url}?{query}"

    def exchange_code(self, code: str) -> str:
        """
        Swap an authorization code for an access token.

        GitHub answers 200 with an `error` field when the code is bad or
        expired, so the body is checked as well as the status.
        """

        s = self._settings
        try:
            resp = self._http.post(
                s.token_url,
                data={
                    "client_id": s.client_id,
                    "client_secret": s.client_secret,
                    "code": code,
                    "redirect_uri": s.redirect_uri,
                },
                headers={"Accept": "application/json"},
                timeout=s.http_timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Token exchange request failed: %s", exc.__class__.__name__)
            raise OAuthExchangeFailed() from exc

        if resp.status_code != 200:
            logger.warning("Token exchange rejected with HTTP %s", resp.status_code)
            raise OAuthExchangeFailed()

        payload = _json_or_none(resp)
        if not isinstance(payload, dict) or "error" in payload:
            error = payload.get("error") if isinstance(payload, dict) else "unparseable response"
            logger.warning("Token exchange returned error: %s", error)
            raise OAuthExchangeFailed()

        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            logger.warning("Token exchange response had no access_token")
            raise OAuthExchangeFailed()
        return access_token

    def fetch_emails(self, access_token: str) -> list[dict[str, Any]]:
        """Return the raw email list for the user owning `access_token`."""

        try:
            resp = self._http.get(
                self._settings.emails_url,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/vnd.github+json",
                },
                timeout=self._settings.http_timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Email lookup request failed: %s", exc.__class__.__name__)
            raise IdentityUnresolved() from exc

        if resp.status_code != 200:
            logger.warning("Email lookup rejected with HTTP %s", resp.status_code)
            raise IdentityUnresolved()

        payload = _json_or_none(resp)
        if not isinstance(payload, list):
            logger.warning("Email lookup returned a non-list body")
            raise IdentityUnresolved()
        return payload


def _json_or_none(resp: requests.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return None
