"""
Auth routes (GitHub OAuth).

Endpoints:
  - GET  /auth/login       (alias: /auth/github)
  - GET  /auth/callback    (alias: /auth/github/callback)

Implementation notes:
  - Uses the OAuth2 Authorization Code Flow.
  - The anti-forgery `state` lives in the server-side session and is
    single-use: it is removed on every callback, successful or not.
  - Enforces the allowed email domain before any token is issued.
  - On success the signed token is handed to the frontend as a query param.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from urllib.parse import urlencode

from flask import Blueprint, current_app, jsonify, redirect, request, session

from errors import AuthError, OAuthExchangeFailed, StateMismatch

from .config import auth_settings
from .github_oauth import GitHubOAuthClient, new_state_token, states_match
from .identity import verify_identity
from .tokens import issue_token

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

STATE_SESSION_KEY = "auth_state"


def oauth_client() -> GitHubOAuthClient:
    client = current_app.extensions.get("github_oauth")
    if not isinstance(client, GitHubOAuthClient):
        raise RuntimeError("GitHub OAuth client not initialized. Register it in create_app().")
    return client


def _wants_json() -> bool:
    best = request.accept_mimetypes.best_match(["text/html", "application/json"])
    return best == "application/json"


def _frontend_redirect(path: str, **params: str):
    return redirect(f"{auth_settings().frontend_url}{path}?{urlencode(params)}")


def _login_failed(exc: AuthError):
    if _wants_json():
        return jsonify({"error": exc.message}), exc.status_code
    return _frontend_redirect("/login-error", message=exc.message)


@auth_bp.get("/login")
@auth_bp.get("/github", endpoint="login_legacy")
def login():
    """Start the login flow by redirecting the user to GitHub."""

    state = new_state_token()
    session[STATE_SESSION_KEY] = state
    logger.info("Redirecting to identity provider for sign-in")
    return redirect(oauth_client().authorization_url(state))


@auth_bp.get("/callback")
@auth_bp.get("/github/callback", endpoint="callback_legacy")
def callback():
    """Handle the OAuth2 redirect from GitHub and hand a token to the frontend."""

    s = auth_settings()
    expected_state = session.pop(STATE_SESSION_KEY, None)

    try:
        if not states_match(expected_state, request.args.get("state")):
            logger.warning("Callback state mismatch (session had state: %s)", bool(expected_state))
            raise StateMismatch()

        # GitHub sends error params when the user denies consent.
        error = request.args.get("error")
        if error:
            logger.info("Provider returned error on callback: %s", error)
            raise OAuthExchangeFailed()

        code = request.args.get("code")
        if not code:
            raise OAuthExchangeFailed()

        client = oauth_client()
        access_token = client.exchange_code(code)
        email = verify_identity(client, access_token, s.allowed_domain)
    except AuthError as exc:
        return _login_failed(exc)

    token = issue_token(email, s.jwt_secret, ttl=timedelta(seconds=s.token_ttl_seconds))
    logger.info("Issued token for %s", email)
    return _frontend_redirect("/login-success", token=token)
