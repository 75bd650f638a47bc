from unittest import mock

import pytest
import requests

from app import create_app
from auth.config import AuthSettings
from auth.github_oauth import GitHubOAuthClient
from auth.tokens import issue_token
from storage.artifacts import ArtifactSettings

from .helpers import ALLOWED_DOMAIN, JWT_SECRET


@pytest.fixture
def auth_settings():
    return AuthSettings(
        client_id="client-123",
        client_secret="client-secret",
        redirect_uri="http://localhost:8000/auth/callback",
        jwt_secret=JWT_SECRET,
        allowed_domain=ALLOWED_DOMAIN,
        frontend_url="http://frontend.test",
        authorize_url="https://github.test/login/oauth/authorize",
        token_url="https://github.test/login/oauth/access_token",
        emails_url="https://api.github.test/user/emails",
        connect_timeout=2.0,
        read_timeout=5.0,
    )


@pytest.fixture
def artifact_settings(tmp_path):
    return ArtifactSettings(directory=tmp_path / "uploads", name="swagger.yaml", max_upload_bytes=1024)


@pytest.fixture
def http():
    """Stands in for the `requests.Session` talking to GitHub."""
    return mock.Mock(spec=requests.Session)


@pytest.fixture
def app(auth_settings, artifact_settings, http, tmp_path):
    app = create_app(
        auth_settings=auth_settings,
        artifact_settings=artifact_settings,
        oauth_client=GitHubOAuthClient(auth_settings, session=http),
        config={
            "TESTING": True,
            "SECRET_KEY": "test-flask-secret",
            "SESSION_FILE_DIR": str(tmp_path / "sessions"),
            "SESSION_COOKIE_SECURE": False,
        },
    )
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return app.config["ARTIFACT_STORE"]


@pytest.fixture
def token():
    return issue_token(f"dev@{ALLOWED_DOMAIN}", JWT_SECRET)


@pytest.fixture
def auth_header(token):
    return {"Authorization": f"Bearer {token}"}
