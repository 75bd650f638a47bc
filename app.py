"""
Flask web app for the API docs gateway.

This gateway includes:
  - GitHub sign-in restricted to one email domain (see `auth/`)
  - Short-lived signed bearer tokens for API calls
  - Server-side sessions (filesystem) via Flask-Session, holding only the
    pending OAuth state
  - Upload / retrieval of the current API document with rolling backups
    (see `storage/`)
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from flask import Flask, Response, jsonify, request
from flask_session import Session
from werkzeug.exceptions import RequestEntityTooLarge
from werkzeug.middleware.proxy_fix import ProxyFix

from app_logging import setup_logger
from auth.config import AuthSettings, init_auth
from auth.decorators import current_email, token_required
from auth.github_oauth import GitHubOAuthClient
from auth.routes import auth_bp
from errors import ConfigurationError, GatewayError
from storage.artifacts import ArtifactSettings, ArtifactStore

__version__ = "1.0.0"

logger = logging.getLogger(__name__)

CORS_ALLOW_HEADERS = (
    "Content-Type, Content-Length, Accept-Encoding, X-CSRF-Token, Authorization, "
    "accept, origin, Cache-Control, X-Requested-With"
)
CORS_ALLOW_METHODS = "POST, OPTIONS, GET, PUT, DELETE"

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def create_app(
    auth_settings: AuthSettings | None = None,
    artifact_settings: ArtifactSettings | None = None,
    oauth_client: GitHubOAuthClient | None = None,
    config: dict | None = None,
) -> Flask:
    """
    Build the gateway.

    Settings not passed in are loaded from the environment; a missing
    required value raises `ConfigurationError` before anything is served.
    """

    setup_logger(os.environ.get("LOG_LEVEL", "INFO"))

    app = Flask(__name__)

    # Respect proxy headers when deployed behind a reverse proxy.
    app.wsgi_app = ProxyFix(app.wsgi_app, x_proto=1, x_host=1)  # type: ignore[assignment]

    # ---- Security / Sessions ----
    app.secret_key = os.environ.get("FLASK_SECRET_KEY", "")
    app.config.update(config or {})
    if not app.secret_key:
        raise ConfigurationError(
            "Missing FLASK_SECRET_KEY. Set it as an environment variable or in a .env file before starting."
        )

    # Server-side sessions (filesystem). Only the pending OAuth state is kept there.
    app.config.setdefault("SESSION_TYPE", "filesystem")
    app.config.setdefault("SESSION_PERMANENT", False)
    app.config.setdefault("SESSION_USE_SIGNER", True)
    app.config.setdefault("SESSION_COOKIE_HTTPONLY", True)
    app.config.setdefault("SESSION_COOKIE_SAMESITE", "Lax")
    app.config.setdefault(
        "SESSION_COOKIE_SECURE", os.environ.get("FLASK_COOKIE_SECURE", "true").lower() == "true"
    )
    session_dir = app.config.get("SESSION_FILE_DIR") or os.environ.get("FLASK_SESSION_DIR") \
        or os.path.join(os.getcwd(), ".flask_session")
    os.makedirs(session_dir, exist_ok=True)
    app.config["SESSION_FILE_DIR"] = session_dir
    Session(app)

    # ---- Authentication ----
    settings = init_auth(app, auth_settings)
    app.extensions["github_oauth"] = oauth_client or GitHubOAuthClient(settings)
    app.register_blueprint(auth_bp)

    # ---- Artifact storage ----
    artifact_settings = artifact_settings or ArtifactSettings.from_env()
    store = ArtifactStore(artifact_settings)
    app.config["ARTIFACT_STORE"] = store
    app.config["MAX_CONTENT_LENGTH"] = artifact_settings.max_upload_bytes

    cors_origins = [
        o.strip() for o in app.config.get("CORS_ORIGINS", os.environ.get("CORS_ORIGINS", "*")).split(",")
        if o.strip()
    ] or ["*"]

    register_cors(app, cors_origins)
    register_error_handlers(app)
    register_routes(app, store)

    logger.info(
        "Gateway v%s ready: allowed domain %s, artifact %s",
        __version__, settings.allowed_domain, store.current_path,
    )
    return app


def register_cors(app: Flask, origins: list[str]) -> None:
    @app.before_request
    def preflight():
        if request.method == "OPTIONS":
            return Response(status=204)
        return None

    @app.after_request
    def apply_cors_headers(response: Response) -> Response:
        origin = request.headers.get("Origin")
        if "*" in origins:
            response.headers["Access-Control-Allow-Origin"] = "*"
        elif origin in origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers.add("Vary", "Origin")
        response.headers["Access-Control-Allow-Credentials"] = "true"
        response.headers["Access-Control-Allow-Headers"] = CORS_ALLOW_HEADERS
        response.headers["Access-Control-Allow-Methods"] = CORS_ALLOW_METHODS
        return response


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(GatewayError)
    def gateway_error(exc: GatewayError):
        return jsonify({"error": exc.message}), exc.status_code

    @app.errorhandler(RequestEntityTooLarge)
    def too_large(exc: RequestEntityTooLarge):
        return jsonify({"error": "Uploaded file is too large"}), 413


def register_routes(app: Flask, store: ArtifactStore) -> None:
    @app.get("/ping")
    def ping():
        return jsonify({"message": "pong"})

    @app.get("/secure")
    @token_required
    def secure():
        return jsonify({"message": "Welcome!", "email": current_email()})

    @app.get("/user")
    @token_required
    def user_info():
        return jsonify({"email": current_email()})

    @app.post("/artifact")
    @app.post("/upload", endpoint="upload_legacy")
    @token_required
    def upload_artifact():
        file = request.files.get("file")
        if file is None:
            return jsonify({"error": "No file uploaded"}), 400

        result = store.upload(file.read(), file.filename)
        logger.info("Artifact uploaded by %s (backup: %s)", current_email(), result.backup)
        return jsonify({"message": "File uploaded successfully"})

    @app.get("/artifact")
    @app.get(f"/{store.settings.name}", endpoint="artifact_legacy")
    @token_required
    def serve_artifact():
        data = store.read()
        return Response(data, mimetype=_mimetype_for(store.settings.name), headers=NO_CACHE_HEADERS)


def _mimetype_for(name: str) -> str:
    if name.endswith(".json"):
        return "application/json"
    if name.endswith((".yaml", ".yml")):
        return "application/yaml"
    return "application/octet-stream"


if __name__ == "__main__":
    load_dotenv()
    create_app().run(debug=True, port=8000)
