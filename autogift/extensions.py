"""Shared extensions for the auto-gift application."""

from pathlib import Path

from flask import current_app, jsonify
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

ENGINE_EXTENSION_KEY = "autogift_engine"

# Core persistence and auth/security primitives
db = SQLAlchemy(session_options={"expire_on_commit": False})
migrate = Migrate()
jwt = JWTManager()
limiter = Limiter(
    key_func=get_remote_address, enabled=True, default_limits=["200 per hour"]
)


class IntelligenceExtension:
    """Per-app ``IntelligenceEngine`` wired to the SQL stores."""

    def init_app(self, app) -> None:
        from autogift.core.intelligence import build_engine

        app.extensions[ENGINE_EXTENSION_KEY] = build_engine(app)

    @property
    def engine(self):
        return current_app.extensions[ENGINE_EXTENSION_KEY]


intelligence = IntelligenceExtension()


@jwt.unauthorized_loader
def _missing_token(reason: str):
    return jsonify({"ok": False, "error": "unauthorized"}), 401


@jwt.invalid_token_loader
def _invalid_token(reason: str):
    return jsonify({"ok": False, "error": "invalid_token"}), 401


@jwt.expired_token_loader
def _expired_token(jwt_header, jwt_payload):
    return jsonify({"ok": False, "error": "token_expired"}), 401


def init_extensions(app) -> None:
    """Initialize all extensions with the Flask app."""
    db.init_app(app)
    migrations_dir = Path(__file__).resolve().parent / "migrations"
    migrate.init_app(app, db, directory=str(migrations_dir))
    jwt.init_app(app)
    limiter.enabled = app.config.get("RATELIMIT_ENABLED", True)
    limiter.default_limits = [app.config.get("RATELIMIT_DEFAULT", "200 per hour")]
    limiter.storage_uri = app.config.get("RATELIMIT_STORAGE_URI", "memory://")
    limiter.init_app(app)
    intelligence.init_app(app)
