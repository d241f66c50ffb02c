"""Application configuration for the auto-gift intelligence service."""

from __future__ import annotations

import os
from datetime import timedelta
from typing import Dict, Type

from dotenv import load_dotenv
from sqlalchemy.engine.url import make_url

load_dotenv()


def _engine_options_from_uri(uri: str) -> dict:
    url = make_url(uri)
    # Always keep pool_pre_ping, vary connect_args by dialect.
    if url.get_backend_name() == "sqlite":
        return {
            "pool_pre_ping": True,
            "connect_args": {"detect_types": 0, "timeout": 30},
        }
    if url.get_backend_name() in {"postgresql", "postgres"}:
        timeout = int(os.environ.get("DB_CONNECT_TIMEOUT_SECONDS", "10"))
        return {"pool_pre_ping": True, "connect_args": {"connect_timeout": timeout}}
    return {"pool_pre_ping": True}


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


class BaseConfig:
    """Base configuration loaded for all environments."""

    SECRET_KEY = os.environ.get("SECRET_KEY", "change-me")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///instance/autogift.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = _engine_options_from_uri(SQLALCHEMY_DATABASE_URI)
    WTF_CSRF_ENABLED = True

    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", SECRET_KEY)
    JWT_TOKEN_LOCATION = ["headers"]
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(minutes=int(os.environ.get("JWT_ACCESS_MINUTES", "30")))

    RATELIMIT_DEFAULT = "200/hour"
    RATELIMIT_STORAGE_URI = os.environ.get("REDIS_URL", "memory://")
    RATELIMIT_ENABLED = _env_flag("RATELIMIT_ENABLED", "true")
    AUTOGIFT_SCAN_RATE_LIMIT = os.environ.get("AUTOGIFT_SCAN_RATE_LIMIT", "30/minute")

    # Opportunity scanning
    AUTOGIFT_SCAN_WINDOW_DAYS = int(os.environ.get("AUTOGIFT_SCAN_WINDOW_DAYS", "90"))
    AUTOGIFT_PURCHASE_LEAD_DAYS = int(os.environ.get("AUTOGIFT_PURCHASE_LEAD_DAYS", "5"))
    AUTOGIFT_ADVANCE_NOTICE_DEFAULT_DAYS = int(os.environ.get("AUTOGIFT_ADVANCE_NOTICE_DEFAULT_DAYS", "3"))
    AUTOGIFT_TIMING_STRATEGY = os.environ.get("AUTOGIFT_TIMING_STRATEGY", "fixed")
    AUTOGIFT_SCAN_MAX_WORKERS = int(os.environ.get("AUTOGIFT_SCAN_MAX_WORKERS", "8"))
    AUTOGIFT_RECIPIENT_TIMEOUT_SECONDS = float(os.environ.get("AUTOGIFT_RECIPIENT_TIMEOUT_SECONDS", "10"))
    AUTOGIFT_SCAN_TIMEOUT_SECONDS = float(os.environ.get("AUTOGIFT_SCAN_TIMEOUT_SECONDS", "60"))

    # Intelligence cache: "memory", "database" or "none"
    AUTOGIFT_CACHE_BACKEND = os.environ.get("AUTOGIFT_CACHE_BACKEND", "memory")
    AUTOGIFT_CACHE_TTL_SECONDS = int(os.environ.get("AUTOGIFT_CACHE_TTL_SECONDS", "300"))


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    ENV = "development"


class TestingConfig(BaseConfig):
    TESTING = True
    # File-backed SQLite so Alembic migrations and the app share the same DB.
    SQLALCHEMY_DATABASE_URI = os.environ.get("TEST_DATABASE_URL", "sqlite:///instance/test.db")
    SQLALCHEMY_ENGINE_OPTIONS = _engine_options_from_uri(SQLALCHEMY_DATABASE_URI)
    WTF_CSRF_ENABLED = False
    RATELIMIT_ENABLED = False
    # SQLite connections are bound to the test transaction; keep the scan inline.
    AUTOGIFT_SCAN_MAX_WORKERS = 1
    AUTOGIFT_CACHE_BACKEND = "none"


class ProductionConfig(BaseConfig):
    ENV = "production"


config_by_name: Dict[str, Type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    # CI pipelines set APP_ENV=ci; map to testing defaults.
    "ci": TestingConfig,
}
