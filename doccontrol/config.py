"""
Document Control Platform
Configuration classes for the Flask application factory.

Selected by APP_ENV (development | testing | production):

    app.config.from_object(config[os.getenv("APP_ENV", "development")]())

Environment:
    DATABASE_URL       PostgreSQL URL (required in production)
    TEST_DATABASE_URL  test database, defaults to in-memory SQLite
    SECRET_KEY         required in production
    CORS_ORIGINS       comma-separated origins, "*" for any
    LOG_LEVEL          DEBUG | INFO | WARNING | ...
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))


def _database_url(env_var: str, fallback: str | None = None) -> str | None:
    """Read a database URL, rewriting the ``postgres://`` scheme SQLAlchemy 2.0 rejects."""
    url = os.getenv(env_var, "")
    if not url:
        return fallback
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


class Config:
    """Settings shared by every environment."""

    SECRET_KEY = os.getenv("SECRET_KEY") or secrets.token_hex(32)
    DEBUG = False
    TESTING = False
    LOG_LEVEL = os.getenv("LOG_LEVEL")

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    MAX_CONTENT_LENGTH = 2 * 1024 * 1024

    # Set by the authenticating proxy in front of the API
    USER_ID_HEADER = "X-User-Id"


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url(
        "DATABASE_URL",
        f"sqlite:///{os.path.join(basedir, 'instance', 'doccontrol_dev.db')}",
    )


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = _database_url("TEST_DATABASE_URL", "sqlite:///:memory:")
    # In-memory SQLite runs on a static pool; no sizing options
    SQLALCHEMY_ENGINE_OPTIONS = {}


class ProductionConfig(Config):
    SQLALCHEMY_DATABASE_URI = _database_url("DATABASE_URL")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "connect_args": {"options": "-c statement_timeout=30000"},
    }

    def __init__(self):
        missing = [
            name for name, value in (
                ("DATABASE_URL", self.SQLALCHEMY_DATABASE_URI),
                ("SECRET_KEY", os.getenv("SECRET_KEY")),
            )
            if not value
        ]
        if missing:
            raise RuntimeError(
                f"Production configuration requires: {', '.join(missing)}"
            )


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
