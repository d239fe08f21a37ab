"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'

REFRESH_TOKEN_BACKENDS: Final[frozenset[str]] = frozenset({"sql", "redis", "memory"})


# Loads .env in development (no-op when the file is absent)
load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_int(name: str, default: int) -> int:
    """Parse an integer from an environment variable.

    :raises ValueError: If the variable is set but is not an integer.
    """
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return int(val.strip())


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    SECRET_KEY: str
        Flask secret. Defaults to a development-safe placeholder.
    JWT_SECRET_KEY: str
        Symmetric key used to sign access tokens (HS256).
    JWT_ISSUER: str
        Value written to and required in the ``iss`` claim.
    ACCESS_TOKEN_TTL_SECONDS: int
        Lifetime of access tokens (15 minutes by default).
    REFRESH_TOKEN_TTL_SECONDS: int
        Lifetime of refresh tokens (7 days by default).
    PASSWORD_HASH_METHOD: str
        Werkzeug hashing method (``scrypt`` or ``pbkdf2:sha256[:iterations]``).
    REFRESH_TOKEN_BACKEND: str
        ``sql`` (default), ``redis`` or ``memory``.
    REDIS_URL: str | None
        Connection URL for the Redis refresh-token backend.
    SQLALCHEMY_DATABASE_URI: str
        Database connection string consumed by SQLAlchemy.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).

    Notes
    -----
    Values are read once at import time; there is no hot reload.
    """

    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")

    # Tokens
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "CHANGE_ME_JWT_SECRET_WITH_32_BYTES")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "authcore")
    ACCESS_TOKEN_TTL_SECONDS = env_int("ACCESS_TOKEN_TTL_SECONDS", 15 * 60)
    REFRESH_TOKEN_TTL_SECONDS = env_int("REFRESH_TOKEN_TTL_SECONDS", 7 * 24 * 60 * 60)

    # Passwords
    PASSWORD_HASH_METHOD = os.getenv("PASSWORD_HASH_METHOD", "scrypt")

    # Storage
    REFRESH_TOKEN_BACKEND = os.getenv("REFRESH_TOKEN_BACKEND", "sql")
    REDIS_URL = os.getenv("REDIS_URL")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development."""

    DEBUG = env_bool("FLASK_DEBUG", True)


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Uses a cheap PBKDF2 work factor so hashing does not dominate test time.
    """

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    JWT_SECRET_KEY = "testing-secret-key-of-at-least-32-bytes!"
    PASSWORD_HASH_METHOD = "pbkdf2:sha256:1000"
    REFRESH_TOKEN_BACKEND = "sql"
    REDIS_URL = None


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    ``JWT_SECRET_KEY`` must come from the environment; the placeholder is
    rejected by :meth:`AuthSettings.from_mapping`.
    """

    DEBUG = False
    SQLALCHEMY_ECHO = False


# Map names -> classes (simple, explicit)
CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)


@dataclass(frozen=True, slots=True)
class AuthSettings:
    """
    Typed view over the token and password settings of a Flask config.

    :param secret: Access-token signing secret.
    :param issuer: Issuer written into access tokens.
    :param access_ttl: Access-token lifetime.
    :param refresh_ttl: Refresh-token lifetime.
    :param password_hash_method: Werkzeug hashing method.
    :param refresh_backend: Refresh-token store selector.
    """

    secret: str
    issuer: str
    access_ttl: timedelta
    refresh_ttl: timedelta
    password_hash_method: str = "scrypt"
    refresh_backend: str = "sql"

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> AuthSettings:
        """
        Build settings from a Flask config mapping.

        :raises ValueError: On a missing/placeholder secret outside debug or
            testing, non-positive TTLs or an unknown refresh backend.
        """
        secret = str(config.get("JWT_SECRET_KEY") or "")
        if not secret:
            raise ValueError("JWT_SECRET_KEY must be set.")
        lenient = bool(config.get("DEBUG")) or bool(config.get("TESTING"))
        if secret.startswith("CHANGE_ME") and not lenient:
            raise ValueError("JWT_SECRET_KEY still holds the development placeholder.")

        access_seconds = int(config.get("ACCESS_TOKEN_TTL_SECONDS", 15 * 60))
        refresh_seconds = int(config.get("REFRESH_TOKEN_TTL_SECONDS", 7 * 24 * 60 * 60))
        if access_seconds <= 0 or refresh_seconds <= 0:
            raise ValueError("Token TTLs must be positive.")

        backend = str(config.get("REFRESH_TOKEN_BACKEND", "sql")).strip().lower()
        if backend not in REFRESH_TOKEN_BACKENDS:
            raise ValueError(f"Unknown REFRESH_TOKEN_BACKEND {backend!r}.")

        return cls(
            secret=secret,
            issuer=str(config.get("JWT_ISSUER") or "authcore"),
            access_ttl=timedelta(seconds=access_seconds),
            refresh_ttl=timedelta(seconds=refresh_seconds),
            password_hash_method=str(config.get("PASSWORD_HASH_METHOD") or "scrypt"),
            refresh_backend=backend,
        )
