from datetime import timedelta

import pytest

from authcore.core.config import (
    AuthSettings,
    DevelopmentConfig,
    ProductionConfig,
    TestingConfig,
    env_bool,
    env_int,
    get_config,
)
from authcore.core.wiring import build_services, get_services
from authcore.services._shared.ports import InMemoryRefreshTokenStore

BASE = {
    "JWT_SECRET_KEY": "a-production-secret-of-at-least-32-bytes",
    "ACCESS_TOKEN_TTL_SECONDS": 60,
    "REFRESH_TOKEN_TTL_SECONDS": 3600,
    "REFRESH_TOKEN_BACKEND": "sql",
}


class TestAuthSettings:
    def test_from_mapping(self):
        settings = AuthSettings.from_mapping({**BASE, "JWT_ISSUER": "me", "REFRESH_TOKEN_BACKEND": " Memory "})
        assert settings.access_ttl == timedelta(seconds=60)
        assert settings.refresh_ttl == timedelta(hours=1)
        assert settings.issuer == "me"
        assert settings.refresh_backend == "memory"
        assert settings.password_hash_method == "scrypt"

    def test_missing_secret(self):
        with pytest.raises(ValueError):
            AuthSettings.from_mapping({**BASE, "JWT_SECRET_KEY": ""})

    def test_placeholder_secret_only_allowed_when_lenient(self):
        placeholder = {**BASE, "JWT_SECRET_KEY": "CHANGE_ME_JWT_SECRET_WITH_32_BYTES"}
        with pytest.raises(ValueError, match="placeholder"):
            AuthSettings.from_mapping(placeholder)
        assert AuthSettings.from_mapping({**placeholder, "DEBUG": True}).secret.startswith("CHANGE_ME")

    @pytest.mark.parametrize("key", ["ACCESS_TOKEN_TTL_SECONDS", "REFRESH_TOKEN_TTL_SECONDS"])
    def test_non_positive_ttl(self, key):
        with pytest.raises(ValueError):
            AuthSettings.from_mapping({**BASE, key: 0})

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="REFRESH_TOKEN_BACKEND"):
            AuthSettings.from_mapping({**BASE, "REFRESH_TOKEN_BACKEND": "mongo"})


class TestEnvironment:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [("development", DevelopmentConfig), ("TESTING", TestingConfig), ("production", ProductionConfig), ("nope", DevelopmentConfig)],
    )
    def test_get_config(self, monkeypatch, value, expected):
        monkeypatch.setenv("APP_ENV", value)
        assert get_config() is expected

    def test_env_helpers(self, monkeypatch):
        monkeypatch.setenv("AUTHCORE_FLAG", "Yes")
        monkeypatch.setenv("AUTHCORE_NUM", " 42 ")
        monkeypatch.delenv("AUTHCORE_MISSING", raising=False)

        assert env_bool("AUTHCORE_FLAG") is True
        assert env_bool("AUTHCORE_MISSING", True) is True
        assert env_int("AUTHCORE_NUM", 1) == 42
        assert env_int("AUTHCORE_MISSING", 7) == 7


class TestWiring:
    def test_app_exposes_services(self, app):
        services = get_services()
        assert services.settings.refresh_backend == "sql"
        assert services.sessions.tokens is services.tokens

    def test_memory_backend(self):
        services = build_services({**BASE, "REFRESH_TOKEN_BACKEND": "memory"})
        assert isinstance(services.store, InMemoryRefreshTokenStore)

    def test_redis_backend_requires_client(self):
        with pytest.raises(RuntimeError, match="Redis client is not initialized"):
            build_services({**BASE, "REFRESH_TOKEN_BACKEND": "redis"})
