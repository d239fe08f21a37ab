"""Composition root: build the service graph from a Flask config."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, cast

from flask import Flask, current_app

from authcore.core.config import AuthSettings
from authcore.core.extensions import get_redis
from authcore.infra.jwt.token_codec import JWTTokenCodec
from authcore.infra.redis.redis_refresh_token_store import RedisRefreshTokenStore
from authcore.infra.sql.sql_refresh_token_store import SQLRefreshTokenStore
from authcore.security.passwords import PasswordHasher, PasswordPolicy
from authcore.services import (
    AccountService,
    RefreshTokenManager,
    SessionService,
    UserRegistrationService,
)
from authcore.services._shared.ports import InMemoryRefreshTokenStore, RefreshTokenStore

EXTENSION_KEY = "authcore"

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AuthServices:
    """Wired services sharing one hasher, codec and refresh-token store."""

    settings: AuthSettings
    hasher: PasswordHasher
    policy: PasswordPolicy
    codec: JWTTokenCodec
    store: RefreshTokenStore
    tokens: RefreshTokenManager
    sessions: SessionService
    registration: UserRegistrationService
    accounts: AccountService


def build_refresh_store(settings: AuthSettings) -> RefreshTokenStore:
    """Return the store selected by ``REFRESH_TOKEN_BACKEND``."""
    if settings.refresh_backend == "redis":
        return RedisRefreshTokenStore(get_redis())
    if settings.refresh_backend == "memory":
        return InMemoryRefreshTokenStore()
    return SQLRefreshTokenStore()


def build_services(
    config: Mapping[str, Any],
    *,
    store: RefreshTokenStore | None = None,
    clock: Callable[[], datetime] | None = None,
) -> AuthServices:
    """
    Build every service from ``config``.

    :param store: Overrides the configured refresh-token backend.
    :param clock: Shared clock; the system UTC clock when omitted.
    :raises ValueError: On invalid settings.
    """
    settings = AuthSettings.from_mapping(config)
    hasher = PasswordHasher(settings.password_hash_method)
    policy = PasswordPolicy()
    codec_kwargs: dict[str, Any] = {"clock": clock} if clock is not None else {}
    codec = JWTTokenCodec(
        secret=settings.secret,
        issuer=settings.issuer,
        access_ttl=settings.access_ttl,
        **codec_kwargs,
    )
    store = store or build_refresh_store(settings)
    tokens = RefreshTokenManager(store=store, refresh_ttl=settings.refresh_ttl, clock=clock)
    return AuthServices(
        settings=settings,
        hasher=hasher,
        policy=policy,
        codec=codec,
        store=store,
        tokens=tokens,
        sessions=SessionService(codec=codec, tokens=tokens, hasher=hasher, clock=clock),
        registration=UserRegistrationService(hasher=hasher, policy=policy, clock=clock),
        accounts=AccountService(tokens=tokens, hasher=hasher, policy=policy, clock=clock),
    )


def init_app(app: Flask) -> None:
    """Attach the wired services to ``app.extensions["authcore"]``."""
    services = build_services(app.config)
    app.extensions[EXTENSION_KEY] = services
    logger.info(
        "Auth services ready",
        extra={"event": "app.services_ready", "backend": services.settings.refresh_backend},
    )


def get_services() -> AuthServices:
    """Return the services of the current application."""
    try:
        return cast(AuthServices, current_app.extensions[EXTENSION_KEY])
    except KeyError:
        raise RuntimeError("Auth services are not initialized. Call create_app() first.") from None
