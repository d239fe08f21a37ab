"""
RefreshTokenManager
===================

Lifecycle of refresh tokens on top of a :class:`RefreshTokenStore`:

- ``issue``: mint a random single-use token for a user.
- ``validate_and_rotate``: redeem a token and replace it atomically.
- ``revoke`` / ``revoke_all``: explicit and bulk invalidation.
- ``active_tokens`` / ``tokens_for`` / ``purge``: inspection and cleanup.

The manager holds no locks; atomicity is the store's job.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from authcore.services._shared.base import BaseService
from authcore.services._shared.errors import (
    TokenExpiredError,
    TokenNotFoundError,
    TokenRevokedError,
)
from authcore.services._shared.ports import (
    DuplicateTokenError,
    RefreshTokenStore,
    RefreshTokenView,
    RotationResult,
)

logger = logging.getLogger(__name__)

#: Attempts at generating a unique token string before giving up.
MAX_TOKEN_ATTEMPTS = 3


def random_token() -> str:
    """Return a UUID4 string (122 random bits)."""
    return str(uuid.uuid4())


@dataclass(frozen=True, slots=True)
class RotatedToken:
    """
    Successful rotation.

    :ivar user_id: Owner of both the consumed and the new token.
    :ivar token: The newly issued token.
    """

    user_id: uuid.UUID
    token: RefreshTokenView


class RefreshTokenManager(BaseService):
    """
    Issue, rotate and revoke refresh tokens.

    :param store: Backing store.
    :param refresh_ttl: Default lifetime of issued tokens.
    :param token_factory: Source of token strings.
    :param clock: Current UTC instant.
    """

    def __init__(
        self,
        *,
        store: RefreshTokenStore,
        refresh_ttl: timedelta,
        token_factory: Callable[[], str] = random_token,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(clock=clock)
        if refresh_ttl <= timedelta(0):
            raise ValueError("Refresh token TTL must be positive.")
        self.store = store
        self.refresh_ttl = refresh_ttl
        self._token_factory = token_factory

    # ------------------------------------------------------------------ #
    # Issue / rotate
    # ------------------------------------------------------------------ #

    def issue(self, user_id: uuid.UUID, ttl: timedelta | None = None) -> RefreshTokenView:
        """
        Create and persist a new refresh token for ``user_id``.

        :raises DuplicateTokenError: After :data:`MAX_TOKEN_ATTEMPTS` collisions.
        """
        now = self.now_utc()
        expires_at = now + (ttl if ttl is not None else self.refresh_ttl)
        for attempt in range(1, MAX_TOKEN_ATTEMPTS + 1):
            view = RefreshTokenView(
                id=uuid.uuid4(),
                token=self._token_factory(),
                user_id=user_id,
                expires_at=expires_at,
                revoked=False,
                created_at=now,
            )
            try:
                with self.storage_guard():
                    return self.store.save(view)
            except DuplicateTokenError:
                logger.warning(
                    "Refresh token collision on issue",
                    extra={"event": "refresh_token.collision", "user_id": str(user_id)},
                )
                if attempt == MAX_TOKEN_ATTEMPTS:
                    raise
        raise AssertionError("unreachable")  # pragma: no cover

    def validate_and_rotate(self, token: str) -> RotatedToken:
        """
        Redeem ``token`` and replace it with a fresh one for the same user.

        :raises TokenNotFoundError: Unknown token.
        :raises TokenExpiredError: ``now >= expires_at``.
        :raises TokenRevokedError: Already revoked or consumed, including
            losing a concurrent redemption of the same token.
        """
        now = self.now_utc()
        new_expires_at = now + self.refresh_ttl
        for attempt in range(1, MAX_TOKEN_ATTEMPTS + 1):
            try:
                with self.storage_guard():
                    outcome = self.store.rotate(
                        old_token=token,
                        new_token=self._token_factory(),
                        now=now,
                        new_expires_at=new_expires_at,
                    )
            except DuplicateTokenError:
                logger.warning(
                    "Refresh token collision on rotate",
                    extra={"event": "refresh_token.collision"},
                )
                if attempt == MAX_TOKEN_ATTEMPTS:
                    raise
                continue

            if outcome.result is RotationResult.NOT_FOUND:
                raise TokenNotFoundError()
            if outcome.result is RotationResult.EXPIRED:
                raise TokenExpiredError("Refresh token has expired")
            if outcome.result is RotationResult.REVOKED:
                raise TokenRevokedError()

            if outcome.token is None:
                raise RuntimeError("Refresh token store reported a rotation without the new token")
            return RotatedToken(user_id=outcome.token.user_id, token=outcome.token)
        raise AssertionError("unreachable")  # pragma: no cover

    # ------------------------------------------------------------------ #
    # Revocation
    # ------------------------------------------------------------------ #

    def revoke(self, token: str) -> bool:
        """Revoke one token. Unknown or already revoked tokens are a no-op."""
        with self.storage_guard():
            return self.store.revoke(token)

    def revoke_all(self, user_id: uuid.UUID) -> int:
        with self.storage_guard():
            return self.store.revoke_all_by_user_id(user_id)

    # ------------------------------------------------------------------ #
    # Inspection / cleanup
    # ------------------------------------------------------------------ #

    def active_tokens(self, user_id: uuid.UUID) -> list[RefreshTokenView]:
        with self.storage_guard():
            return self.store.find_valid_by_user_id(user_id, self.now_utc())

    def tokens_for(self, user_id: uuid.UUID) -> list[RefreshTokenView]:
        with self.storage_guard():
            return self.store.find_by_user_id(user_id)

    def purge(self, user_id: uuid.UUID) -> int:
        """Physically delete the user's tokens. Only used on user deletion."""
        with self.storage_guard():
            return self.store.delete_by_user_id(user_id)
