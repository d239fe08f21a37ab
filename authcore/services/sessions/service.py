# authcore/services/sessions/service.py
from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime

from authcore.core.logger import ensure_request_id
from authcore.security.passwords import PasswordHasher
from authcore.services._shared.base import BaseService, ServiceContext
from authcore.services._shared.dto import UserView, to_user_view
from authcore.services._shared.errors import (
    AccountDisabledError,
    InvalidCredentialsError,
    TokenError,
    TokenRevokedError,
)
from authcore.services._shared.ports import Claims, TokenCodec
from authcore.services.sessions.dto import SessionOut
from authcore.services.tokens.manager import RefreshTokenManager

logger = logging.getLogger(__name__)


class SessionService(BaseService):
    """
    Authentication lifecycle: authenticate, refresh, logout, mass revoke.

    Access tokens are stateless and stay valid until their own expiry, even
    after the user is disabled or loses a role. Refresh tokens are revoked
    immediately on those events.
    """

    def __init__(
        self,
        *,
        codec: TokenCodec,
        tokens: RefreshTokenManager,
        hasher: PasswordHasher,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        :param codec: Mints and verifies access tokens.
        :param tokens: Refresh-token lifecycle.
        :param hasher: Password verification.
        :param clock: Current UTC instant.
        """
        super().__init__(clock=clock)
        self.codec = codec
        self.tokens = tokens
        self.hasher = hasher

    # ------------------------------------------------------------------ #
    # Authenticate
    # ------------------------------------------------------------------ #

    def authenticate(self, email: str, password: str) -> SessionOut:
        """
        Check credentials and open a session.

        The password is verified before the enabled flag is looked at, and an
        unknown email costs one dummy verification.

        :raises InvalidCredentialsError: Unknown email or wrong password.
        :raises AccountDisabledError: Correct credentials, disabled account.
        """
        with self.storage_guard(), self.ro_uow() as uow:
            user = uow.users.get_by_email(email)
            if user is None:
                self.hasher.dummy_verify(password)
                logger.warning(
                    "Login failed",
                    extra={"event": "auth.login_failed", "reason": "unknown_email"},
                )
                raise InvalidCredentialsError()
            if not self.hasher.verify(password, user.password_hash):
                logger.warning(
                    "Login failed",
                    extra={
                        "event": "auth.login_failed",
                        "user_id": str(user.id),
                        "reason": "bad_password",
                    },
                )
                raise InvalidCredentialsError()
            if not user.enabled:
                logger.warning(
                    "Login refused for disabled account",
                    extra={"event": "auth.login_failed", "user_id": str(user.id), "reason": "disabled"},
                )
                raise AccountDisabledError()
            view = to_user_view(user)

        session = self._open_session(view)
        logger.info("Login succeeded", extra={"event": "auth.login", "user_id": str(view.id)})
        return session

    # ------------------------------------------------------------------ #
    # Refresh
    # ------------------------------------------------------------------ #

    def refresh(self, refresh_token: str) -> SessionOut:
        """
        Redeem a refresh token for a new access + refresh pair.

        Roles in the new access token are read from the user at refresh time.

        :raises TokenNotFoundError: Unknown token.
        :raises TokenExpiredError: Expired token.
        :raises TokenRevokedError: Revoked or reused token, or the owner was
            deleted or disabled (the replacement token is revoked at once).
        """
        try:
            rotated = self.tokens.validate_and_rotate(refresh_token)
        except TokenError as exc:
            logger.warning(
                "Refresh rejected",
                extra={"event": "auth.refresh_failed", "reason": exc.code},
            )
            raise

        with self.storage_guard(), self.ro_uow() as uow:
            user = uow.users.get(rotated.user_id)
            view = to_user_view(user) if user is not None and user.enabled else None

        if view is None:
            self.tokens.revoke(rotated.token.token)
            logger.warning(
                "Refresh rejected for inactive owner",
                extra={
                    "event": "auth.refresh_failed",
                    "user_id": str(rotated.user_id),
                    "reason": "owner_inactive",
                },
            )
            raise TokenRevokedError("Refresh token owner is no longer active")

        logger.info("Session refreshed", extra={"event": "auth.refresh", "user_id": str(view.id)})
        return SessionOut(
            access_token=self._mint_access(view),
            refresh_token=rotated.token.token,
            expires_in_seconds=self.codec.expires_in_seconds,
            user=view,
        )

    # ------------------------------------------------------------------ #
    # Logout / revoke
    # ------------------------------------------------------------------ #

    def logout(self, refresh_token: str) -> None:
        """Revoke ``refresh_token``. Always succeeds, even for unknown tokens."""
        revoked = self.tokens.revoke(refresh_token)
        logger.info("Logout", extra={"event": "auth.logout", "reason": "revoked" if revoked else "noop"})

    def revoke_all_for_user(self, user_id: uuid.UUID) -> int:
        """
        Revoke every refresh token of ``user_id``.

        :returns: Number of tokens that changed state.
        """
        count = self.tokens.revoke_all(user_id)
        logger.info(
            "Revoked %d refresh tokens",
            count,
            extra={"event": "auth.revoke_all", "user_id": str(user_id)},
        )
        return count

    # ------------------------------------------------------------------ #
    # Access tokens
    # ------------------------------------------------------------------ #

    def validate_access_token(self, token: str) -> Claims:
        """
        :raises TokenInvalidError: Tampered, malformed or foreign token.
        :raises TokenExpiredError: Past its expiry.
        """
        return self.codec.decode(token)

    def context_for(self, token: str, request_id: str | None = None) -> ServiceContext:
        """Build the per-request :class:`ServiceContext` from a bearer access token."""
        return ServiceContext(
            claims=self.validate_access_token(token),
            request_id=request_id or ensure_request_id(),
        )

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _mint_access(self, user: UserView) -> str:
        return self.codec.encode(user_id=user.id, email=user.email, roles=user.roles)

    def _open_session(self, user: UserView) -> SessionOut:
        refresh = self.tokens.issue(user.id)
        return SessionOut(
            access_token=self._mint_access(user),
            refresh_token=refresh.token,
            expires_in_seconds=self.codec.expires_in_seconds,
            user=user,
        )
