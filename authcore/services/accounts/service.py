# authcore/services/accounts/service.py
from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable
from datetime import datetime

from authcore.models.user import Role, User
from authcore.security.passwords import PasswordHasher, PasswordPolicy
from authcore.services._shared.base import BaseService, ServiceContext
from authcore.services._shared.dto import UserView, to_user_view
from authcore.services._shared.errors import (
    InvalidPasswordError,
    NotFoundError,
    TokenInvalidError,
    ValidationError,
    WeakPasswordError,
)
from authcore.services.accounts.dto import UserPage
from authcore.services.tokens.manager import RefreshTokenManager
from authcore.uow.sqlalchemy_uow import SQLAlchemyRepositoryContainer

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 100


class AccountService(BaseService):
    """
    Self-service profile operations and administrative account management.

    Administrative calls (enable/disable, roles, delete) are not authorized
    here; the caller checks the ``ADMIN`` role before invoking them.
    Disabling a user, changing roles and deleting a user revoke all of the
    user's refresh tokens.
    """

    def __init__(
        self,
        *,
        tokens: RefreshTokenManager,
        hasher: PasswordHasher,
        policy: PasswordPolicy | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(clock=clock)
        self.tokens = tokens
        self.hasher = hasher
        self.policy = policy or PasswordPolicy()

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def get_user(self, user_id: uuid.UUID) -> UserView:
        """
        :raises NotFoundError: Unknown ``user_id``.
        """
        with self.storage_guard(), self.ro_uow() as uow:
            return to_user_view(self._require(uow, user_id))

    def list_users(
        self, *, page: int = 1, limit: int = 20, sort: Iterable[str] | None = None
    ) -> UserPage:
        """
        Page through users.

        :param sort: Tokens over ``email``, ``username`` and ``created_at``;
            prefix ``-`` for descending. Defaults to ``created_at``.
        """
        pagination = self.ensure_pagination(page=page, limit=limit, sort=sort or ["created_at"])
        with self.storage_guard(), self.ro_uow() as uow:
            result = uow.users.paginate(pagination)
            items = [to_user_view(u) for u in result.items]
        return UserPage(items=items, total=result.total, page=result.page, limit=result.limit)

    def current_user(self, ctx: ServiceContext) -> UserView:
        return self.get_user(self._actor(ctx))

    # ------------------------------------------------------------------ #
    # Self-service
    # ------------------------------------------------------------------ #

    def update_profile(
        self, ctx: ServiceContext, *, first_name: str | None, last_name: str | None
    ) -> UserView:
        """
        Replace the caller's display names.

        :raises ValidationError: A name exceeds 100 characters.
        """
        first, last = _clean_name(first_name), _clean_name(last_name)
        actor_id = self._actor(ctx)
        with self.storage_guard(), self.rw_uow() as uow:
            user = self._require(uow, actor_id)
            user.update_profile(first, last, now=self.now_utc())
            uow.users.save(user)
            return to_user_view(user)

    def change_password(
        self, ctx: ServiceContext, *, current_password: str, new_password: str
    ) -> None:
        """
        Change the caller's password.

        Existing sessions are left untouched.

        :raises InvalidPasswordError: ``current_password`` does not match.
        :raises WeakPasswordError: ``new_password`` fails the policy.
        """
        actor_id = self._actor(ctx)
        with self.storage_guard(), self.ro_uow() as uow_ro:
            current_hash = self._require(uow_ro, actor_id).password_hash
        if not self.hasher.verify(current_password, current_hash):
            logger.warning(
                "Password change refused",
                extra={"event": "user.password_change_failed", "user_id": str(actor_id)},
            )
            raise InvalidPasswordError()
        verdict = self.policy.validate(new_password)
        if not verdict.ok:
            raise WeakPasswordError(verdict.reason)

        new_hash = self.hasher.hash(new_password)
        with self.storage_guard(), self.rw_uow() as uow:
            user = self._require(uow, actor_id)
            user.update_password(new_hash, now=self.now_utc())
            uow.users.save(user)
        logger.info("Password changed", extra={"event": "user.password_changed", "user_id": str(actor_id)})

    # ------------------------------------------------------------------ #
    # Administration
    # ------------------------------------------------------------------ #

    def enable_user(self, user_id: uuid.UUID) -> UserView:
        with self.storage_guard(), self.rw_uow() as uow:
            user = self._require(uow, user_id)
            user.enable(now=self.now_utc())
            uow.users.save(user)
            view = to_user_view(user)
        logger.info("User enabled", extra={"event": "user.enabled", "user_id": str(user_id)})
        return view

    def disable_user(self, user_id: uuid.UUID) -> UserView:
        """Disable the account, then revoke its refresh tokens."""
        with self.storage_guard(), self.rw_uow() as uow:
            user = self._require(uow, user_id)
            user.disable(now=self.now_utc())
            uow.users.save(user)
            view = to_user_view(user)
        self.tokens.revoke_all(user_id)
        logger.info("User disabled", extra={"event": "user.disabled", "user_id": str(user_id)})
        return view

    def update_roles(self, user_id: uuid.UUID, roles: Iterable[Role | str]) -> UserView:
        """
        Replace the user's roles, then revoke its refresh tokens so the next
        login carries the new roles.

        :raises ValidationError: Empty set or unknown label.
        """
        wanted = list(roles)
        with self.storage_guard(), self.rw_uow() as uow:
            user = self._require(uow, user_id)
            try:
                user.update_roles(wanted, now=self.now_utc())
            except ValueError as exc:
                raise ValidationError(str(exc)) from exc
            uow.users.save(user)
            view = to_user_view(user)
        self.tokens.revoke_all(user_id)
        logger.info("User roles updated", extra={"event": "user.roles_updated", "user_id": str(user_id)})
        return view

    def delete_user(self, user_id: uuid.UUID) -> None:
        """Revoke and purge the user's refresh tokens, then delete the user."""
        with self.storage_guard(), self.ro_uow() as uow_ro:
            self._require(uow_ro, user_id)

        self.tokens.revoke_all(user_id)
        self.tokens.purge(user_id)
        with self.storage_guard(), self.rw_uow() as uow:
            if not uow.users.delete_by_id(user_id):
                raise NotFoundError("User", user_id)
        logger.info("User deleted", extra={"event": "user.deleted", "user_id": str(user_id)})

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _actor(ctx: ServiceContext) -> uuid.UUID:
        if ctx.actor_id is None:
            raise TokenInvalidError("No authenticated user in context")
        return ctx.actor_id

    @staticmethod
    def _require(uow: SQLAlchemyRepositoryContainer, user_id: uuid.UUID) -> User:
        user = uow.users.get(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user


def _clean_name(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if len(value) > NAME_MAX_LENGTH:
        raise ValidationError(f"Names must be at most {NAME_MAX_LENGTH} characters.")
    return value or None
