"""
UserRegistrationService
=======================

Creates a new identity:

- Rejects taken emails and usernames, then weak passwords, then malformed
  input, in that order.
- Hashes the password and stores the user with the default role, enabled.
- Relabels unique-constraint races detected at flush/commit.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from authcore.models.user import DEFAULT_ROLES, User, normalize_email
from authcore.security.passwords import PasswordHasher, PasswordPolicy
from authcore.services._shared.base import BaseService
from authcore.services._shared.dto import UserView, to_user_view
from authcore.services._shared.errors import (
    EmailExistsError,
    UsernameExistsError,
    ValidationError,
    WeakPasswordError,
    violates,
)
from authcore.services.registration.dto import RegistrationIn

logger = logging.getLogger(__name__)


class UserRegistrationService(BaseService):
    """
    Orchestrates user registration.
    """

    def __init__(
        self,
        *,
        hasher: PasswordHasher,
        policy: PasswordPolicy | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(clock=clock)
        self.hasher = hasher
        self.policy = policy or PasswordPolicy()

    def register(self, dto: RegistrationIn) -> UserView:
        """
        Register a user.

        :param dto: Registration input.
        :type dto: :class:`RegistrationIn`
        :returns: The stored user.
        :rtype: :class:`UserView`
        :raises EmailExistsError: Email already registered.
        :raises UsernameExistsError: Username already taken.
        :raises WeakPasswordError: Password fails the policy.
        :raises ValidationError: Malformed email or username.
        """
        norm_email = normalize_email(dto.email)
        username = dto.username.strip()

        # 1) Natural-key checks
        with self.storage_guard(), self.ro_uow() as uow_ro:
            if uow_ro.users.exists_by_email(norm_email):
                raise EmailExistsError(norm_email)
            if uow_ro.users.exists_by_username(username):
                raise UsernameExistsError(username)

        # 2) Password strength
        verdict = self.policy.validate(dto.password)
        if not verdict.ok:
            raise WeakPasswordError(verdict.reason)

        # 3) Persist
        now = self.now_utc()
        try:
            with self.storage_guard(), self.rw_uow() as uow:
                try:
                    user = User(
                        username=username,
                        email=norm_email,
                        password_hash=self.hasher.hash(dto.password),
                        first_name=dto.first_name,
                        last_name=dto.last_name,
                        roles=sorted(DEFAULT_ROLES),
                        enabled=True,
                        created_at=now,
                        updated_at=now,
                    )
                except ValueError as exc:
                    raise ValidationError(str(exc)) from exc
                uow.users.add(user)
                view = to_user_view(user)
        except IntegrityError as exc:
            # Lost a race against a concurrent registration
            if violates(exc, "uq_users_email"):
                raise EmailExistsError(norm_email) from exc
            if violates(exc, "uq_users_username"):
                raise UsernameExistsError(username) from exc
            raise

        logger.info("User registered", extra={"event": "user.registered", "user_id": str(view.id)})
        return view
