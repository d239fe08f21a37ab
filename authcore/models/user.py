"""User model definition for the authentication core."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from authcore.core.extensions import db

from .base import ReprMixin, TimestampMixin, UUIDPKMixin


class Role(str, Enum):
    """Role labels understood by the core (RBAC)."""

    USER = "USER"
    ADMIN = "ADMIN"


DEFAULT_ROLES: frozenset[str] = frozenset({Role.USER.value})


class User(UUIDPKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    Authentication identity.

    Fields
    ------
    username : str
        Public handle. Unique, 3..50 characters after trimming.
    email : str
        Login email. Stored normalized (lowercase, trimmed). Unique.
    password_hash : str
        Output of :class:`~authcore.security.passwords.PasswordHasher`.
    first_name, last_name : str | None
        Optional display name fields.
    roles : list[str]
        Role labels, never empty. Always reassigned, never mutated in place,
        so the JSON column change is tracked.
    enabled : bool
        Disabled accounts cannot authenticate or refresh.
    """

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(254), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    roles: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=lambda: ["USER"])
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="user",
        lazy="select",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        UniqueConstraint("username", name="uq_users_username"),
    )

    # -------------------- Roles --------------------
    @property
    def role_set(self) -> frozenset[str]:
        """Return the roles as an immutable set."""
        return frozenset(self.roles or ())

    def has_role(self, role: Role | str) -> bool:
        label = role.value if isinstance(role, Role) else role
        return label in self.role_set

    def update_roles(self, roles: Iterable[Role | str], *, now: datetime) -> None:
        """
        Replace the role set.

        :raises ValueError: If ``roles`` is empty or holds an unknown label.
        """
        labels = sorted({normalize_role(r) for r in roles})
        if not labels:
            raise ValueError("A user must keep at least one role.")
        self.roles = labels
        self.touch(now)

    # -------------------- State --------------------
    def enable(self, *, now: datetime) -> None:
        self.enabled = True
        self.touch(now)

    def disable(self, *, now: datetime) -> None:
        self.enabled = False
        self.touch(now)

    def update_profile(self, first_name: str | None, last_name: str | None, *, now: datetime) -> None:
        self.first_name = first_name
        self.last_name = last_name
        self.touch(now)

    def update_password(self, password_hash: str, *, now: datetime) -> None:
        self.password_hash = password_hash
        self.touch(now)

    # -------------------- Validators --------------------
    @validates("email")
    def _normalize_email(self, key: str, value: str) -> str:
        """
        Normalize and validate email.

        :raises ValueError: If email is missing or malformed.
        """
        if not value or not isinstance(value, str):
            raise ValueError("Email is required.")
        v = normalize_email(value)
        # Minimal sanity check; full validation happens at the delivery layer.
        if "@" not in v or "." not in v.split("@")[-1]:
            raise ValueError("Email format looks invalid.")
        return v

    @validates("username")
    def _normalize_username(self, key: str, value: str) -> str:
        """
        Normalize and validate username.

        :raises ValueError: If username is missing or outside 3..50 characters.
        """
        if not isinstance(value, str):
            raise ValueError("Username is required.")
        v = value.strip()
        if not 3 <= len(v) <= 50:
            raise ValueError("Username must be between 3 and 50 characters.")
        return v


def normalize_email(value: str) -> str:
    return value.strip().lower()


def normalize_role(role: Role | str) -> str:
    """
    Return the canonical label for ``role``.

    :raises ValueError: For labels outside :class:`Role`.
    """
    label = role.value if isinstance(role, Role) else str(role).strip().upper()
    try:
        return Role(label).value
    except ValueError:
        raise ValueError(f"Unknown role: {role!r}") from None
