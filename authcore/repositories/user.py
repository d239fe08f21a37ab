"""User repository: lookups by natural key and administrative deletion."""

from __future__ import annotations

import uuid
from typing import cast

from sqlalchemy import delete, select

from authcore.models.user import User, normalize_email
from authcore.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    It never hashes passwords or mints tokens; services do that.
    """

    model = User

    def _sortable_fields(self):
        """Expose sortable fields for safe public sorting."""
        return {
            "email": User.email,
            "username": User.username,
            "created_at": User.created_at,
        }

    # ---------------------------- Lookup helpers ----------------------------

    def get_by_email(self, email: str) -> User | None:
        """Fetch a user by email (case-insensitive).

        :param email: Email address, normalized before the lookup.
        :type email: str
        :returns: User instance or ``None`` when not found.
        :rtype: User | None
        """
        stmt = select(User).where(User.email == normalize_email(email))
        return cast(User | None, self.session.execute(stmt).scalars().first())

    def get_by_username(self, username: str) -> User | None:
        stmt = select(User).where(User.username == username.strip())
        return cast(User | None, self.session.execute(stmt).scalars().first())

    def exists_by_email(self, email: str) -> bool:
        """Return ``True`` when a user with the provided email exists."""
        stmt = select(User.id).where(User.email == normalize_email(email))
        return self.session.execute(stmt.limit(1)).first() is not None

    def exists_by_username(self, username: str) -> bool:
        stmt = select(User.id).where(User.username == username.strip())
        return self.session.execute(stmt.limit(1)).first() is not None

    def list_all(self) -> list[User]:
        """Return every user ordered by creation time."""
        return self.list(sort=["created_at"])

    # ---------------------------- Writes ----------------------------

    def save(self, user: User) -> User:
        """Stage a new or modified user and flush."""
        return self.add(user)

    def delete_by_id(self, user_id: uuid.UUID) -> bool:
        """Delete a user row with a set-based statement.

        :returns: ``True`` when a row was removed.
        :rtype: bool
        """
        result = self.session.execute(delete(User).where(User.id == user_id))
        return bool(result.rowcount)
