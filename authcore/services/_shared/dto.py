# authcore/services/_shared/dto.py
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime

from authcore.models.base import as_utc
from authcore.models.user import User


@dataclass(frozen=True, slots=True)
class UserView:
    """
    Public projection of a user; never carries the password hash.

    :param id: User identifier.
    :param username: Public handle.
    :param email: Normalized email.
    :param first_name: Optional given name.
    :param last_name: Optional family name.
    :param roles: Role labels.
    :param enabled: Whether the account may authenticate.
    :param created_at: Creation instant (UTC).
    :param updated_at: Last mutation instant (UTC).
    """

    id: uuid.UUID
    username: str
    email: str
    first_name: str | None
    last_name: str | None
    roles: frozenset[str]
    enabled: bool
    created_at: datetime
    updated_at: datetime


def to_user_view(user: User) -> UserView:
    """Map an ORM :class:`User` to :class:`UserView`."""
    return UserView(
        id=user.id,
        username=user.username,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        roles=user.role_set,
        enabled=bool(user.enabled),
        created_at=as_utc(user.created_at),
        updated_at=as_utc(user.updated_at),
    )
