"""Reusable SQLAlchemy mixins shared by domain models (typed 2.0)."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, Uuid
from sqlalchemy.orm import Mapped, mapped_column


def as_utc(value: datetime) -> datetime:
    """Label naive datetimes as UTC (SQLite drops tzinfo on round trip)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class TimestampMixin:
    """Provide ``created_at`` and ``updated_at`` timestamp columns.

    Both values are assigned by the services from their clock; there are no
    server defaults or ``onupdate`` hooks.

    Attributes
    ----------
    created_at:
        Timezone-aware creation instant.
    updated_at:
        Timezone-aware instant of the last mutation.
    """

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def touch(self, now: datetime) -> None:
        """Record a mutation at ``now``."""
        self.updated_at = now


class UUIDPKMixin:
    """Expose an opaque UUID primary key named ``id``.

    Attributes
    ----------
    id:
        Random (version 4) identifier, assigned at flush unless provided.
    """

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)


class ReprMixin:
    """Provide a concise ``__repr__`` including the class name and id."""

    def __repr__(self) -> str:
        cls = self.__class__.__name__
        key = getattr(self, "id", None)
        return f"<{cls} id={key}>"
