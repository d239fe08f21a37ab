"""Refresh token model: long-lived, single-use bearer secrets."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from authcore.core.extensions import db

from .base import ReprMixin, UUIDPKMixin, as_utc


class RefreshToken(UUIDPKMixin, ReprMixin, db.Model):
    """
    Persisted refresh token.

    A token is valid while ``revoked`` is false and ``now < expires_at``.
    ``revoked`` is the only column written after insert and it never goes
    back to false.
    """

    __tablename__ = "refresh_tokens"

    token: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    user = relationship("User", back_populates="refresh_tokens", lazy="select")

    __table_args__ = (UniqueConstraint("token", name="uq_refresh_tokens_token"),)

    def is_expired(self, now: datetime) -> bool:
        return as_utc(now) >= as_utc(self.expires_at)

    def is_valid(self, now: datetime) -> bool:
        return not self.revoked and not self.is_expired(now)
