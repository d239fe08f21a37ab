"""Refresh-token repository with set-based revocation."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import cast

from sqlalchemy import delete, select, update

from authcore.models.refresh_token import RefreshToken
from authcore.repositories.base import BaseRepository


class RefreshTokenRepository(BaseRepository[RefreshToken]):
    """Persistence-only repository for :class:`RefreshToken`.

    Revocation is done with ``UPDATE`` statements rather than loaded
    instances so that the database arbitrates concurrent writers.
    """

    model = RefreshToken

    def _sortable_fields(self):
        return {
            "created_at": RefreshToken.created_at,
            "expires_at": RefreshToken.expires_at,
        }

    def get_by_token(self, token: str) -> RefreshToken | None:
        """Exact-string lookup.

        :param token: Bearer secret as presented by the client.
        :type token: str
        :returns: Matching row or ``None``.
        :rtype: RefreshToken | None
        """
        stmt = select(RefreshToken).where(RefreshToken.token == token)
        return cast(RefreshToken | None, self.session.execute(stmt).scalars().first())

    def list_by_user(self, user_id: uuid.UUID) -> list[RefreshToken]:
        return self.list(filters={"user_id": user_id}, sort=["created_at"])

    def list_valid_by_user(self, user_id: uuid.UUID, now: datetime) -> list[RefreshToken]:
        """Return unrevoked, unexpired tokens; validity is evaluated in SQL."""
        stmt = (
            select(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.revoked.is_(False),
                RefreshToken.expires_at > now,
            )
            .order_by(RefreshToken.created_at.asc(), RefreshToken.id.asc())
        )
        return list(self.session.execute(stmt).scalars().all())

    def mark_revoked_if_active(self, token_id: uuid.UUID) -> bool:
        """Flip ``revoked`` to true only if it is still false.

        This is the compare-and-set used by rotation: of two concurrent
        callers exactly one sees ``True``.

        :returns: ``True`` if this call revoked the row.
        :rtype: bool
        """
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.id == token_id, RefreshToken.revoked.is_(False))
            .values(revoked=True)
        )
        return self.session.execute(stmt).rowcount == 1

    def revoke_by_token(self, token: str) -> bool:
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.token == token, RefreshToken.revoked.is_(False))
            .values(revoked=True)
        )
        return self.session.execute(stmt).rowcount == 1

    def revoke_all_by_user(self, user_id: uuid.UUID) -> int:
        """Revoke every active token of ``user_id``.

        :returns: Number of rows that changed state.
        :rtype: int
        """
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked.is_(False))
            .values(revoked=True)
        )
        return int(self.session.execute(stmt).rowcount or 0)

    def delete_by_user(self, user_id: uuid.UUID) -> int:
        stmt = delete(RefreshToken).where(RefreshToken.user_id == user_id)
        return int(self.session.execute(stmt).rowcount or 0)
