# authcore/infra/sql/sql_refresh_token_store.py
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from authcore.models.base import as_utc
from authcore.models.refresh_token import RefreshToken
from authcore.services._shared.errors import violates
from authcore.services._shared.ports import (
    DuplicateTokenError,
    RefreshTokenStore,
    RefreshTokenView,
    RotationOutcome,
    RotationResult,
)
from authcore.uow.sqlalchemy_uow import SQLAlchemyReadOnlyUnitOfWork, SQLAlchemyUnitOfWork

TOKEN_CONSTRAINT = "uq_refresh_tokens_token"


def to_view(row: RefreshToken) -> RefreshTokenView:
    return RefreshTokenView(
        id=row.id,
        token=row.token,
        user_id=row.user_id,
        expires_at=as_utc(row.expires_at),
        revoked=bool(row.revoked),
        created_at=as_utc(row.created_at),
    )


class SQLRefreshTokenStore(RefreshTokenStore):
    """
    Refresh-token store on the application database.

    Every call runs in its own unit of work. ``rotate`` revokes the old row
    with a conditional ``UPDATE ... WHERE revoked = false`` and inserts the
    new row in the same transaction; a zero rowcount means another caller
    won the race.
    """

    def _insert(self, uow: SQLAlchemyUnitOfWork, view: RefreshTokenView) -> RefreshToken:
        row = RefreshToken(
            id=view.id,
            token=view.token,
            user_id=view.user_id,
            expires_at=view.expires_at,
            revoked=view.revoked,
            created_at=view.created_at,
        )
        try:
            return uow.refresh_tokens.add(row)
        except IntegrityError as exc:
            if violates(exc, TOKEN_CONSTRAINT):
                raise DuplicateTokenError(view.id) from exc
            raise

    def save(self, token: RefreshTokenView) -> RefreshTokenView:
        with SQLAlchemyUnitOfWork() as uow:
            self._insert(uow, token)
        return token

    def find_by_token(self, token: str) -> RefreshTokenView | None:
        with SQLAlchemyReadOnlyUnitOfWork() as uow:
            row = uow.refresh_tokens.get_by_token(token)
            return to_view(row) if row is not None else None

    def find_by_user_id(self, user_id: uuid.UUID) -> list[RefreshTokenView]:
        with SQLAlchemyReadOnlyUnitOfWork() as uow:
            return [to_view(r) for r in uow.refresh_tokens.list_by_user(user_id)]

    def find_valid_by_user_id(self, user_id: uuid.UUID, now: datetime) -> list[RefreshTokenView]:
        with SQLAlchemyReadOnlyUnitOfWork() as uow:
            return [to_view(r) for r in uow.refresh_tokens.list_valid_by_user(user_id, now)]

    def delete_by_user_id(self, user_id: uuid.UUID) -> int:
        with SQLAlchemyUnitOfWork() as uow:
            return uow.refresh_tokens.delete_by_user(user_id)

    def revoke(self, token: str) -> bool:
        with SQLAlchemyUnitOfWork() as uow:
            return uow.refresh_tokens.revoke_by_token(token)

    def revoke_all_by_user_id(self, user_id: uuid.UUID) -> int:
        with SQLAlchemyUnitOfWork() as uow:
            return uow.refresh_tokens.revoke_all_by_user(user_id)

    def rotate(
        self,
        *,
        old_token: str,
        new_token: str,
        now: datetime,
        new_expires_at: datetime,
    ) -> RotationOutcome:
        with SQLAlchemyUnitOfWork() as uow:
            row = uow.refresh_tokens.get_by_token(old_token)
            if row is None:
                return RotationOutcome(RotationResult.NOT_FOUND)
            if row.is_expired(now):
                return RotationOutcome(RotationResult.EXPIRED)
            if row.revoked:
                return RotationOutcome(RotationResult.REVOKED)

            # Compare-and-set; losing a concurrent race reads as revoked.
            if not uow.refresh_tokens.mark_revoked_if_active(row.id):
                return RotationOutcome(RotationResult.REVOKED)

            fresh = RefreshTokenView(
                id=uuid.uuid4(),
                token=new_token,
                user_id=row.user_id,
                expires_at=new_expires_at,
                revoked=False,
                created_at=now,
            )
            # A DuplicateTokenError here rolls back the revoke as well.
            self._insert(uow, fresh)
        return RotationOutcome(RotationResult.OK, fresh)
