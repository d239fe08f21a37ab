from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum, auto
from typing import Protocol

from authcore.models.base import as_utc


class RotationResult(Enum):
    """Outcome of an atomic refresh rotation attempt."""

    OK = auto()
    NOT_FOUND = auto()
    EXPIRED = auto()
    REVOKED = auto()


class DuplicateTokenError(Exception):
    """Raised by a store when a token string is already taken."""

    def __init__(self, token_id: uuid.UUID | None = None) -> None:
        super().__init__("Refresh token string already exists.")
        self.token_id = token_id


@dataclass(frozen=True, slots=True)
class RefreshTokenView:
    """
    Read-model for a stored refresh token.

    :ivar id: Record identifier.
    :ivar token: Bearer secret.
    :ivar user_id: Owner user id.
    :ivar expires_at: Absolute expiration (UTC).
    :ivar revoked: Whether the token has been consumed or revoked.
    :ivar created_at: Issue instant (UTC).
    """

    id: uuid.UUID
    token: str
    user_id: uuid.UUID
    expires_at: datetime
    revoked: bool
    created_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return as_utc(now) >= as_utc(self.expires_at)

    def is_valid(self, now: datetime) -> bool:
        return not self.revoked and not self.is_expired(now)


@dataclass(frozen=True, slots=True)
class RotationOutcome:
    """Result of :meth:`RefreshTokenStore.rotate`; ``token`` is set only on ``OK``."""

    result: RotationResult
    token: RefreshTokenView | None = None


class RefreshTokenStore(Protocol):
    """
    Durable storage for refresh tokens.

    ``rotate`` MUST be atomic: the old token is revoked and the new one
    inserted together or not at all, and of two concurrent rotations of the
    same token at most one returns ``OK``.
    """

    def save(self, token: RefreshTokenView) -> RefreshTokenView:
        """
        Insert a new token.

        :raises DuplicateTokenError: If ``token.token`` is already stored.
        """

    def find_by_token(self, token: str) -> RefreshTokenView | None:
        """Exact-string lookup."""

    def find_by_user_id(self, user_id: uuid.UUID) -> list[RefreshTokenView]:
        """Every token of the user, valid or not."""

    def find_valid_by_user_id(self, user_id: uuid.UUID, now: datetime) -> list[RefreshTokenView]:
        """Tokens that are neither revoked nor expired at ``now``."""

    def delete_by_user_id(self, user_id: uuid.UUID) -> int:
        """Physically remove the user's tokens. :returns: rows removed."""

    def revoke(self, token: str) -> bool:
        """Revoke one token. :returns: ``True`` if it changed state."""

    def revoke_all_by_user_id(self, user_id: uuid.UUID) -> int:
        """Revoke every active token of the user. :returns: tokens changed."""

    def rotate(
        self,
        *,
        old_token: str,
        new_token: str,
        now: datetime,
        new_expires_at: datetime,
    ) -> RotationOutcome:
        """
        Atomically revoke ``old_token`` and insert ``new_token`` for the same user.

        Checks run in order: missing, expired (``now >= expires_at``), revoked.

        :raises DuplicateTokenError: If ``new_token`` collides; nothing changes.
        """


class InMemoryRefreshTokenStore(RefreshTokenStore):
    """
    Process-local refresh-token store.

    .. note::
       A single lock makes every operation, ``rotate`` included, atomic.
       Intended for tests and single-process deployments.
    """

    def __init__(self) -> None:
        self._by_token: dict[str, RefreshTokenView] = {}
        self._by_user: dict[uuid.UUID, list[str]] = {}
        self._lock = threading.Lock()

    # ------------------------- helpers -------------------------

    def _insert(self, view: RefreshTokenView) -> None:
        if view.token in self._by_token:
            raise DuplicateTokenError(view.id)
        self._by_token[view.token] = view
        self._by_user.setdefault(view.user_id, []).append(view.token)

    def _views_for(self, user_id: uuid.UUID) -> list[RefreshTokenView]:
        return [self._by_token[t] for t in self._by_user.get(user_id, []) if t in self._by_token]

    # -------------------------- API ----------------------------

    def save(self, token: RefreshTokenView) -> RefreshTokenView:
        with self._lock:
            self._insert(token)
            return token

    def find_by_token(self, token: str) -> RefreshTokenView | None:
        with self._lock:
            return self._by_token.get(token)

    def find_by_user_id(self, user_id: uuid.UUID) -> list[RefreshTokenView]:
        with self._lock:
            return self._views_for(user_id)

    def find_valid_by_user_id(self, user_id: uuid.UUID, now: datetime) -> list[RefreshTokenView]:
        with self._lock:
            return [v for v in self._views_for(user_id) if v.is_valid(now)]

    def delete_by_user_id(self, user_id: uuid.UUID) -> int:
        with self._lock:
            tokens = self._by_user.pop(user_id, [])
            removed = 0
            for t in tokens:
                if self._by_token.pop(t, None) is not None:
                    removed += 1
            return removed

    def revoke(self, token: str) -> bool:
        with self._lock:
            view = self._by_token.get(token)
            if view is None or view.revoked:
                return False
            self._by_token[token] = replace(view, revoked=True)
            return True

    def revoke_all_by_user_id(self, user_id: uuid.UUID) -> int:
        with self._lock:
            changed = 0
            for view in self._views_for(user_id):
                if not view.revoked:
                    self._by_token[view.token] = replace(view, revoked=True)
                    changed += 1
            return changed

    def rotate(
        self,
        *,
        old_token: str,
        new_token: str,
        now: datetime,
        new_expires_at: datetime,
    ) -> RotationOutcome:
        with self._lock:
            old = self._by_token.get(old_token)
            if old is None:
                return RotationOutcome(RotationResult.NOT_FOUND)
            if old.is_expired(now):
                return RotationOutcome(RotationResult.EXPIRED)
            if old.revoked:
                return RotationOutcome(RotationResult.REVOKED)

            fresh = RefreshTokenView(
                id=uuid.uuid4(),
                token=new_token,
                user_id=old.user_id,
                expires_at=new_expires_at,
                revoked=False,
                created_at=now,
            )
            # Insert first: a collision must leave the old token untouched.
            self._insert(fresh)
            self._by_token[old_token] = replace(old, revoked=True)
            return RotationOutcome(RotationResult.OK, fresh)
