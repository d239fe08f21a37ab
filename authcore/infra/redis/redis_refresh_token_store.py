# comments in English; reST docstrings
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import redis

from authcore.models.base import as_utc
from authcore.services._shared.ports import (
    DuplicateTokenError,
    RefreshTokenStore,
    RefreshTokenView,
    RotationOutcome,
    RotationResult,
)

#: Records outlive their expiry by this much so late use reads as expired, not missing.
RETENTION = timedelta(days=1)


def _s(value: Any) -> str:
    return value.decode() if isinstance(value, bytes) else str(value)


@dataclass(slots=True)
class RedisRefreshTokenStore(RefreshTokenStore):
    """
    Redis-backed refresh token store with atomic rotation.

    Layout: one hash per token at ``rt:{token}`` and one set of token strings
    per user at ``rt:u:{user_id}``. Writes that depend on a prior read use
    ``WATCH``/``MULTI``/``EXEC`` and retry on :class:`redis.WatchError`.

    :param r: A Redis client (already connected).
    """

    r: redis.Redis

    # -------------------- helpers --------------------

    @staticmethod
    def _k(token: str) -> str:
        return f"rt:{token}"

    @staticmethod
    def _ku(user_id: uuid.UUID | str) -> str:
        return f"rt:u:{user_id}"

    @staticmethod
    def _mapping(view: RefreshTokenView) -> dict[str, str]:
        return {
            "id": str(view.id),
            "user_id": str(view.user_id),
            "expires_at": as_utc(view.expires_at).isoformat(),
            "revoked": "1" if view.revoked else "0",
            "created_at": as_utc(view.created_at).isoformat(),
        }

    @staticmethod
    def _view(token: str, h: dict[Any, Any]) -> RefreshTokenView:
        data = {_s(k): _s(v) for k, v in h.items()}
        return RefreshTokenView(
            id=uuid.UUID(data["id"]),
            token=token,
            user_id=uuid.UUID(data["user_id"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
            revoked=data.get("revoked") == "1",
            created_at=datetime.fromisoformat(data["created_at"]),
        )

    def _user_index_deadline(self, p: Any, view: RefreshTokenView) -> datetime:
        """Latest retention deadline among the user's tokens, ``view`` included."""
        deadline = as_utc(view.expires_at) + RETENTION
        remaining = p.ttl(self._ku(view.user_id))
        if remaining is not None and int(remaining) > 0:
            deadline = max(deadline, datetime.now(UTC) + timedelta(seconds=int(remaining)))
        return deadline

    def _stage_insert(self, p: Any, view: RefreshTokenView, index_deadline: datetime) -> None:
        key = self._k(view.token)
        k_user = self._ku(view.user_id)
        p.hset(key, mapping=self._mapping(view))
        p.expireat(key, as_utc(view.expires_at) + RETENTION)
        p.sadd(k_user, view.token)
        # The index lives as long as its longest-lived member
        p.expireat(k_user, index_deadline)

    # -------------------- API ------------------------

    def save(self, token: RefreshTokenView) -> RefreshTokenView:
        key = self._k(token.token)
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(key)
                    if p.exists(key):
                        p.unwatch()
                        raise DuplicateTokenError(token.id)
                    deadline = self._user_index_deadline(p, token)
                    p.multi()
                    self._stage_insert(p, token, deadline)
                    p.execute()
                return token
            except redis.WatchError:
                continue

    def find_by_token(self, token: str) -> RefreshTokenView | None:
        h = self.r.hgetall(self._k(token))
        return self._view(token, h) if h else None

    def find_by_user_id(self, user_id: uuid.UUID) -> list[RefreshTokenView]:
        k_user = self._ku(user_id)
        tokens = [_s(m) for m in self.r.smembers(k_user)]
        if not tokens:
            return []
        with self.r.pipeline(transaction=False) as p:
            for token in tokens:
                p.hgetall(self._k(token))
            hashes = p.execute()

        views, gone = [], []
        for token, h in zip(tokens, hashes, strict=True):
            if h:
                views.append(self._view(token, h))
            else:
                gone.append(token)
        if gone:
            # Token hashes expired on their own; drop the dangling members
            self.r.srem(k_user, *gone)
        return sorted(views, key=lambda v: (v.created_at, str(v.id)))

    def find_valid_by_user_id(self, user_id: uuid.UUID, now: datetime) -> list[RefreshTokenView]:
        return [v for v in self.find_by_user_id(user_id) if v.is_valid(now)]

    def delete_by_user_id(self, user_id: uuid.UUID) -> int:
        k_user = self._ku(user_id)
        keys = [self._k(_s(m)) for m in self.r.smembers(k_user)]
        removed = int(self.r.delete(*keys)) if keys else 0
        self.r.delete(k_user)
        return removed

    def revoke(self, token: str) -> bool:
        key = self._k(token)
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(key)
                    state = p.hget(key, "revoked")
                    if state is None or _s(state) == "1":
                        p.unwatch()
                        return False
                    p.multi()
                    p.hset(key, "revoked", "1")
                    p.execute()
                return True
            except redis.WatchError:
                continue

    def revoke_all_by_user_id(self, user_id: uuid.UUID) -> int:
        return sum(1 for v in self.find_by_user_id(user_id) if not v.revoked and self.revoke(v.token))

    def rotate(
        self,
        *,
        old_token: str,
        new_token: str,
        now: datetime,
        new_expires_at: datetime,
    ) -> RotationOutcome:
        """
        Atomically revoke ``old_token`` and create ``new_token``.

        ``old_token`` and ``new_token`` are both watched, so a concurrent
        rotation or revocation between the read and ``EXEC`` forces a retry
        that then observes the revoked state.
        """
        k_old = self._k(old_token)
        k_new = self._k(new_token)

        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(k_old, k_new)

                    h = p.hgetall(k_old)
                    if not h:
                        p.unwatch()
                        return RotationOutcome(RotationResult.NOT_FOUND)
                    old = self._view(old_token, h)
                    if old.is_expired(now):
                        p.unwatch()
                        return RotationOutcome(RotationResult.EXPIRED)
                    if old.revoked:
                        p.unwatch()
                        return RotationOutcome(RotationResult.REVOKED)
                    if p.exists(k_new):
                        p.unwatch()
                        raise DuplicateTokenError()

                    fresh = RefreshTokenView(
                        id=uuid.uuid4(),
                        token=new_token,
                        user_id=old.user_id,
                        expires_at=new_expires_at,
                        revoked=False,
                        created_at=now,
                    )
                    deadline = self._user_index_deadline(p, fresh)
                    p.multi()
                    p.hset(k_old, "revoked", "1")
                    self._stage_insert(p, fresh, deadline)
                    p.execute()
                return RotationOutcome(RotationResult.OK, fresh)
            except redis.WatchError:
                # Concurrent modification detected; re-read and decide again
                continue
