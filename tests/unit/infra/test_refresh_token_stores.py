"""
Contract tests shared by every RefreshTokenStore backend.

Backends: in-memory, SQL (transactional SQLite session) and Redis via
fakeredis. Each case runs once per backend.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import fakeredis
import pytest

from authcore.infra.redis.redis_refresh_token_store import RedisRefreshTokenStore
from authcore.infra.sql.sql_refresh_token_store import SQLRefreshTokenStore
from authcore.services._shared.ports import (
    DuplicateTokenError,
    InMemoryRefreshTokenStore,
    RefreshTokenView,
    RotationResult,
)
from tests.factories.user import UserFactory


def _now() -> datetime:
    return datetime.now(UTC)


@pytest.fixture(params=["memory", "sql", "redis"])
def store(request):
    if request.param == "memory":
        return InMemoryRefreshTokenStore()
    if request.param == "sql":
        return SQLRefreshTokenStore()
    return RedisRefreshTokenStore(r=fakeredis.FakeRedis())


@pytest.fixture()
def user_id(session) -> uuid.UUID:
    """Persisted owner (the SQL backend enforces the foreign key)."""
    user = UserFactory()
    session.commit()
    return user.id


def _view(user_id: uuid.UUID, token: str, *, expires_in: timedelta = timedelta(days=7), revoked=False):
    now = _now()
    return RefreshTokenView(
        id=uuid.uuid4(),
        token=token,
        user_id=user_id,
        expires_at=now + expires_in,
        revoked=revoked,
        created_at=now,
    )


class TestSaveAndFind:
    def test_save_then_find_by_token(self, store, user_id):
        view = _view(user_id, "tok-1")
        store.save(view)

        found = store.find_by_token("tok-1")

        assert found is not None
        assert found.id == view.id
        assert found.user_id == user_id
        assert found.revoked is False
        assert abs(found.expires_at - view.expires_at) < timedelta(seconds=1)

    def test_unknown_token(self, store, user_id):
        assert store.find_by_token("missing") is None

    def test_duplicate_token_rejected(self, store, user_id):
        store.save(_view(user_id, "tok-dup"))
        with pytest.raises(DuplicateTokenError):
            store.save(_view(user_id, "tok-dup"))

    def test_find_by_user_and_valid_filter(self, store, user_id):
        store.save(_view(user_id, "a"))
        store.save(_view(user_id, "b", revoked=True))
        store.save(_view(user_id, "c", expires_in=timedelta(seconds=-5)))

        assert {v.token for v in store.find_by_user_id(user_id)} == {"a", "b", "c"}
        assert [v.token for v in store.find_valid_by_user_id(user_id, _now())] == ["a"]

    def test_delete_by_user_id(self, store, user_id):
        store.save(_view(user_id, "d1"))
        store.save(_view(user_id, "d2"))

        assert store.delete_by_user_id(user_id) == 2
        assert store.find_by_user_id(user_id) == []
        assert store.find_by_token("d1") is None


class TestRevoke:
    def test_revoke_once(self, store, user_id):
        store.save(_view(user_id, "r1"))

        assert store.revoke("r1") is True
        assert store.revoke("r1") is False
        assert store.find_by_token("r1").revoked is True

    def test_revoke_unknown_is_noop(self, store, user_id):
        assert store.revoke("nope") is False

    def test_revoke_all_counts_changes_and_isolates_users(self, store, user_id, session):
        other = UserFactory()
        session.commit()
        store.save(_view(user_id, "u1"))
        store.save(_view(user_id, "u2"))
        store.save(_view(user_id, "u3", revoked=True))
        store.save(_view(other.id, "o1"))

        assert store.revoke_all_by_user_id(user_id) == 2
        assert store.find_valid_by_user_id(user_id, _now()) == []
        assert [v.token for v in store.find_valid_by_user_id(other.id, _now())] == ["o1"]


class TestRotate:
    def test_rotate_ok(self, store, user_id):
        store.save(_view(user_id, "old"))
        now = _now()

        outcome = store.rotate(
            old_token="old", new_token="new", now=now, new_expires_at=now + timedelta(days=7)
        )

        assert outcome.result is RotationResult.OK
        assert outcome.token.token == "new"
        assert outcome.token.user_id == user_id
        assert store.find_by_token("old").revoked is True
        assert store.find_by_token("new").revoked is False

    def test_rotate_twice_second_is_revoked(self, store, user_id):
        store.save(_view(user_id, "once"))
        now = _now()
        exp = now + timedelta(days=7)

        first = store.rotate(old_token="once", new_token="n1", now=now, new_expires_at=exp)
        second = store.rotate(old_token="once", new_token="n2", now=now, new_expires_at=exp)

        assert first.result is RotationResult.OK
        assert second.result is RotationResult.REVOKED
        assert second.token is None
        assert store.find_by_token("n2") is None

    def test_rotate_unknown(self, store, user_id):
        now = _now()
        outcome = store.rotate(old_token="ghost", new_token="x", now=now, new_expires_at=now)
        assert outcome.result is RotationResult.NOT_FOUND

    def test_rotate_expired_wins_over_revoked(self, store, user_id):
        store.save(_view(user_id, "stale", expires_in=timedelta(seconds=-1), revoked=True))
        now = _now()
        outcome = store.rotate(
            old_token="stale", new_token="x", now=now, new_expires_at=now + timedelta(days=1)
        )
        assert outcome.result is RotationResult.EXPIRED

    def test_rotate_at_exact_expiry_is_expired(self, store, user_id):
        view = _view(user_id, "edge")
        store.save(view)
        outcome = store.rotate(
            old_token="edge",
            new_token="x",
            now=view.expires_at,
            new_expires_at=view.expires_at + timedelta(days=1),
        )
        assert outcome.result is RotationResult.EXPIRED

    def test_rotate_collision_leaves_old_token_usable(self, store, user_id):
        store.save(_view(user_id, "keep"))
        store.save(_view(user_id, "taken"))
        now = _now()

        with pytest.raises(DuplicateTokenError):
            store.rotate(
                old_token="keep", new_token="taken", now=now, new_expires_at=now + timedelta(days=1)
            )

        assert store.find_by_token("keep").revoked is False
