from __future__ import annotations

import uuid

import pytest

from authcore.services._shared.base import ServiceContext
from authcore.services._shared.errors import (
    InvalidCredentialsError,
    InvalidPasswordError,
    NotFoundError,
    TokenInvalidError,
    TokenRevokedError,
    ValidationError,
    WeakPasswordError,
)
from tests.factories.user import DEFAULT_PASSWORD, UserFactory


class TestAccountService:
    """Self-service profile operations and administrative management."""

    @pytest.fixture()
    def accounts(self, services):
        return services.accounts

    @pytest.fixture()
    def user(self, session):
        u = UserFactory(email="grace@example.com", first_name=None, last_name=None)
        session.commit()
        return u

    @pytest.fixture()
    def login(self, services, user):
        return services.sessions.authenticate("grace@example.com", DEFAULT_PASSWORD)

    @pytest.fixture()
    def ctx(self, services, login) -> ServiceContext:
        return services.sessions.context_for(login.access_token)

    # ------------------------------ Queries ------------------------------- #

    def test_get_user(self, accounts, user):
        view = accounts.get_user(user.id)
        assert view.email == "grace@example.com"

    def test_get_unknown_user(self, accounts):
        with pytest.raises(NotFoundError) as exc:
            accounts.get_user(uuid.uuid4())
        assert exc.value.code == "not_found"

    def test_current_user(self, accounts, ctx, user):
        assert accounts.current_user(ctx).id == user.id

    def test_anonymous_context(self, accounts):
        with pytest.raises(TokenInvalidError):
            accounts.current_user(ServiceContext())

    def test_list_users_paginates(self, accounts, session):
        for name in ("carol", "alice", "bob"):
            UserFactory(username=name, email=f"{name}@example.com")
        session.commit()

        first = accounts.list_users(page=1, limit=2, sort=["email"])
        second = accounts.list_users(page=2, limit=2, sort=["email"])

        assert first.total == 3
        assert [u.username for u in first.items] == ["alice", "bob"]
        assert [u.username for u in second.items] == ["carol"]

    def test_list_users_descending_and_clamped(self, accounts, session):
        for name in ("alice", "bob"):
            UserFactory(username=name, email=f"{name}@example.com")
        session.commit()

        page = accounts.list_users(limit=1000, sort=["-email"])

        assert page.limit == 100
        assert [u.username for u in page.items] == ["bob", "alice"]

    # ---------------------------- Self-service ---------------------------- #

    def test_update_profile(self, accounts, ctx, clock):
        clock.advance(minutes=1)
        view = accounts.update_profile(ctx, first_name="  Grace ", last_name="   ")

        assert view.first_name == "Grace"
        assert view.last_name is None
        assert view.updated_at == clock.now

    def test_update_profile_too_long(self, accounts, ctx):
        with pytest.raises(ValidationError):
            accounts.update_profile(ctx, first_name="x" * 101, last_name=None)

    def test_change_password(self, accounts, ctx, services):
        accounts.change_password(ctx, current_password=DEFAULT_PASSWORD, new_password="N3w!Passw0rd")

        with pytest.raises(InvalidCredentialsError):
            services.sessions.authenticate("grace@example.com", DEFAULT_PASSWORD)
        assert services.sessions.authenticate("grace@example.com", "N3w!Passw0rd")

    def test_change_password_keeps_sessions(self, accounts, ctx, services, login):
        accounts.change_password(ctx, current_password=DEFAULT_PASSWORD, new_password="N3w!Passw0rd")
        assert services.sessions.refresh(login.refresh_token)

    def test_change_password_wrong_current(self, accounts, ctx):
        with pytest.raises(InvalidPasswordError):
            accounts.change_password(ctx, current_password="Wr0ng!pass", new_password="N3w!Passw0rd")

    def test_change_password_weak(self, accounts, ctx):
        with pytest.raises(WeakPasswordError):
            accounts.change_password(ctx, current_password=DEFAULT_PASSWORD, new_password="short")

    # --------------------------- Administration --------------------------- #

    def test_disable_revokes_and_blocks_login(self, accounts, services, user, login):
        view = accounts.disable_user(user.id)

        assert view.enabled is False
        with pytest.raises(TokenRevokedError):
            services.sessions.refresh(login.refresh_token)

        accounts.enable_user(user.id)
        assert services.sessions.authenticate("grace@example.com", DEFAULT_PASSWORD)

    def test_update_roles_revokes_sessions(self, accounts, services, user, login):
        view = accounts.update_roles(user.id, ["admin", "USER"])

        assert view.roles == frozenset({"ADMIN", "USER"})
        with pytest.raises(TokenRevokedError):
            services.sessions.refresh(login.refresh_token)
        fresh = services.sessions.authenticate("grace@example.com", DEFAULT_PASSWORD)
        assert services.sessions.validate_access_token(fresh.access_token).has_role("ADMIN")

    @pytest.mark.parametrize("roles", [[], ["ROOT"]])
    def test_update_roles_invalid(self, accounts, user, roles):
        with pytest.raises(ValidationError):
            accounts.update_roles(user.id, roles)
        assert accounts.get_user(user.id).roles == frozenset({"USER"})

    def test_admin_calls_on_unknown_user(self, accounts):
        missing = uuid.uuid4()
        for call in (accounts.enable_user, accounts.disable_user, accounts.delete_user):
            with pytest.raises(NotFoundError):
                call(missing)

    def test_delete_user_purges_tokens(self, accounts, services, user, login):
        user_id = user.id

        accounts.delete_user(user_id)

        with pytest.raises(NotFoundError):
            accounts.get_user(user_id)
        assert services.tokens.tokens_for(user_id) == []
        assert services.store.find_by_token(login.refresh_token) is None
