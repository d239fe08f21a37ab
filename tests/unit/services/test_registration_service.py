import pytest

from authcore.repositories.user import UserRepository
from authcore.services._shared.errors import (
    ConflictError,
    EmailExistsError,
    UsernameExistsError,
    ValidationError,
    WeakPasswordError,
)
from authcore.services.registration.dto import RegistrationIn
from tests.factories.user import HASHER, UserFactory


class TestUserRegistrationService:
    """Registration: duplicate checks, password policy and stored defaults."""

    @pytest.fixture()
    def service(self, services):
        return services.registration

    @pytest.fixture()
    def urepo(self, session) -> UserRepository:
        return UserRepository(session=session)

    # -------------------------- Happy path -------------------------------- #

    def test_register_creates_enabled_user(self, service, urepo, clock):
        dto = RegistrationIn(
            username="  newuser ",
            email="  New@Example.COM ",
            password="StrongP@ssw0rd",
            first_name="New",
            last_name="User",
        )
        out = service.register(dto)

        assert out.email == "new@example.com"
        assert out.username == "newuser"
        assert out.roles == frozenset({"USER"})
        assert out.enabled is True
        assert out.created_at == clock.now
        assert not hasattr(out, "password_hash")

        stored = urepo.get_by_email("new@example.com")
        assert stored is not None and stored.id == out.id
        assert stored.password_hash != "StrongP@ssw0rd"
        assert HASHER.verify("StrongP@ssw0rd", stored.password_hash)

    def test_registered_user_can_log_in(self, service, services):
        service.register(RegistrationIn(username="logme", email="log@example.com", password="StrongP@ssw0rd"))
        out = services.sessions.authenticate("log@example.com", "StrongP@ssw0rd")
        assert out.user.username == "logme"

    # -------------------------- Conflicts --------------------------------- #

    def test_duplicate_email_any_case(self, service, session):
        UserFactory(email="taken@example.com")
        session.commit()

        with pytest.raises(EmailExistsError) as exc:
            service.register(RegistrationIn(username="other", email="TAKEN@example.com", password="x"))
        assert isinstance(exc.value, ConflictError)
        assert exc.value.code == "email_exists"

    def test_duplicate_username(self, service, session):
        UserFactory(username="taken")
        session.commit()

        with pytest.raises(UsernameExistsError):
            service.register(
                RegistrationIn(username="taken", email="fresh@example.com", password="StrongP@ssw0rd")
            )

    # -------------------------- Validation -------------------------------- #

    def test_weak_password(self, service, urepo):
        with pytest.raises(WeakPasswordError) as exc:
            service.register(RegistrationIn(username="weak", email="weak@example.com", password="password"))

        assert exc.value.reason == "Password must contain at least one uppercase letter"
        assert urepo.get_by_email("weak@example.com") is None

    @pytest.mark.parametrize(
        ("username", "email"),
        [("ok-name", "not-an-email"), ("ok-name", "a@b"), ("ab", "short@example.com")],
    )
    def test_malformed_input(self, service, urepo, username, email):
        with pytest.raises(ValidationError):
            service.register(RegistrationIn(username=username, email=email, password="StrongP@ssw0rd"))
        assert urepo.exists_by_username(username) is False
