"""
Domain-level exceptions used within the service layer.

These exceptions are framework-agnostic: they never depend on Flask or HTTP.
Every error carries a stable snake_case ``code`` that the delivery layer can
map to a status code and a problem document.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError


def violates(exc: IntegrityError, constraint_name: str) -> bool:
    """
    Check whether an IntegrityError originates from a specific constraint.

    PostgreSQL reports the constraint name; SQLite reports the columns
    (``UNIQUE constraint failed: users.email``), so both forms are accepted
    for ``uq_<table>_<column>`` names.

    Parameters
    ----------
    exc : IntegrityError
        The exception raised by SQLAlchemy during flush/commit.
    constraint_name : str
        The name of the database constraint to match (e.g. ``uq_users_email``).

    Returns
    -------
    bool
        True if the IntegrityError matches the given constraint.
    """
    message = str(exc.orig).lower() if exc.orig else ""
    name = constraint_name.lower()
    if name in message:
        return True
    for table in ("users", "refresh_tokens"):
        prefix = f"uq_{table}_"
        if name.startswith(prefix):
            return f"{table}.{name[len(prefix):]}" in message
    return False


# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - ``code`` is stable and safe to expose to clients.
    """

    code = "service_error"


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found in the repository.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param key: Identifier or search key.
    :type key: object
    """

    entity: str
    key: object

    code = "not_found"

    def __str__(self) -> str:
        return f"{self.entity} not found: {self.key}"


@dataclass(slots=True)
class ConflictError(ServiceError):
    """
    Raised when a unique constraint or business rule conflict occurs.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param detail: Short human-readable explanation.
    :type detail: str
    """

    entity: str
    detail: str

    code = "conflict"

    def __str__(self) -> str:
        return f"Conflict on {self.entity}: {self.detail}"


class ValidationError(ServiceError):
    """Input has the wrong shape (e.g. malformed email, unknown role)."""

    code = "validation_error"


class StorageUnavailableError(ServiceError):
    """The backing store could not be reached."""

    code = "storage_unavailable"

    def __init__(self, message: str = "Storage backend unavailable") -> None:
        super().__init__(message)


# --------------------------------------------------------------------------- #
# Credentials and accounts
# --------------------------------------------------------------------------- #


class InvalidCredentialsError(ServiceError):
    """
    Unknown email or wrong password.

    The message is identical for both cases.
    """

    code = "invalid_credentials"

    def __init__(self, message: str = "Invalid email or password") -> None:
        super().__init__(message)


class AccountDisabledError(ServiceError):
    code = "account_disabled"

    def __init__(self, message: str = "Account is disabled") -> None:
        super().__init__(message)


class InvalidPasswordError(ServiceError):
    """The current password supplied for a password change is wrong."""

    code = "invalid_password"

    def __init__(self, message: str = "Current password is incorrect") -> None:
        super().__init__(message)


class WeakPasswordError(ServiceError):
    """
    Password rejected by the policy.

    :param reason: The first unmet requirement.
    """

    code = "weak_password"

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class EmailExistsError(ConflictError):
    code = "email_exists"

    def __init__(self, email: str) -> None:
        ConflictError.__init__(self, "User", f"email already registered: {email}")


class UsernameExistsError(ConflictError):
    code = "username_exists"

    def __init__(self, username: str) -> None:
        ConflictError.__init__(self, "User", f"username already taken: {username}")


# --------------------------------------------------------------------------- #
# Tokens
# --------------------------------------------------------------------------- #


class TokenError(ServiceError):
    """Base class for access and refresh token failures."""

    code = "token_error"


class TokenNotFoundError(TokenError):
    code = "token_not_found"

    def __init__(self, message: str = "Refresh token not found") -> None:
        super().__init__(message)


class TokenExpiredError(TokenError):
    code = "token_expired"

    def __init__(self, message: str = "Token has expired") -> None:
        super().__init__(message)


class TokenRevokedError(TokenError):
    code = "token_revoked"

    def __init__(self, message: str = "Refresh token has been revoked") -> None:
        super().__init__(message)


class TokenInvalidError(TokenError):
    """Bad signature, malformed token, wrong issuer or missing claims."""

    code = "token_invalid"

    def __init__(self, message: str = "Token is invalid") -> None:
        super().__init__(message)
