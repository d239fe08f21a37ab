"""Password hashing and strength policy.

Hashing delegates to :mod:`werkzeug.security`; the output embeds the method,
a random per-call salt and the digest (``method$salt$hash``), so a stored
value is self-describing and verification needs no extra state.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import cached_property

from werkzeug.security import check_password_hash, generate_password_hash

MIN_LENGTH = 8
MAX_LENGTH = 128
SYMBOLS = "!@#$%^&*()_+-=[]{};':\"\\|,.<>/?"

_UPPER = re.compile(r"[A-Z]")
_LOWER = re.compile(r"[a-z]")
_DIGIT = re.compile(r"[0-9]")


class PasswordHasher:
    """
    One-way salted password hashing.

    :param method: Werkzeug method string, e.g. ``"scrypt"`` or
        ``"pbkdf2:sha256:600000"``.
    """

    def __init__(self, method: str = "scrypt") -> None:
        self.method = method

    def hash(self, plaintext: str) -> str:
        return generate_password_hash(plaintext, method=self.method)

    def verify(self, plaintext: str, hashed: str | None) -> bool:
        """
        Check ``plaintext`` against a stored hash in constant time.

        An empty or malformed hash never matches.
        """
        if not hashed:
            return False
        try:
            return bool(check_password_hash(hashed, plaintext))
        except ValueError:
            # Unknown or malformed method segment
            return False

    @cached_property
    def _dummy_hash(self) -> str:
        return self.hash("authcore-timing-dummy")

    def dummy_verify(self, plaintext: str) -> None:
        """
        Spend one verification on a fixed hash.

        Called when no user matches so that an unknown email costs the same
        work as a wrong password.
        """
        self.verify(plaintext, self._dummy_hash)


@dataclass(frozen=True, slots=True)
class ValidationResult:
    ok: bool
    reason: str


class PasswordPolicy:
    """
    Pure strength validator.

    Rules are checked in order and the first failure is reported:
    non-empty, at least 8 and at most 128 characters, one ASCII uppercase
    letter, one ASCII lowercase letter, one digit, one symbol from
    :data:`SYMBOLS`.
    """

    def validate(self, plaintext: str | None) -> ValidationResult:
        if not plaintext:
            return ValidationResult(False, "Password cannot be empty")
        if len(plaintext) < MIN_LENGTH:
            return ValidationResult(False, f"Password must be at least {MIN_LENGTH} characters long")
        if len(plaintext) > MAX_LENGTH:
            return ValidationResult(False, f"Password cannot exceed {MAX_LENGTH} characters")
        if not _UPPER.search(plaintext):
            return ValidationResult(False, "Password must contain at least one uppercase letter")
        if not _LOWER.search(plaintext):
            return ValidationResult(False, "Password must contain at least one lowercase letter")
        if not _DIGIT.search(plaintext):
            return ValidationResult(False, "Password must contain at least one digit")
        if not any(ch in SYMBOLS for ch in plaintext):
            return ValidationResult(False, "Password must contain at least one special character")
        return ValidationResult(True, "Password meets all requirements")
