from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RegistrationIn:
    """
    Input DTO for user registration.

    :param username: Desired public handle (3..50 chars after trimming).
    :param email: Email address; normalized before storage.
    :param password: Raw password; checked against the policy, then hashed.
    :param first_name: Optional given name.
    :param last_name: Optional family name.
    """

    username: str
    email: str
    password: str
    first_name: str | None = None
    last_name: str | None = None
