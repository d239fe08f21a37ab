# authcore/services/accounts/dto.py
from __future__ import annotations

from dataclasses import dataclass

from authcore.services._shared.dto import UserView


@dataclass(frozen=True, slots=True)
class UserPage:
    """
    One page of users.

    :param items: Users on this page.
    :param total: Total number of users.
    :param page: 1-based page number.
    :param limit: Page size.
    """

    items: list[UserView]
    total: int
    page: int
    limit: int
