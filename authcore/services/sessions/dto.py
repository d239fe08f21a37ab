# authcore/services/sessions/dto.py
from __future__ import annotations

from dataclasses import dataclass

from authcore.services._shared.dto import UserView


@dataclass(frozen=True, slots=True)
class SessionOut:
    """
    Result of a successful authentication or refresh.

    :param access_token: Signed short-lived token.
    :param refresh_token: Opaque single-use token.
    :param expires_in_seconds: Access-token lifetime in whole seconds.
    :param user: The authenticated user.
    :param token_type: Always ``"Bearer"``.
    """

    access_token: str
    refresh_token: str
    expires_in_seconds: int
    user: UserView
    token_type: str = "Bearer"
