from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol


@dataclass(frozen=True, slots=True)
class Claims:
    """
    Verified content of an access token.

    :ivar user_id: Subject (``sub``) as a UUID.
    :ivar email: Email at issue time.
    :ivar roles: Role labels at issue time.
    :ivar issuer: ``iss`` claim.
    :ivar issued_at: ``iat`` claim (UTC).
    :ivar expires_at: ``exp`` claim (UTC).
    """

    user_id: uuid.UUID
    email: str
    roles: frozenset[str]
    issuer: str
    issued_at: datetime
    expires_at: datetime

    def has_role(self, role: str) -> bool:
        return role in self.roles


class TokenCodec(Protocol):
    """Port for minting and verifying signed access tokens."""

    @property
    def access_ttl(self) -> timedelta: ...

    @property
    def expires_in_seconds(self) -> int: ...

    def encode(
        self,
        *,
        user_id: uuid.UUID,
        email: str,
        roles: Iterable[str],
        ttl: timedelta | None = None,
    ) -> str:
        """Return a signed token for the given identity."""

    def decode(self, token: str) -> Claims:
        """
        Verify and decode ``token``.

        :raises TokenInvalidError: Bad signature, malformed, wrong issuer or missing claims.
        :raises TokenExpiredError: Past ``exp``.
        """
