# authcore/infra/jwt/token_codec.py
from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from authcore.services._shared.errors import TokenExpiredError, TokenInvalidError
from authcore.services._shared.ports import Claims, TokenCodec

ALGORITHM = "HS256"
REQUIRED_CLAIMS = ("exp", "iat", "sub", "iss")


def _utcnow() -> datetime:
    return datetime.now(UTC)


class JWTTokenCodec(TokenCodec):
    """
    HS256 access tokens via PyJWT.

    Payload: ``sub`` (user id), ``email``, ``roles`` (sorted, comma-joined),
    ``iss``, ``iat`` and ``exp``.

    .. note::
       ``clock`` stamps ``iat``/``exp`` when encoding and is the reference for
       expiry when decoding, with no leeway. PyJWT verifies the signature,
       ``iss`` and the presence of the required claims only.

    :param secret: Signing key; must not be empty.
    :param issuer: Written to and required in ``iss``.
    :param access_ttl: Default lifetime; must be positive.
    """

    def __init__(
        self,
        *,
        secret: str,
        issuer: str,
        access_ttl: timedelta,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret:
            raise ValueError("Token signing secret must not be empty.")
        if access_ttl <= timedelta(0):
            raise ValueError("Access token TTL must be positive.")
        self._secret = secret
        self._issuer = issuer
        self._access_ttl = access_ttl
        self._clock = clock

    @property
    def access_ttl(self) -> timedelta:
        return self._access_ttl

    @property
    def expires_in_seconds(self) -> int:
        return int(self._access_ttl.total_seconds())

    def encode(
        self,
        *,
        user_id: uuid.UUID,
        email: str,
        roles: Iterable[str],
        ttl: timedelta | None = None,
    ) -> str:
        now = self._clock()
        payload: dict[str, Any] = {
            "sub": str(user_id),
            "email": email,
            "roles": ",".join(sorted(set(roles))),
            "iss": self._issuer,
            "iat": now,
            "exp": now + (self._access_ttl if ttl is None else ttl),
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def decode(self, token: str) -> Claims:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                issuer=self._issuer,
                options={
                    "require": list(REQUIRED_CLAIMS),
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidTokenError as exc:
            raise TokenInvalidError(f"Access token is invalid: {exc}") from exc

        email = payload.get("email")
        roles = payload.get("roles")
        if not isinstance(email, str) or not isinstance(roles, str):
            raise TokenInvalidError("Access token is missing identity claims")
        try:
            user_id = uuid.UUID(str(payload["sub"]))
        except ValueError as exc:
            raise TokenInvalidError("Access token subject is not a user id") from exc
        try:
            issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=UTC)
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=UTC)
        except (TypeError, ValueError) as exc:
            raise TokenInvalidError("Access token timestamps are malformed") from exc
        if self._clock() >= expires_at:
            raise TokenExpiredError("Access token has expired")

        return Claims(
            user_id=user_id,
            email=email,
            roles=frozenset(r for r in roles.split(",") if r),
            issuer=str(payload["iss"]),
            issued_at=issued_at,
            expires_at=expires_at,
        )
