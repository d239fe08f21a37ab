"""
authcore.services._shared.ports
===============================

Ports (hexagonal interfaces) the service layer depends on.

Modules
-------
- :mod:`token_codec`:
    :class:`~.TokenCodec` mints and verifies access tokens; :class:`~.Claims`
    is the verified payload.

- :mod:`refresh_token_store`:
    :class:`~.RefreshTokenStore`, :class:`~.RotationResult`,
    :class:`~.RotationOutcome` and :class:`~.RefreshTokenView`, plus the
    process-local :class:`~.InMemoryRefreshTokenStore`.

Concrete SQL and Redis adapters live under ``authcore.infra``.
"""

from __future__ import annotations

from .refresh_token_store import (
    DuplicateTokenError,
    InMemoryRefreshTokenStore,
    RefreshTokenStore,
    RefreshTokenView,
    RotationOutcome,
    RotationResult,
)
from .token_codec import Claims, TokenCodec

__all__ = [
    "Claims",
    "TokenCodec",
    "DuplicateTokenError",
    "RefreshTokenStore",
    "RefreshTokenView",
    "RotationOutcome",
    "RotationResult",
    "InMemoryRefreshTokenStore",
]
