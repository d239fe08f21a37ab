"""Service layer public API.

Callers can import the services and their DTOs from :mod:`authcore.services`
without knowing the internal layout.

Re-exports
----------
- Base primitives: :class:`BaseService`, :class:`ServiceContext`
- Shared DTOs: :class:`UserView`
- :class:`SessionService` with :class:`SessionOut`
- :class:`RefreshTokenManager` with :class:`RotatedToken`
- :class:`UserRegistrationService` with :class:`RegistrationIn`
- :class:`AccountService` with :class:`UserPage`
"""

from __future__ import annotations

from ._shared.base import BaseService, ServiceContext
from ._shared.dto import UserView
from .accounts.dto import UserPage
from .accounts.service import AccountService
from .registration.dto import RegistrationIn
from .registration.service import UserRegistrationService
from .sessions.dto import SessionOut
from .sessions.service import SessionService
from .tokens.manager import RefreshTokenManager, RotatedToken

__all__ = [
    # Base
    "BaseService",
    "ServiceContext",
    "UserView",
    # Sessions
    "SessionService",
    "SessionOut",
    # Tokens
    "RefreshTokenManager",
    "RotatedToken",
    # Registration
    "UserRegistrationService",
    "RegistrationIn",
    # Accounts
    "AccountService",
    "UserPage",
]
