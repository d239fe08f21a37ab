# authcore/services/_shared/base.py
from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from sqlalchemy.exc import InterfaceError, OperationalError

from authcore.repositories.base import Pagination
from authcore.services._shared.errors import StorageUnavailableError
from authcore.services._shared.ports import Claims
from authcore.uow.sqlalchemy_uow import (
    SQLAlchemyReadOnlyUnitOfWork,
    SQLAlchemyUnitOfWork,
)

#: Infrastructure failures that mean "the store is unreachable".
STORAGE_ERRORS: tuple[type[BaseException], ...] = (
    OperationalError,
    InterfaceError,
    RedisConnectionError,
    RedisTimeoutError,
)


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class ServiceContext:
    """
    Request-scoped data passed explicitly to services.

    Built by :meth:`SessionService.context_for` from a verified access token.

    :param claims: Verified access-token claims, ``None`` when anonymous.
    :param request_id: Correlation id for logging/tracing.
    """

    claims: Claims | None = None
    request_id: str | None = None

    @property
    def actor_id(self) -> uuid.UUID | None:
        return self.claims.user_id if self.claims is not None else None

    def has_role(self, role: str) -> bool:
        return self.claims is not None and self.claims.has_role(role)


class BaseService:
    """
    Base class for application services.

    Responsibilities
    ----------------
    * Provide helpers to run read-only and read-write units of work.
    * Translate infrastructure outages into :class:`StorageUnavailableError`.
    * Own the clock, so timestamps come from one injectable source.

    Notes
    -----
    - Services never touch the global session directly; they use a Unit of Work.
    - Only storage outages are translated; everything else propagates.
    """

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        """
        :param clock: Returns the current UTC instant. Defaults to the system clock.
        :type clock: Callable[[], datetime] | None
        """
        self._clock = clock or utcnow

    def now_utc(self) -> datetime:
        return self._clock()

    # -------------------------- UoW helpers ---------------------------------

    def rw_uow(self) -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork()

    def ro_uow(self, *, enforce_db_readonly: bool = True) -> SQLAlchemyReadOnlyUnitOfWork:
        """
        Create a read-only Unit of Work.

        :param enforce_db_readonly: Apply ``SET TRANSACTION READ ONLY`` when supported.
        :type enforce_db_readonly: bool
        """
        return SQLAlchemyReadOnlyUnitOfWork(enforce_db_readonly=enforce_db_readonly)

    # -------------------------- Error handling ------------------------------

    @contextmanager
    def storage_guard(self) -> Iterator[None]:
        """
        Re-raise store outages as :class:`StorageUnavailableError`.

        :raises StorageUnavailableError: On SQLAlchemy ``OperationalError``/
            ``InterfaceError`` or Redis connection/timeout errors.
        """
        try:
            yield
        except STORAGE_ERRORS as exc:
            raise StorageUnavailableError() from exc

    # ----------------------- Validation utilities ---------------------------

    def ensure_pagination(
        self, *, page: int, limit: int, sort: Iterable[str] | None = None
    ) -> Pagination:
        """
        Build a Pagination value object with basic clamping.

        :param page: 1-based page number.
        :param limit: Page size, clamped to 1..100.
        :param sort: Sort tokens like ``["-created_at", "email"]``.
        """
        page = max(1, int(page))
        limit = min(max(1, int(limit)), 100)
        return Pagination(page=page, limit=limit, sort=list(sort or []))
