"""JSON logging for auth events, correlated by request id.

Every record carries a ``request_id``. Inside a Flask request it comes from
the ``X-Request-ID``/``X-Correlation-ID`` header (or is generated once per
request). Outside a request, e.g. in CLI commands, it comes from
:func:`bind_request_id`.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import IO, Any
from uuid import uuid4

from flask import Flask, g, has_request_context, request

REQUEST_ID_HEADER = "X-Request-ID"
CORRELATION_HEADERS = ("X-Request-ID", "X-Correlation-ID")

#: ``extra=`` keys written as top-level JSON fields.
EXTRA_KEYS = ("event", "user_id", "reason", "backend")

_bound_request_id: ContextVar[str | None] = ContextVar("authcore_request_id", default=None)


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record.

    Fields: ``time``, ``level``, ``name``, ``message``, ``request_id``, the
    auth extras in :data:`EXTRA_KEYS` when present, and ``exc_info``.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": datetime.now(UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        payload.update({key: getattr(record, key) for key in EXTRA_KEYS if hasattr(record, key)})
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class RequestIdFilter(logging.Filter):
    """Stamp ``request_id`` on records that do not carry one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = current_request_id()
        return True


def current_request_id() -> str | None:
    """Return the id of the current request or bound scope, without creating one."""
    if has_request_context():
        return ensure_request_id()
    return _bound_request_id.get()


def ensure_request_id() -> str:
    """
    Return the current correlation id, creating one when necessary.

    In a request the id is cached on ``g``. Outside a request the bound id is
    returned, or a fresh one that is not remembered.
    """
    if has_request_context():
        cached = getattr(g, "request_id", None)
        if cached:
            return cached
        incoming = next((request.headers[h] for h in CORRELATION_HEADERS if request.headers.get(h)), None)
        g.request_id = incoming or str(uuid4())
        return g.request_id
    return _bound_request_id.get() or str(uuid4())


@contextmanager
def bind_request_id(request_id: str | None = None) -> Iterator[str]:
    """Bind a correlation id for code running outside a Flask request."""
    value = request_id or str(uuid4())
    token = _bound_request_id.set(value)
    try:
        yield value
    finally:
        _bound_request_id.reset(token)


def configure_logging(level: str | int = "INFO", *, stream: IO[str] | None = None) -> None:
    """Replace the root handlers with a single JSON handler."""
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(RequestIdFilter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper() if isinstance(level, str) else level)


def init_app(app: Flask) -> None:
    """Stamp request ids on the app logger and echo them in responses."""
    app.logger.addFilter(RequestIdFilter())

    @app.before_request
    def _seed_request_id() -> None:  # pragma: no cover - integration glue
        ensure_request_id()

    @app.after_request
    def _inject_response_header(response):  # pragma: no cover - integration glue
        response.headers.setdefault(REQUEST_ID_HEADER, ensure_request_id())
        return response


__all__ = [
    "JSONFormatter",
    "RequestIdFilter",
    "bind_request_id",
    "configure_logging",
    "current_request_id",
    "ensure_request_id",
    "init_app",
]
