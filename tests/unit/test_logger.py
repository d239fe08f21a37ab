import io
import json
import logging

import pytest

from authcore.core.logger import (
    JSONFormatter,
    RequestIdFilter,
    bind_request_id,
    configure_logging,
    current_request_id,
    ensure_request_id,
)


@pytest.fixture()
def restore_root():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("authcore.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_configure_logging_sets_level(restore_root):
    configure_logging("DEBUG")
    assert restore_root.level == logging.DEBUG
    assert len(restore_root.handlers) == 1
    assert isinstance(restore_root.handlers[0].formatter, JSONFormatter)


def test_json_formatter_promotes_extras():
    payload = json.loads(JSONFormatter().format(_record(event="auth.login", user_id="u-1", request_id="r-1")))

    assert payload["message"] == "hello world"
    assert payload["level"] == "INFO"
    assert payload["event"] == "auth.login"
    assert payload["user_id"] == "u-1"
    assert payload["request_id"] == "r-1"
    assert "reason" not in payload


def test_request_id_from_header(app):
    with app.test_request_context(headers={"X-Correlation-ID": "corr-42"}):
        assert ensure_request_id() == "corr-42"
        record = _record()
        RequestIdFilter().filter(record)
        assert record.request_id == "corr-42"


def test_request_id_generated_once_per_request(app):
    with app.test_request_context():
        first = ensure_request_id()
        assert ensure_request_id() == first


def test_request_id_outside_request_is_fresh():
    assert ensure_request_id() != ensure_request_id()
    record = _record()
    RequestIdFilter().filter(record)
    assert record.request_id is None


def test_bound_request_id_outside_request():
    with bind_request_id("cli-7") as rid:
        assert rid == "cli-7"
        assert ensure_request_id() == "cli-7"
        record = _record()
        RequestIdFilter().filter(record)
        assert record.request_id == "cli-7"
    assert current_request_id() is None


def test_configure_logging_writes_json(restore_root):
    stream = io.StringIO()
    configure_logging("INFO", stream=stream)

    with bind_request_id("job-1"):
        logging.getLogger("authcore.test").info("done", extra={"event": "job.done"})

    payload = json.loads(stream.getvalue().splitlines()[-1])
    assert payload["event"] == "job.done"
    assert payload["request_id"] == "job-1"
