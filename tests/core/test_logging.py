from __future__ import annotations

import json
import logging
import sys

from credhub.core.logging import (
    _ContainerFormatter,
    _JsonFormatter,
    _RequestContextFilter,
    request_id_var,
    setup_logging,
)


def test_setup_logging_sets_root_level() -> None:
    setup_logging("debug")
    assert logging.getLogger().level == logging.DEBUG

    setup_logging("warning")
    assert logging.getLogger().level == logging.WARNING


def test_setup_logging_defaults_to_info_for_unknown_level() -> None:
    setup_logging("nonexistent")
    assert logging.getLogger().level == logging.INFO


def test_setup_logging_quiets_uvicorn_at_debug() -> None:
    setup_logging("debug")
    assert logging.getLogger("uvicorn").level == logging.WARNING


def test_setup_logging_allows_uvicorn_at_error() -> None:
    setup_logging("error")
    assert logging.getLogger("uvicorn").level == logging.ERROR


def test_formatter_excludes_location_for_info() -> None:
    fmt = _ContainerFormatter()
    record = logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="test.py",
        lineno=1,
        msg="hello",
        args=(),
        exc_info=None,
    )
    output = fmt.format(record)
    assert "hello" in output
    assert "[test.py:" not in output


def test_formatter_includes_location_for_warning() -> None:
    fmt = _ContainerFormatter()
    record = logging.LogRecord(
        name="test",
        level=logging.WARNING,
        pathname="test.py",
        lineno=42,
        msg="bad thing",
        args=(),
        exc_info=None,
    )
    output = fmt.format(record)
    assert "bad thing" in output
    assert "[test.py:42]" in output


def test_formatter_includes_location_for_error() -> None:
    fmt = _ContainerFormatter()
    record = logging.LogRecord(
        name="test",
        level=logging.ERROR,
        pathname="svc.py",
        lineno=99,
        msg="broke",
        args=(),
        exc_info=None,
    )
    output = fmt.format(record)
    assert "[svc.py:99]" in output


# ---- JSON output ----


def _record(msg: str = "hello", level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord(
        name="credhub.test",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


def test_json_formatter_produces_valid_json() -> None:
    parsed = json.loads(_JsonFormatter().format(_record("Check-in accepted")))
    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "credhub.test"
    assert parsed["message"] == "Check-in accepted"
    assert "timestamp" in parsed


def test_json_formatter_lifts_pipeline_fields() -> None:
    record = _record()
    record.request_id = "abc-123"  # type: ignore[attr-defined]
    record.event_id = "evt-1"  # type: ignore[attr-defined]
    record.certificate_number = "EDUC-1-ABCDEFGHJ"  # type: ignore[attr-defined]
    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["request_id"] == "abc-123"
    assert parsed["event_id"] == "evt-1"
    assert parsed["certificate_number"] == "EDUC-1-ABCDEFGHJ"


def test_json_formatter_ignores_unlisted_extras() -> None:
    record = _record()
    record.qr_code = "secret-scan-token"  # type: ignore[attr-defined]
    assert "secret-scan-token" not in _JsonFormatter().format(record)


def test_json_formatter_includes_exception_info() -> None:
    try:
        raise ValueError("test error")
    except ValueError:
        record = logging.LogRecord(
            name="test",
            level=logging.ERROR,
            pathname="test.py",
            lineno=1,
            msg="Something failed",
            args=(),
            exc_info=sys.exc_info(),
        )
    parsed = json.loads(_JsonFormatter().format(record))
    assert "ValueError: test error" in parsed["exception"]


def test_setup_logging_json_handler() -> None:
    setup_logging("info", json_format=True)
    handlers = logging.getLogger().handlers
    assert len(handlers) == 1
    assert isinstance(handlers[0].formatter, _JsonFormatter)
    setup_logging("info")


# ---- request ID stamping ----


def test_filter_stamps_current_request_id() -> None:
    token = request_id_var.set("req-42")
    try:
        record = _record()
        assert _RequestContextFilter().filter(record) is True
        assert record.request_id == "req-42"  # type: ignore[attr-defined]
    finally:
        request_id_var.reset(token)


def test_filter_keeps_explicit_request_id() -> None:
    record = _record()
    record.request_id = "from-extra"  # type: ignore[attr-defined]
    _RequestContextFilter().filter(record)
    assert record.request_id == "from-extra"  # type: ignore[attr-defined]


def test_setup_logging_installs_filter_on_handler() -> None:
    setup_logging("info")
    (handler,) = logging.getLogger().handlers
    assert any(isinstance(f, _RequestContextFilter) for f in handler.filters)
