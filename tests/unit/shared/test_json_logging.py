import json
import logging
import sys

from shared.logging.json import (
    CustomJsonFormatter,
    SensitiveDataFilter,
    configure_logging,
    mask_url_credentials,
)
from shared.logging.logger import is_configured, reset_configured


def _formatter():
    return CustomJsonFormatter("metrics-bus", "testing", ["token", "password"])


def test_format_emits_one_json_object():
    record = logging.LogRecord(
        "metrics_bus.bus", logging.WARNING, __file__, 10, "metrics_fetch_failed", (), None
    )
    record.url = "http://user:pw@ark:8000/metrics"
    record.auth_token = "abc"
    data = json.loads(_formatter().format(record))

    assert data["message"] == "metrics_fetch_failed"
    assert data["service"] == "metrics-bus"
    assert data["environment"] == "testing"
    assert data["levelname"] == "WARNING"
    assert data["auth_token"] == "[REDACTED]"
    assert data["url"] == "http://[REDACTED]@ark:8000/metrics"
    assert "args" not in data and "msecs" not in data


def test_format_includes_exception():
    try:
        raise ValueError("bad exposition")
    except ValueError:
        exc_info = sys.exc_info()
    record = logging.LogRecord(
        "t", logging.ERROR, __file__, 1, "metrics_poll_failed", (), exc_info
    )
    data = json.loads(_formatter().format(record))
    assert data["exception"]["type"] == "ValueError"
    assert data["exception"]["message"] == "bad exposition"


def test_sensitive_filter_recurses():
    out = SensitiveDataFilter(["secret"]).filter({"nested": {"client_secret": "x", "ok": 1}})
    assert out == {"nested": {"client_secret": "[REDACTED]", "ok": 1}}


def test_mask_url_credentials():
    assert mask_url_credentials("http://localhost:8000/metrics") == "http://localhost:8000/metrics"
    assert mask_url_credentials("https://a:b@host/x?y=1") == "https://[REDACTED]@host/x?y=1"
    assert mask_url_credentials("plain text @ noon") == "plain text @ noon"


def test_configure_logging_installs_single_json_handler():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    reset_configured()
    try:
        configure_logging("metrics-bus", "testing", "debug", ["token"])
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, CustomJsonFormatter)
        assert root.level == logging.DEBUG
        assert is_configured()
    finally:
        root.handlers = handlers
        root.setLevel(level)


def test_get_logger_installs_text_fallback_once(monkeypatch):
    from shared.logging import logger as shared_logger

    calls = []
    monkeypatch.setattr(shared_logger.logging, "basicConfig", lambda **kw: calls.append(kw))
    reset_configured()
    try:
        shared_logger.get_logger("a", auto_configure=False)
        assert calls == []
        shared_logger.get_logger("b")
        shared_logger.get_logger("c")
        assert len(calls) == 1
    finally:
        shared_logger.mark_configured()
