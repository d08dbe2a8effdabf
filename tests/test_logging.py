import json
import logging

from service.logging_config import (
    CorrelationFilter,
    JSONFormatter,
    configure_logging,
    correlation_id,
    new_correlation_id,
)


def test_json_formatter():
    formatter = JSONFormatter()
    record = logging.LogRecord("test", logging.INFO, "", 0, "hello world", (), None)
    parsed = json.loads(formatter.format(record))
    assert parsed["message"] == "hello world"
    assert parsed["level"] == "INFO"
    assert parsed["service"] == "vehicle-lending"
    assert "timestamp" in parsed


def test_json_formatter_includes_correlation_id_and_extra():
    correlation_id.set("abc123")
    record = logging.LogRecord("test", logging.WARNING, "", 0, "lookup failed", (), None)
    record.extra_data = {"vin": "1HGBH41JXMN109186"}
    parsed = json.loads(JSONFormatter().format(record))
    correlation_id.set("")
    assert parsed["correlation_id"] == "abc123"
    assert parsed["data"] == {"vin": "1HGBH41JXMN109186"}


def test_configure_logging():
    configure_logging(level="DEBUG", fmt="text")
    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


def test_new_correlation_id():
    cid = new_correlation_id()
    assert len(cid) == 12
    assert cid != new_correlation_id()


def test_correlation_filter_stamps_records():
    record = logging.LogRecord("test", logging.INFO, "", 0, "outside request", (), None)
    CorrelationFilter().filter(record)
    assert record.correlation_id == "-"

    token = correlation_id.set("req-42")
    try:
        record = logging.LogRecord("test", logging.INFO, "", 0, "inside request", (), None)
        CorrelationFilter().filter(record)
    finally:
        correlation_id.reset(token)
    assert record.correlation_id == "req-42"
    assert json.loads(JSONFormatter().format(record))["correlation_id"] == "req-42"


def test_text_format_includes_correlation_id():
    configure_logging(level="INFO", fmt="text")
    handler = logging.getLogger().handlers[0]
    token = correlation_id.set("req-7")
    try:
        record = logging.LogRecord("lending", logging.INFO, "", 0, "valued", (), None)
        assert handler.filter(record)
        line = handler.format(record)
    finally:
        correlation_id.reset(token)
    assert "[req-7] valued" in line
    assert logging.getLogger("httpx").level == logging.WARNING
