import json
import logging

from shared.core.logging_config import SecurityFilter, StructuredFormatter, request_id_var


def _record(msg, *args, **extra):
    record = logging.LogRecord("app.test", logging.INFO, __file__, 1, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_security_filter_redacts_credentials():
    record = _record("sign-in with password=hunter2 and apikey: abc123, user=sara")
    assert SecurityFilter().filter(record) is True
    assert record.getMessage() == "sign-in with password=***REDACTED*** and apikey: ***REDACTED***, user=sara"


def test_security_filter_leaves_plain_messages_alone():
    record = _record("Order %s updated", "order-1")
    SecurityFilter().filter(record)
    assert record.getMessage() == "Order order-1 updated"
    assert record.args == ("order-1",)


def test_structured_formatter_emits_json_with_context():
    token = request_id_var.set("req-1")
    try:
        line = StructuredFormatter().format(_record("hello", extra_fields={"order_id": "order-1"}))
    finally:
        request_id_var.reset(token)

    payload = json.loads(line)
    assert payload["message"] == "hello"
    assert payload["level"] == "INFO"
    assert payload["trace"] == {"request_id": "req-1"}
    assert payload["custom"] == {"order_id": "order-1"}


def test_responses_carry_request_id(client):
    response = client.get("/health", headers={"X-Request-ID": "req-42"})
    assert response.headers["X-Request-ID"] == "req-42"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
