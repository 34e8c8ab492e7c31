import json
import logging

from shared.core.logging_config import SecurityFilter, StructuredFormatter, set_request_context


def make_record(msg, *args, **extra):
    record = logging.LogRecord("nearandnow.test", logging.INFO, __file__, 1, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_structured_formatter_includes_custom_fields_and_trace():
    set_request_context(request_id="req-1", customer_id="7")
    record = make_record("Order %s placed", "NN202506010001", extra_fields={"store_ids": [1, 2]})

    line = json.loads(StructuredFormatter().format(record))

    assert line["message"] == "Order NN202506010001 placed"
    assert line["custom"] == {"store_ids": [1, 2]}
    assert line["trace"]["request_id"] == "req-1"
    assert line["trace"]["customer_id"] == "7"


def test_security_filter_redacts_credentials():
    record = make_record("login token=abc123 for %s", "9999")

    SecurityFilter().filter(record)

    assert record.getMessage() == "login token=***REDACTED*** for 9999"


def test_security_filter_leaves_plain_messages():
    record = make_record("Order %s placed", "NN202506010001")

    SecurityFilter().filter(record)

    assert record.getMessage() == "Order NN202506010001 placed"
