import json
import logging

from storefront.core.logging import JsonFormatter, setup_logging


def _record(**extra) -> logging.LogRecord:
    record = logging.makeLogRecord({"name": "storefront.cart", "levelno": logging.INFO, "levelname": "INFO"})
    record.msg = "cart.created"
    record.__dict__.update(extra)
    return record


def test_cart_identifiers_are_top_level():
    line = json.loads(JsonFormatter().format(_record(cart_id="c1", session_id="cart_1_x", guest=True)))

    assert line["message"] == "cart.created"
    assert line["logger"] == "storefront.cart"
    assert line["cart_id"] == "c1"
    assert line["session_id"] == "cart_1_x"
    assert line["extra"] == {"guest": True}


def test_missing_identifiers_are_not_emitted():
    line = json.loads(JsonFormatter().format(_record(session_id=None)))

    assert "cart_id" not in line
    assert "session_id" not in line
    assert "extra" not in line


def test_rupee_amounts_stay_readable():
    record = _record(detail="Minimum order amount of ₹2000 required for this coupon")
    assert "₹2000" in JsonFormatter().format(record)


def test_setup_logging_accepts_explicit_level():
    setup_logging("debug")
    try:
        assert logging.getLogger("storefront").level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        setup_logging()
