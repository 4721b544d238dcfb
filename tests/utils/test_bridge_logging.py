"""Package logger layout and secret masking."""
from __future__ import annotations

import logging

from cartbridge.utils.logging import SecretMaskFilter, get_logger


def test_area_loggers_live_under_package():
    assert get_logger("bridge").name == "cartbridge.bridge"
    assert get_logger("cartbridge.startup").name == "cartbridge.startup"
    assert get_logger().name == "cartbridge"


def test_signatures_and_keys_are_masked():
    record = logging.LogRecord(
        "cartbridge.bridge", logging.INFO, __file__, 1, "rejected a2c_sign=%s store_key=%s", ("deadbeefcafe1234", "A" * 32), None
    )
    assert SecretMaskFilter().filter(record) is True
    message = record.getMessage()
    assert "deadbeefcafe1234" not in message
    assert "a2c_sign=dead***" in message
    assert "store_key=AAAA***" in message


def test_plain_messages_untouched():
    record = logging.LogRecord("cartbridge", logging.INFO, __file__, 1, "action=%s", ("query",), None)
    SecretMaskFilter().filter(record)
    assert record.getMessage() == "action=query"
    assert record.args == ("query",)
