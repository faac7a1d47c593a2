"""Unit tests for structured logging."""

import json
import logging
from decimal import Decimal

from src.monitoring.logger import StructuredLogger


def events(caplog):
    return [json.loads(record.getMessage()) for record in caplog.records]


def test_log_emits_json_with_event_name(caplog):
    logger = StructuredLogger(name="test_logger_json", level="DEBUG")

    with caplog.at_level(logging.DEBUG, logger="test_logger_json"):
        logger.lookup_success(source="product-detail", product_id="1", elapsed_ms=12.5)

    assert events(caplog) == [{
        "event": "lookup_success",
        "source": "product-detail",
        "product_id": "1",
        "elapsed_ms": 12.5,
    }]


def test_timeouts_get_their_own_event(caplog):
    logger = StructuredLogger(name="test_logger_timeout")

    with caplog.at_level(logging.INFO, logger="test_logger_timeout"):
        logger.lookup_error(source="similar-ids", product_id="1", status=None,
                            fault="timeout", error="timed out", attempt=0)
        logger.lookup_error(source="similar-ids", product_id="1", status=503,
                            fault="upstream", error="HTTP 503", attempt=1)

    assert [e["event"] for e in events(caplog)] == ["lookup_timeout", "lookup_error"]
    assert all(r.levelno == logging.WARNING for r in caplog.records)


def test_level_filters_debug_events(caplog):
    logger = StructuredLogger(name="test_logger_level", level="WARNING")

    with caplog.at_level(logging.DEBUG, logger="test_logger_level"):
        logger.logger.setLevel(logging.WARNING)
        logger.cache_hit(tier="product_details", key="1")
        logger.fallback(source="product-detail", product_id="1", reason="circuit_open",
                        fault="circuit_open")

    assert [e["event"] for e in events(caplog)] == ["fallback"]


def test_non_serializable_values_are_stringified(caplog):
    logger = StructuredLogger(name="test_logger_default")

    with caplog.at_level(logging.INFO, logger="test_logger_default"):
        logger.log("custom", price=Decimal("9.99"))

    assert events(caplog)[0]["price"] == "9.99"
