"""Tests for the structured logging system (stock_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from stock_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


@pytest.fixture
def stream():
    """Configure the kernel logger at DEBUG into a fresh buffer."""
    buffer = StringIO()
    handler = logging.StreamHandler(buffer)
    configure_logging(handler=handler, level=logging.DEBUG)
    return buffer


def _records(buffer: StringIO) -> list[dict]:
    return [json.loads(line) for line in buffer.getvalue().strip().split("\n") if line]


class TestStructuredFormatter:

    def test_one_json_object_per_line(self, stream):
        logger = get_logger("test")
        logger.info("lot_created")
        logger.warning("adjustment_rejected", extra={"reason": "bounds"})

        first, second = _records(stream)
        assert first["level"] == "INFO"
        assert first["message"] == "lot_created"
        assert first["logger"] == "stock_kernel.test"
        assert "ts" in first
        assert second["reason"] == "bounds"

    def test_context_fields_included(self, stream):
        sale_id = uuid4()
        with LogContext.bind(sale_id=sale_id, actor_id="cajero-1"):
            get_logger("test").info("sale_recorded")

        (record,) = _records(stream)
        assert record["sale_id"] == str(sale_id)
        assert record["actor_id"] == "cajero-1"

    def test_extra_does_not_override_context(self, stream):
        with LogContext.bind(product_id="ctx"):
            get_logger("test").info("lot_created", extra={"product_id": "extra"})

        assert _records(stream)[0]["product_id"] == "ctx"

    def test_values_serialized(self, stream):
        lot_id = uuid4()
        get_logger("test").info(
            "lot_adjusted",
            extra={
                "lot_id": lot_id,
                "stock_after": Decimal("7.500"),
                "expiration_date": date(2024, 6, 30),
            },
        )

        (record,) = _records(stream)
        assert record["lot_id"] == str(lot_id)
        assert record["stock_after"] == "7.500"
        assert record["expiration_date"] == "2024-06-30"

    def test_plain_exception(self, stream):
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        (record,) = _records(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record
        assert "exc_code" not in record

    def test_kernel_exception_fields_extracted(self, stream):
        from stock_kernel.exceptions import InsufficientStockError

        try:
            raise InsufficientStockError("prod-1", "12", "10")
        except InsufficientStockError:
            get_logger("test").error("sale_failed", exc_info=True)

        (record,) = _records(stream)
        assert record["exc_code"] == "INSUFFICIENT_STOCK"
        assert record["exc_product_id"] == "prod-1"
        assert record["exc_requested"] == "12"
        assert record["exc_available"] == "10"

    def test_no_context_fields_when_empty(self, stream):
        get_logger("test").info("bare")

        (record,) = _records(stream)
        for name in ("actor_id", "product_id", "sale_id", "session_date"):
            assert name not in record


class TestLogContext:

    def test_set_is_additive(self):
        LogContext.set(actor_id="a")
        LogContext.set(session_date="2024-06-15")
        assert LogContext.get_all() == {"actor_id": "a", "session_date": "2024-06-15"}

    def test_none_values_ignored(self):
        LogContext.set(actor_id="x")
        LogContext.set(actor_id=None)
        assert LogContext.get_all() == {"actor_id": "x"}

    def test_bind_restores_previous(self):
        LogContext.set(product_id="outer")
        with LogContext.bind(product_id="inner"):
            assert LogContext.get_all()["product_id"] == "inner"
        assert LogContext.get_all()["product_id"] == "outer"

    def test_bind_restores_absence(self):
        with LogContext.bind(session_date="2024-06-15", sale_id=None):
            assert LogContext.get_all() == {"session_date": "2024-06-15"}
        assert LogContext.get_all() == {}

    def test_clear(self):
        LogContext.set(actor_id="a", product_id="p", sale_id="s", session_date="d")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError):
            LogContext.set(correlation_id="c")
        with pytest.raises(ValueError):
            with LogContext.bind(actor_id="a", lot="x"):
                pass
        assert LogContext.get_all() == {}

    def test_values_stringified(self):
        sale_id = uuid4()
        LogContext.set(sale_id=sale_id)
        assert LogContext.get_all() == {"sale_id": str(sale_id)}


class TestConfigureLogging:

    def test_idempotent(self):
        configure_logging(handler=logging.StreamHandler(StringIO()))
        configure_logging(handler=logging.StreamHandler(StringIO()))
        assert len(logging.getLogger("stock_kernel").handlers) == 1

    def test_default_level_drops_debug(self):
        buffer = StringIO()
        configure_logging(handler=logging.StreamHandler(buffer))
        logger = get_logger("services.sale")
        logger.debug("hidden")
        logger.info("shown")

        assert [r["message"] for r in _records(buffer)] == ["shown"]
        assert _records(buffer)[0]["logger"] == "stock_kernel.services.sale"

    def test_reset_then_reconfigure(self):
        configure_logging(handler=logging.StreamHandler(StringIO()))
        reset_logging()
        assert logging.getLogger("stock_kernel").handlers == []

        buffer = StringIO()
        configure_logging(handler=logging.StreamHandler(buffer))
        get_logger("test").info("again")
        assert [r["message"] for r in _records(buffer)] == ["again"]
