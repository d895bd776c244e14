"""Tests for the structured logging system (farm_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from farm_kernel.exceptions import PaymentAllocationError
from farm_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite's setup."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "farm_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("posted", extra={"line_count": 3, "status": "SENT"})

        record = _parse_log(stream)
        assert record["line_count"] == 3
        assert record["status"] == "SENT"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(tenant_id="ranch-1", document_type="invoice")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["tenant_id"] == "ranch-1"
        assert record["document_type"] == "invoice"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_ledger_exception_code_extracted(self):
        """Posting errors carry a .code and their structured fields."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")

        try:
            raise PaymentAllocationError("bill-9", "status is DRAFT")
        except PaymentAllocationError:
            logger.error("payment_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "PAYMENT_ALLOCATION_FAILED"
        assert record["exc_type"] == "PaymentAllocationError"
        assert record["exc_document_id"] == "bill-9"
        assert record["exc_reason"] == "status is DRAFT"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "tenant_id" not in record
        assert "document_id" not in record

    def test_uuid_and_decimal_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info("with_ids", extra={"transaction": uid, "amount": Decimal("12.50")})

        record = _parse_log(stream)
        assert record["transaction"] == str(uid)
        assert record["amount"] == "12.50"

    def test_debug_filtered_at_info(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        assert [r["message"] for r in logs] == ["first", "second"]


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_and_get(self):
        LogContext.set(tenant_id="x", actor_id="y")
        assert LogContext.get_all() == {"tenant_id": "x", "actor_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(tenant_id="outer")
        with LogContext.bind(tenant_id="inner"):
            assert LogContext.get_all()["tenant_id"] == "inner"
        assert LogContext.get_all()["tenant_id"] == "outer"

    def test_bind_restores_none(self):
        assert "document_id" not in LogContext.get_all()
        with LogContext.bind(document_id="temp"):
            assert LogContext.get_all()["document_id"] == "temp"
        assert "document_id" not in LogContext.get_all()

    def test_bind_ignores_unknown_and_none(self):
        with LogContext.bind(tenant_id="t", actor_id=None, color="blue"):
            assert LogContext.get_all() == {"tenant_id": "t"}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            tenant_id="t",
            actor_id="a",
            document_type="bill",
            document_id="d",
            transaction_id="x",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 6
        assert ctx["transaction_id"] == "x"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        package_logger = logging.getLogger("farm_kernel")
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        after_first = list(package_logger.handlers)
        h2, _ = _make_handler()
        configure_logging(handler=h2)

        assert package_logger.handlers == after_first
        assert h1 in package_logger.handlers
        assert h2 not in package_logger.handlers

    def test_get_logger_returns_child(self):
        assert get_logger("services.document_poster").name == "farm_kernel.services.document_poster"

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["logger"] == "farm_kernel.deep.nested.module"
