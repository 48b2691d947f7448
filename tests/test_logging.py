"""Tests for the structured logging system (fund_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from fund_kernel.exceptions import InsufficientFundsError
from fund_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite's configuration."""
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


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


def _parse_log(stream: StringIO) -> dict:
    return _parse_all_logs(stream)[0]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "fund_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info(
            "salary_settled", extra={"net_paid": Decimal("11000.00"), "count": 2},
        )

        record = _parse_log(stream)
        assert record["net_paid"] == "11000.00"
        assert record["count"] == 2

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", worker_id="w-1")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["worker_id"] == "w-1"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_fields_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        allocation_id = str(uuid4())
        try:
            raise InsufficientFundsError(
                Decimal("5000.00"), Decimal("11000.00"), allocation_id=allocation_id,
            )
        except InsufficientFundsError:
            get_logger("test").warning("gate_refused", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "INSUFFICIENT_FUNDS"
        assert record["exc_available"] == "5000.00"
        assert record["exc_requested"] == "11000.00"
        assert record["exc_allocation_id"] == allocation_id


class TestLogContext:

    def test_bind_restores_previous_values(self):
        LogContext.set(actor_id="outer")
        with LogContext.bind(actor_id="inner", worker_id=uuid4()):
            assert LogContext.get_all()["actor_id"] == "inner"
        ctx = LogContext.get_all()
        assert ctx["actor_id"] == "outer"
        assert "worker_id" not in ctx

    def test_bind_stringifies_ids(self):
        worker = uuid4()
        with LogContext.bind(worker_id=worker):
            assert LogContext.get_all()["worker_id"] == str(worker)

    def test_bind_ignores_unknown_fields(self):
        with LogContext.bind(shoe_size="9"):
            assert LogContext.get_all() == {}

    def test_clear(self):
        LogContext.set(organization_id="org")
        LogContext.clear()
        assert LogContext.get_all() == {}


class TestConfigureLogging:

    def test_idempotent(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler)
        configure_logging(handler=handler)
        assert logging.getLogger("fund_kernel").handlers == [handler]

    def test_level_filters(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.WARNING, handler=handler)
        logger = get_logger("test")
        logger.info("quiet")
        logger.warning("loud")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["loud"]
