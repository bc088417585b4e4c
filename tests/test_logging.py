"""Tests for escrow_kernel/logging_config.py: JSON lines with escrow context."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from escrow_kernel.exceptions import InsufficientAvailableBalanceError
from escrow_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite's config."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


@pytest.fixture
def stream() -> StringIO:
    buffer = StringIO()
    configure_logging(handler=logging.StreamHandler(buffer))
    return buffer


def _records(stream: StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


class TestStructuredFormatter:

    def test_release_event_keeps_exact_amounts(self, stream):
        get_logger("services.escrow").info(
            "escrow_partially_released",
            extra={"amount": Decimal("4000.00"), "remaining": Decimal("5850.00")},
        )

        [record] = _records(stream)
        assert record["message"] == "escrow_partially_released"
        assert record["logger"] == "escrow_kernel.services.escrow"
        assert record["level"] == "INFO"
        assert record["amount"] == "4000.00"
        assert record["remaining"] == "5850.00"

    def test_escrow_id_uuid_serialized(self, stream):
        escrow_id = uuid4()
        get_logger("test").info("escrow_created", extra={"account": escrow_id})
        assert _records(stream)[0]["account"] == str(escrow_id)

    def test_insufficient_balance_fields_extracted(self, stream):
        try:
            raise InsufficientAvailableBalanceError(
                "esc-1", Decimal("9000.00"), Decimal("5850.00")
            )
        except InsufficientAvailableBalanceError:
            get_logger("test").warning("escrow_operation_rejected", exc_info=True)

        [record] = _records(stream)
        assert record["exc_type"] == "InsufficientAvailableBalanceError"
        assert record["exc_code"] == "INSUFFICIENT_AVAILABLE_BALANCE"
        assert record["exc_requested"] == "9000.00"
        assert record["exc_available"] == "5850.00"
        assert "traceback" in record

    def test_debug_dropped_at_default_level(self, stream):
        logger = get_logger("test")
        logger.debug("noise")
        logger.info("escrow_frozen")
        assert [r["message"] for r in _records(stream)] == ["escrow_frozen"]


class TestEscrowContext:

    def test_bound_ids_stamped_on_lines(self, stream):
        logger = get_logger("test")
        with LogContext.bind(escrow_id="esc-1", contract_id="CTR-1"):
            logger.info("inside")
        logger.info("outside")

        inside, outside = _records(stream)
        assert inside["escrow_id"] == "esc-1"
        assert inside["contract_id"] == "CTR-1"
        assert "escrow_id" not in outside
        assert "contract_id" not in outside

    def test_nested_bind_restores_outer(self):
        with LogContext.bind(contract_id="CTR-1"):
            with LogContext.bind(escrow_id="esc-1"):
                assert LogContext.get_all() == {"contract_id": "CTR-1", "escrow_id": "esc-1"}
            with LogContext.bind(contract_id="CTR-2"):
                assert LogContext.get_all() == {"contract_id": "CTR-2"}
            assert LogContext.get_all() == {"contract_id": "CTR-1"}
        assert LogContext.get_all() == {}

    def test_none_keeps_outer_value(self):
        with LogContext.bind(escrow_id="esc-1"):
            with LogContext.bind(escrow_id=None, contract_id="CTR-9"):
                assert LogContext.get_all()["escrow_id"] == "esc-1"

    def test_restored_when_block_raises(self):
        with pytest.raises(InsufficientAvailableBalanceError):
            with LogContext.bind(escrow_id="esc-1"):
                raise InsufficientAvailableBalanceError(
                    "esc-1", Decimal("1.00"), Decimal("0.00")
                )
        assert LogContext.get_all() == {}

    def test_get_all_returns_a_copy(self):
        with LogContext.bind(escrow_id="esc-1"):
            LogContext.get_all()["escrow_id"] = "tampered"
            assert LogContext.get_all()["escrow_id"] == "esc-1"


class TestConfigureLogging:

    def test_second_call_is_no_op(self):
        h1 = logging.StreamHandler(StringIO())
        h2 = logging.StreamHandler(StringIO())
        configure_logging(handler=h1)
        configure_logging(handler=h2)

        handlers = logging.getLogger("escrow_kernel").handlers
        assert handlers.count(h1) == 1
        assert h2 not in handlers
        assert isinstance(h1.formatter, StructuredFormatter)

    def test_config_trace_logger_shares_hierarchy(self, stream):
        logging.getLogger("escrow_kernel.config").info("ESCROW_CONFIG_TRACE")
        assert _records(stream)[0]["logger"] == "escrow_kernel.config"
