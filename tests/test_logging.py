"""Tests for the structured logging system (inventory_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from inventory_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state around each test, then restore the suite setup."""
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
# StructuredFormatter
# ---------------------------------------------------------------------------


class TestStructuredFormatter:

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("stock_consumed")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "stock_consumed"
        assert record["logger"] == "inventory_kernel.test"
        assert "ts" in record

    def test_extra_fields_and_decimal(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info(
            "stock_replenished",
            extra={"quantity_delta": Decimal("1.500"), "movement_type": "REPLENISH"},
        )

        record = _parse_log(stream)
        assert record["quantity_delta"] == "1.500"
        assert record["movement_type"] == "REPLENISH"

    def test_uuid_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        item_id = uuid4()
        get_logger("test").info("with_uuid", extra={"item_id": item_id})

        assert _parse_log(stream)["item_id"] == str(item_id)

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(reference_id="SO-1001", stock_take_id="ST-000001")
        get_logger("test").info("sale_deducted")

        record = _parse_log(stream)
        assert record["reference_id"] == "SO-1001"
        assert record["stock_take_id"] == "ST-000001"
        assert "actor_id" not in record

    def test_kernel_exception_fields(self):
        from inventory_kernel.exceptions import IncompatibleUnitsError

        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise IncompatibleUnitsError("g", "pcs")
        except IncompatibleUnitsError:
            get_logger("test").error("unit_mismatch", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "IncompatibleUnitsError"
        assert record["exc_code"] == "INCOMPATIBLE_UNITS"
        assert record["exc_from_unit"] == "g"
        assert record["exc_to_unit"] == "pcs"
        assert "traceback" in record

    def test_level_filtering(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second")
        logger.debug("third")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["first", "second"]


# ---------------------------------------------------------------------------
# LogContext
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_is_additive(self):
        LogContext.set(correlation_id="a")
        LogContext.set(actor_id="b")
        assert LogContext.get_all() == {"correlation_id": "a", "actor_id": "b"}

    def test_clear(self):
        LogContext.set(reference_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_previous(self):
        LogContext.set(reference_id="outer")
        with LogContext.bind(reference_id="inner"):
            assert LogContext.get_all()["reference_id"] == "inner"
        assert LogContext.get_all()["reference_id"] == "outer"

    def test_bind_ignores_none(self):
        with LogContext.bind(actor_id=None):
            assert LogContext.get_all() == {}

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError):
            LogContext.bind(event_id="x")
        with pytest.raises(TypeError):
            LogContext.set(entry_id="x")

    def test_bind_stringifies(self):
        actor_id = uuid4()
        with LogContext.bind(actor_id=actor_id):
            assert LogContext.get_all()["actor_id"] == str(actor_id)


# ---------------------------------------------------------------------------
# configure_logging
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        handlers = logging.getLogger("inventory_kernel").handlers
        assert h1 in handlers
        assert h2 not in handlers

    def test_level_by_name(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level="debug")
        get_logger("test").debug("counted")
        assert _parse_log(stream)["message"] == "counted"

    def test_get_logger_returns_child(self):
        assert get_logger("services.ledger").name == "inventory_kernel.services.ledger"

    def test_child_inherits_level(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["logger"] == "inventory_kernel.deep.nested.module"
