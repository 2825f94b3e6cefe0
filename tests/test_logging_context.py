"""Tests for request ID propagation into log records."""

import io
import logging

import pytest

from booking_engine.logging_context import (
    LOG_FORMAT,
    NO_REQUEST_ID,
    configure_logging,
    get_request_id,
    request_scope,
    traced,
)
from booking_engine.schemas.booking_schema import BookingStatus
from tests.conftest import COMPANY_ID, NOW, make_booking, make_request


def engine_records(caplog) -> list[logging.LogRecord]:
    return [r for r in caplog.records if r.name.startswith("booking_engine")]


class TestRequestScope:
    def test_binds_and_restores(self):
        assert get_request_id() == NO_REQUEST_ID
        with request_scope("REQ-outer"):
            with request_scope("REQ-inner"):
                assert get_request_id() == "REQ-inner"
            assert get_request_id() == "REQ-outer"
        assert get_request_id() == NO_REQUEST_ID

    def test_generates_id_when_none_given(self):
        with request_scope() as request_id:
            assert request_id.startswith("REQ-")
            assert get_request_id() == request_id


class TestTraced:
    @pytest.mark.asyncio
    async def test_keeps_caller_id(self):
        @traced
        async def operation():
            return get_request_id()

        with request_scope("REQ-caller"):
            assert await operation() == "REQ-caller"

    @pytest.mark.asyncio
    async def test_fresh_id_per_call(self):
        @traced
        async def operation():
            return get_request_id()

        first = await operation()
        second = await operation()
        assert first.startswith("REQ-")
        assert first != second
        assert get_request_id() == NO_REQUEST_ID


class TestEngineLogging:
    @pytest.mark.asyncio
    async def test_transition_logs_carry_bound_id(self, store, lifecycle, caplog):
        caplog.set_level(logging.INFO, logger="booking_engine")
        store.seed_booking(make_booking(status=BookingStatus.PENDING))
        with request_scope("REQ-accept-1"):
            await lifecycle.accept_booking("bk_test1", COMPANY_ID)
        records = engine_records(caplog)
        assert records
        assert all(r.request_id == "REQ-accept-1" for r in records)

    @pytest.mark.asyncio
    async def test_unbound_operation_gets_generated_id(self, lifecycle, caplog):
        caplog.set_level(logging.INFO, logger="booking_engine")
        await lifecycle.create_booking(make_request(), now_ms=NOW)
        ids = {r.request_id for r in engine_records(caplog)}
        assert len(ids) == 1
        (request_id,) = ids
        assert request_id.startswith("REQ-")


class TestConfigureLogging:
    def test_root_handlers_print_request_id_for_any_logger(self):
        root = logging.getLogger()
        stream = io.StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        try:
            configure_logging(logging.INFO)
            with request_scope("REQ-fmt"):
                logging.getLogger("thirdparty.client").warning("upstream slow")
        finally:
            root.removeHandler(handler)
        assert "[REQ-fmt] [thirdparty.client] WARNING: upstream slow" in stream.getvalue()
