"""Tests for the company-side proposal negotiation."""

from datetime import date

import pytest

from booking_engine.errors import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from booking_engine.schemas.booking_schema import BookingStatus
from booking_engine.schemas.notification_schema import NotificationType, Recipient
from tests.conftest import COMPANY_ID, CUSTOMER_ID, DAY, at, make_booking


class TestProposalDates:
    def test_starts_at_booking_date_when_in_future(self, rescheduling):
        dates = rescheduling.proposal_dates(make_booking(), date(2030, 3, 10))
        assert dates[0] == DAY
        assert len(dates) == 7
        assert dates[-1] == "2030-03-21"

    def test_starts_today_when_booking_date_passed(self, rescheduling):
        dates = rescheduling.proposal_dates(make_booking(), date(2030, 3, 20))
        assert dates[0] == "2030-03-20"


class TestProposalSlots:
    @pytest.mark.asyncio
    async def test_filters_past_requested_and_full(self, store, rescheduling):
        booking = make_booking(status=BookingStatus.PENDING)
        store.seed_booking(booking)
        store.seed_booking(make_booking("bk_busy", start="12:00", customer_id="cust-2"))

        slots = await rescheduling.proposal_slots(booking, DAY, now_ms=at("09:45"))
        starts = [s.start_at_ms for s in slots]
        assert at("09:30") not in starts  # already started
        assert at("10:00") not in starts  # the requested time itself
        assert at("12:00") not in starts  # taken by another booking
        assert at("10:30") in starts  # own occupancy is ignored
        assert all(s.remaining_capacity > 0 for s in slots)

    @pytest.mark.asyncio
    async def test_date_outside_window(self, store, rescheduling):
        booking = make_booking(status=BookingStatus.PENDING)
        store.seed_booking(booking)
        with pytest.raises(ValidationError):
            await rescheduling.proposal_slots(booking, "2030-04-30", now_ms=at("09:45"))

    @pytest.mark.asyncio
    async def test_malformed_date(self, rescheduling):
        with pytest.raises(ValidationError):
            await rescheduling.proposal_slots(make_booking(), "next week", now_ms=at("09:45"))


class TestPropose:
    @pytest.mark.asyncio
    async def test_propose_offered_slot(self, store, sink, rescheduling):
        store.seed_booking(make_booking(status=BookingStatus.PENDING))
        booking = await rescheduling.propose(
            "bk_test1", COMPANY_ID, at("11:00"), note="  Later works better  ", now_ms=at("08:00"),
        )
        assert booking.status == BookingStatus.PROPOSED_BY_COMPANY
        assert booking.proposed_start_at_ms == at("11:00")
        assert booking.proposal_note == "Later works better"
        assert len(sink.events) == 1
        assert sink.events[0].type == NotificationType.BOOKING_TIME_PROPOSED
        assert sink.events[0].recipient == Recipient.CUSTOMER

    @pytest.mark.asyncio
    async def test_long_note_rejected_before_any_write(self, store, sink, rescheduling):
        store.seed_booking(make_booking(status=BookingStatus.PENDING))
        writes_before = store.write_count
        with pytest.raises(ValidationError):
            await rescheduling.propose(
                "bk_test1", COMPANY_ID, at("11:00"), note="x" * 300, now_ms=at("08:00"),
            )
        assert store.write_count == writes_before
        assert (await store.get_booking("bk_test1")).status == BookingStatus.PENDING
        assert sink.events == []

    @pytest.mark.asyncio
    async def test_blank_note_is_absent(self, store, rescheduling):
        store.seed_booking(make_booking(status=BookingStatus.PENDING))
        booking = await rescheduling.propose(
            "bk_test1", COMPANY_ID, at("11:00"), note="   ", now_ms=at("08:00"),
        )
        assert booking.proposal_note is None

    @pytest.mark.asyncio
    async def test_time_not_on_grid(self, store, rescheduling):
        store.seed_booking(make_booking(status=BookingStatus.PENDING))
        with pytest.raises(ValidationError):
            await rescheduling.propose("bk_test1", COMPANY_ID, at("11:10"), now_ms=at("08:00"))
        assert store.write_count == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_start", [None, "11:00", 1.5e12, True])
    async def test_non_integer_start_rejected_before_store(self, store, rescheduling, bad_start):
        store.seed_booking(make_booking(status=BookingStatus.PENDING))
        store.available = False
        with pytest.raises(ValidationError):
            await rescheduling.propose("bk_test1", COMPANY_ID, bad_start, now_ms=at("08:00"))
        assert store.write_count == 0

    @pytest.mark.asyncio
    async def test_other_company(self, store, rescheduling):
        store.seed_booking(make_booking(status=BookingStatus.PENDING))
        with pytest.raises(ForbiddenError):
            await rescheduling.propose("bk_test1", "salon-2", at("11:00"), now_ms=at("08:00"))

    @pytest.mark.asyncio
    async def test_missing_booking(self, rescheduling):
        with pytest.raises(NotFoundError):
            await rescheduling.propose("bk_nope", COMPANY_ID, at("11:00"), now_ms=at("08:00"))

    @pytest.mark.asyncio
    async def test_confirmed_booking_cannot_get_proposal(self, store, rescheduling):
        store.seed_booking(make_booking())
        with pytest.raises(InvalidTransitionError):
            await rescheduling.propose("bk_test1", COMPANY_ID, at("11:00"), now_ms=at("08:00"))


class TestNegotiationRoundTrip:
    @pytest.mark.asyncio
    async def test_propose_then_customer_accepts(self, store, sink, rescheduling, lifecycle):
        store.seed_booking(make_booking(status=BookingStatus.PENDING))
        await rescheduling.propose("bk_test1", COMPANY_ID, at("14:30"), now_ms=at("08:00"))
        booking = await lifecycle.accept_proposal("bk_test1", CUSTOMER_ID)
        assert booking.status == BookingStatus.CONFIRMED
        assert booking.start_at_ms == at("14:30")
        assert booking.end_at_ms - booking.start_at_ms == 30 * 60_000
        assert [e.type for e in sink.events] == [
            NotificationType.BOOKING_TIME_PROPOSED,
            NotificationType.BOOKING_PROPOSAL_ACCEPTED,
        ]
