"""Shared test fixtures and helpers."""

from typing import Optional

import pytest

from booking_engine.lifecycle.rescheduling import ReschedulingProtocol
from booking_engine.lifecycle.state_machine import BookingLifecycle
from booking_engine.lifecycle.subscriptions import SubscriptionGateway
from booking_engine.schemas.booking_schema import (
    Booking,
    BookingStatus,
    CreateBookingRequest,
    ServiceDefinition,
    StaffMember,
)
from booking_engine.schemas.company_schema import CompanyBookingSettings
from booking_engine.tools.availability import SlotAvailabilityCalculator
from booking_engine.tools.notifications import InMemoryNotificationSink
from booking_engine.tools.store import InMemoryBookingStore
from booking_engine.utils import MS_PER_MINUTE, get_zone, hhmm_to_minutes, local_ms

COMPANY_ID = "salon-1"
STAFF_ID = "staff-1"
SERVICE_ID = "svc-cut"
CUSTOMER_ID = "cust-1"

# A Friday; the default week schedule opens it 09:00-18:00.
DAY = "2030-03-15"
DAY_BEFORE = "2030-03-14"

UTC = get_zone("UTC")


def at(hhmm: str, day: str = DAY) -> int:
    """Epoch ms for a UTC wall-clock time on ``day``."""
    return local_ms(day, hhmm_to_minutes(hhmm), UTC)


NOW = at("08:00", DAY_BEFORE)


def make_settings(**overrides) -> CompanyBookingSettings:
    values = {"timezone": "UTC", "interval_min": 30}
    values.update(overrides)
    return CompanyBookingSettings(**values)


def make_service(**overrides) -> ServiceDefinition:
    values = {
        "id": SERVICE_ID,
        "company_id": COMPANY_ID,
        "name": "Haircut",
        "duration_min": 30,
        "buffer_before_min": 5,
        "buffer_after_min": 5,
        "capacity": 1,
        "price": 40.0,
    }
    values.update(overrides)
    return ServiceDefinition(**values)


def make_booking(
    booking_id: str = "bk_test1",
    start: str = "10:00",
    status: BookingStatus = BookingStatus.CONFIRMED,
    day: str = DAY,
    duration_min: int = 30,
    proposed_start_at_ms: Optional[int] = None,
    **overrides,
) -> Booking:
    """Helper to create a Booking with sensible defaults."""
    start_ms = at(start, day)
    values = {
        "id": booking_id,
        "company_id": COMPANY_ID,
        "staff_id": STAFF_ID,
        "service_id": SERVICE_ID,
        "customer_id": CUSTOMER_ID,
        "customer_name": "Anna de Vries",
        "customer_phone": "0612345678",
        "service_name": "Haircut",
        "staff_name": "Sam",
        "service_price": 40.0,
        "service_duration_min": duration_min,
        "service_buffer_before_min": 5,
        "service_buffer_after_min": 5,
        "service_capacity": 1,
        "booking_date": day,
        "start_at_ms": start_ms,
        "end_at_ms": start_ms + duration_min * MS_PER_MINUTE,
        "status": status,
        "proposed_start_at_ms": proposed_start_at_ms,
        "created_at_ms": NOW,
        "updated_at_ms": NOW,
    }
    values.update(overrides)
    return Booking(**values)


def make_request(start: str = "10:00", **overrides) -> CreateBookingRequest:
    values = {
        "company_id": COMPANY_ID,
        "service_id": SERVICE_ID,
        "staff_id": STAFF_ID,
        "customer_id": CUSTOMER_ID,
        "customer_name": "Anna de Vries",
        "customer_phone": "06 1234 5678",
        "start_at_ms": at(start),
    }
    values.update(overrides)
    return CreateBookingRequest(**values)


@pytest.fixture
def store():
    store = InMemoryBookingStore()
    store.put_company_settings(COMPANY_ID, make_settings())
    store.put_service(make_service())
    store.put_staff(StaffMember(id=STAFF_ID, company_id=COMPANY_ID, display_name="Sam"))
    return store


@pytest.fixture
def sink():
    return InMemoryNotificationSink()


@pytest.fixture
def lifecycle(store, sink):
    return BookingLifecycle(store, sink)


@pytest.fixture
def calculator(store):
    return SlotAvailabilityCalculator(store)


@pytest.fixture
def rescheduling(calculator, lifecycle, store):
    return ReschedulingProtocol(calculator, lifecycle, store)


@pytest.fixture
def gateway(store):
    return SubscriptionGateway(store)
