"""
Document store boundary and an in-memory implementation.

In production the engine talks to a hosted document database through an
adapter implementing ``BookingStore``. The in-memory store backs the tests
and the console demo; it serializes every write behind one asyncio lock so
conditional inserts and compare-and-swap updates are atomic, which is the
contract any real adapter has to provide (transactions or conditional
writes).
"""

import asyncio
import itertools
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from booking_engine.errors import (
    InvalidTransitionError,
    NotFoundError,
    SlotUnavailableError,
    StoreUnavailableError,
)
from booking_engine.logging_context import get_request_logger
from booking_engine.schemas.booking_schema import (
    Booking,
    BookingFilter,
    BookingStatus,
    ServiceDefinition,
    StaffMember,
)
from booking_engine.schemas.company_schema import BookingBlock, CompanyBookingSettings
from booking_engine.utils import now_ms, overlaps

logger = get_request_logger(__name__)

OnData = Callable[[list[Booking]], None]
OnError = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


@dataclass(frozen=True)
class CapacityGuard:
    """Capacity precondition evaluated inside an atomic write."""

    company_id: str
    staff_id: str
    booking_date: str
    occupied_start_at_ms: int
    occupied_end_at_ms: int
    capacity: int
    exclude_booking_id: Optional[str] = None

    def overlap_count(self, bookings: list[Booking]) -> int:
        return sum(
            1
            for b in bookings
            if b.id != self.exclude_booking_id
            and b.company_id == self.company_id
            and b.staff_id == self.staff_id
            and b.booking_date == self.booking_date
            and b.is_occupying
            and overlaps(
                self.occupied_start_at_ms,
                self.occupied_end_at_ms,
                b.occupied_start_at_ms,
                b.occupied_end_at_ms,
            )
        )


class BookingStore(Protocol):
    """Operations the engine needs from the persistent document store."""

    async def get_booking(self, booking_id: str) -> Optional[Booking]: ...

    async def list_bookings(self, booking_filter: BookingFilter) -> list[Booking]: ...

    async def insert_booking(self, booking: Booking, guard: CapacityGuard) -> Booking: ...

    async def compare_and_set(
        self,
        booking_id: str,
        expected_status: BookingStatus,
        updates: dict[str, Any],
        guard: Optional[CapacityGuard] = None,
    ) -> Booking: ...

    async def get_company_settings(self, company_id: str) -> CompanyBookingSettings: ...

    async def get_service(self, company_id: str, service_id: str) -> Optional[ServiceDefinition]: ...

    async def get_staff(self, company_id: str, staff_id: str) -> Optional[StaffMember]: ...

    async def list_blocks(self, company_id: str) -> list[BookingBlock]: ...

    def subscribe(
        self,
        booking_filter: BookingFilter,
        on_data: OnData,
        on_error: Optional[OnError] = None,
    ) -> Unsubscribe: ...


@dataclass
class _Subscriber:
    booking_filter: BookingFilter
    on_data: OnData
    on_error: Optional[OnError]


class InMemoryBookingStore:
    """Process-local ``BookingStore`` with atomic conditional writes."""

    def __init__(self) -> None:
        self._bookings: dict[str, Booking] = {}
        self._settings: dict[str, CompanyBookingSettings] = {}
        self._services: dict[tuple[str, str], ServiceDefinition] = {}
        self._staff: dict[tuple[str, str], StaffMember] = {}
        self._blocks: dict[str, list[BookingBlock]] = {}
        self._subscribers: dict[int, _Subscriber] = {}
        self._subscriber_ids = itertools.count(1)
        self._lock = asyncio.Lock()
        self.available = True
        self.write_count = 0

    # ------------------------------------------------------------------ #
    # Seeding (company-owned data the engine only reads)
    # ------------------------------------------------------------------ #

    def put_company_settings(self, company_id: str, company_settings: CompanyBookingSettings) -> None:
        self._settings[company_id] = company_settings

    def put_service(self, service: ServiceDefinition) -> None:
        self._services[(service.company_id, service.id)] = service

    def put_staff(self, staff: StaffMember) -> None:
        self._staff[(staff.company_id, staff.id)] = staff

    def put_block(self, block: BookingBlock) -> None:
        self._blocks.setdefault(block.company_id, []).append(block)

    def seed_booking(self, booking: Booking) -> None:
        """Place a booking directly, bypassing capacity checks."""
        self._bookings[booking.id] = booking.model_copy(deep=True)

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def _ensure_available(self) -> None:
        if not self.available:
            raise StoreUnavailableError("Booking store is unavailable")

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        self._ensure_available()
        booking = self._bookings.get(booking_id)
        return booking.model_copy(deep=True) if booking else None

    async def list_bookings(self, booking_filter: BookingFilter) -> list[Booking]:
        self._ensure_available()
        return self._matching(booking_filter)

    async def get_company_settings(self, company_id: str) -> CompanyBookingSettings:
        self._ensure_available()
        return self._settings.get(company_id) or CompanyBookingSettings()

    async def get_service(self, company_id: str, service_id: str) -> Optional[ServiceDefinition]:
        self._ensure_available()
        return self._services.get((company_id, service_id))

    async def get_staff(self, company_id: str, staff_id: str) -> Optional[StaffMember]:
        self._ensure_available()
        return self._staff.get((company_id, staff_id))

    async def list_blocks(self, company_id: str) -> list[BookingBlock]:
        self._ensure_available()
        return sorted(self._blocks.get(company_id, []), key=lambda b: b.start_at_ms)

    def _matching(self, booking_filter: BookingFilter) -> list[Booking]:
        rows = [b for b in self._bookings.values() if booking_filter.matches(b)]
        rows.sort(key=lambda b: (b.start_at_ms, b.id))
        return [b.model_copy(deep=True) for b in rows]

    # ------------------------------------------------------------------ #
    # Atomic writes
    # ------------------------------------------------------------------ #

    async def insert_booking(self, booking: Booking, guard: CapacityGuard) -> Booking:
        """Insert ``booking`` only if the guarded window still has capacity."""
        async with self._lock:
            self._ensure_available()
            if booking.id in self._bookings:
                raise ValueError(f"Duplicate booking id: {booking.id}")
            taken = guard.overlap_count(list(self._bookings.values()))
            if taken >= guard.capacity:
                raise SlotUnavailableError(
                    f"Slot full for staff {guard.staff_id} on {guard.booking_date} "
                    f"({taken}/{guard.capacity})"
                )
            stamp = now_ms()
            stored = booking.model_copy(update={"created_at_ms": stamp, "updated_at_ms": stamp})
            self._bookings[stored.id] = stored
            self.write_count += 1
        self._publish()
        return stored.model_copy(deep=True)

    async def compare_and_set(
        self,
        booking_id: str,
        expected_status: BookingStatus,
        updates: dict[str, Any],
        guard: Optional[CapacityGuard] = None,
    ) -> Booking:
        """Apply ``updates`` only if the stored status still equals ``expected_status``."""
        async with self._lock:
            self._ensure_available()
            current = self._bookings.get(booking_id)
            if current is None:
                raise NotFoundError(f"Booking {booking_id} not found")
            if current.status != expected_status:
                raise InvalidTransitionError(
                    f"Booking {booking_id} is '{current.status.value}', "
                    f"expected '{expected_status.value}'",
                    current_status=current.status.value,
                )
            if guard is not None:
                taken = guard.overlap_count(list(self._bookings.values()))
                if taken >= guard.capacity:
                    raise SlotUnavailableError(
                        f"Slot full for staff {guard.staff_id} on {guard.booking_date} "
                        f"({taken}/{guard.capacity})"
                    )
            merged = {**current.model_dump(), **updates, "updated_at_ms": now_ms()}
            stored = Booking.model_validate(merged)
            self._bookings[booking_id] = stored
            self.write_count += 1
        self._publish()
        return stored.model_copy(deep=True)

    # ------------------------------------------------------------------ #
    # Live queries
    # ------------------------------------------------------------------ #

    def subscribe(
        self,
        booking_filter: BookingFilter,
        on_data: OnData,
        on_error: Optional[OnError] = None,
    ) -> Unsubscribe:
        """Register a live query. The first batch is delivered on the next loop tick."""
        sub_id = next(self._subscriber_ids)
        self._subscribers[sub_id] = _Subscriber(booking_filter, on_data, on_error)
        asyncio.get_running_loop().call_soon(self._deliver, sub_id)

        def unsubscribe() -> None:
            self._subscribers.pop(sub_id, None)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _publish(self) -> None:
        for sub_id in list(self._subscribers):
            self._deliver(sub_id)

    def _deliver(self, sub_id: int) -> None:
        sub = self._subscribers.get(sub_id)
        if sub is None:
            return
        try:
            self._ensure_available()
            rows = self._matching(sub.booking_filter)
        except StoreUnavailableError as exc:
            if sub.on_error is not None:
                sub.on_error(exc)
            return
        try:
            sub.on_data(rows)
        except Exception as exc:
            logger.exception("Subscriber %d failed handling a booking batch", sub_id)
            if sub.on_error is not None:
                sub.on_error(exc)
