"""
Slot availability calculator.

Turns a service's duration, buffers and capacity plus the existing
bookings of one staff member on one day into an ordered list of candidate
slots with their remaining capacity.

``build_slots`` is pure; ``SlotAvailabilityCalculator.compute_slots``
loads the day's state from the store and delegates to it.
"""

import asyncio
import math
from typing import Iterable, Optional

from pydantic import ValidationError as PydanticValidationError

from booking_engine.config import settings
from booking_engine.errors import ValidationError
from booking_engine.logging_context import get_request_logger, traced
from booking_engine.schemas.booking_schema import (
    OCCUPYING_STATUSES,
    Booking,
    BookingFilter,
    BookingSlot,
    SlotQuery,
)
from booking_engine.schemas.company_schema import BookingBlock, CompanyBookingSettings
from booking_engine.tools.store import BookingStore
from booking_engine.utils import (
    MS_PER_MINUTE,
    format_time_label,
    get_zone,
    is_valid_date_key,
    local_ms,
    overlaps,
    weekday_key,
)

logger = get_request_logger(__name__)


def slot_key(staff_id: str, start_at_ms: int) -> str:
    """Stable slot identity, comparable across refreshes."""
    return f"{staff_id}:{start_at_ms}"


def grid_step(interval_min: int, duration_min: int) -> int:
    """Largest step no coarser than the company interval that divides the duration."""
    if duration_min % interval_min == 0:
        return interval_min
    return math.gcd(interval_min, duration_min)


def overlap_count(bookings: Iterable[Booking], occupied_start_ms: int, occupied_end_ms: int) -> int:
    """Number of occupancy-relevant bookings whose buffered window overlaps the given one."""
    return sum(
        1
        for b in bookings
        if b.status in OCCUPYING_STATUSES
        and overlaps(occupied_start_ms, occupied_end_ms, b.occupied_start_at_ms, b.occupied_end_at_ms)
    )


def fits_operating_hours(
    company_settings: CompanyBookingSettings,
    booking_date: str,
    occupied_start_ms: int,
    occupied_end_ms: int,
) -> bool:
    """True if the buffered window lies entirely inside one opening range of the day."""
    day = company_settings.day(weekday_key(booking_date))
    if not day.open:
        return False
    tz = get_zone(company_settings.timezone)
    return any(
        occupied_start_ms >= local_ms(booking_date, r.start_minutes, tz)
        and occupied_end_ms <= local_ms(booking_date, r.end_minutes, tz)
        for r in day.ranges
    )


def is_blocked(blocks: Iterable[BookingBlock], occupied_start_ms: int, occupied_end_ms: int) -> bool:
    return any(overlaps(occupied_start_ms, occupied_end_ms, b.start_at_ms, b.end_at_ms) for b in blocks)


def effective_capacity(company_settings: CompanyBookingSettings, service_capacity: int) -> int:
    """Per-slot capacity: the service's, capped by the company default."""
    return max(1, min(company_settings.default_capacity, service_capacity))


def build_slots(
    *,
    staff_id: str,
    booking_date: str,
    company_settings: CompanyBookingSettings,
    service_duration_min: int,
    buffer_before_min: int,
    buffer_after_min: int,
    capacity: int,
    bookings: Iterable[Booking],
    blocks: Iterable[BookingBlock] = (),
    exclude_booking_id: Optional[str] = None,
) -> list[BookingSlot]:
    """
    Compute the candidate grid for one staff member and day.

    Candidates whose buffered window leaves every operating range or
    touches a booking block are excluded. Full candidates are kept with
    ``remaining_capacity == 0``.
    """
    if not company_settings.enabled:
        return []
    day = company_settings.day(weekday_key(booking_date))
    if not day.open or not day.ranges:
        return []

    tz = get_zone(company_settings.timezone)
    step = grid_step(company_settings.interval_min, service_duration_min)
    duration_ms = service_duration_min * MS_PER_MINUTE
    before_ms = buffer_before_min * MS_PER_MINUTE
    after_ms = buffer_after_min * MS_PER_MINUTE

    relevant = [
        b for b in bookings
        if b.id != exclude_booking_id
        and b.staff_id == staff_id
        and b.booking_date == booking_date
        and b.status in OCCUPYING_STATUSES
    ]
    block_list = list(blocks)
    by_start: dict[int, BookingSlot] = {}
    for time_range in day.ranges:
        cursor = time_range.start_minutes
        while cursor + service_duration_min <= time_range.end_minutes:
            start_ms = local_ms(booking_date, cursor, tz)
            end_ms = start_ms + duration_ms
            occupied_start = start_ms - before_ms
            occupied_end = end_ms + after_ms
            cursor += step

            if start_ms in by_start:
                continue
            if not fits_operating_hours(company_settings, booking_date, occupied_start, occupied_end):
                continue
            if is_blocked(block_list, occupied_start, occupied_end):
                continue

            taken = overlap_count(relevant, occupied_start, occupied_end)
            by_start[start_ms] = BookingSlot(
                key=slot_key(staff_id, start_ms),
                booking_date=booking_date,
                start_at_ms=start_ms,
                end_at_ms=end_ms,
                label=format_time_label(start_ms, end_ms, tz),
                total_capacity=capacity,
                remaining_capacity=max(0, capacity - taken),
            )

    slots = [by_start[start] for start in sorted(by_start)]
    logger.debug(
        "Built %d slots for staff %s on %s (step %d min, %d occupying bookings)",
        len(slots), staff_id, booking_date, step, len(relevant),
    )
    return slots


def filter_selectable(
    slots: Iterable[BookingSlot],
    now_ms: int,
    min_lead_seconds: Optional[int] = None,
) -> list[BookingSlot]:
    """Caller-level policy: keep slots with capacity starting far enough in the future."""
    lead = settings.booking.min_lead_seconds if min_lead_seconds is None else min_lead_seconds
    threshold = now_ms + lead * 1000
    return [s for s in slots if s.remaining_capacity > 0 and s.start_at_ms >= threshold]


def find_slot(slots: Iterable[BookingSlot], start_at_ms: int) -> Optional[BookingSlot]:
    for slot in slots:
        if slot.start_at_ms == start_at_ms:
            return slot
    return None


def _validated_query(**kwargs) -> SlotQuery:
    try:
        query = SlotQuery(**kwargs)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid slot query: {exc.errors()}") from None
    if not is_valid_date_key(query.booking_date):
        raise ValidationError(f"Invalid booking date: {query.booking_date!r}")
    return query


class SlotAvailabilityCalculator:
    """Reads one staff member's day from the store and computes its slots."""

    def __init__(self, store: BookingStore) -> None:
        self._store = store

    @traced
    async def compute_slots(
        self,
        company_id: str,
        staff_id: str,
        booking_date: str,
        service_duration_min: int,
        buffer_before_min: int = 0,
        buffer_after_min: int = 0,
        capacity: int = 1,
        exclude_booking_id: Optional[str] = None,
    ) -> list[BookingSlot]:
        """
        Return every candidate slot for the day in ascending start order.

        Past dates are not rejected; use ``filter_selectable`` before
        offering slots for selection.

        Raises:
            ValidationError: malformed query.
            StoreUnavailableError: the store could not be read.
        """
        query = _validated_query(
            company_id=company_id,
            staff_id=staff_id,
            booking_date=booking_date,
            service_duration_min=service_duration_min,
            buffer_before_min=buffer_before_min,
            buffer_after_min=buffer_after_min,
            capacity=capacity,
        )
        day_filter = BookingFilter(
            company_id=query.company_id,
            staff_id=query.staff_id,
            booking_date=query.booking_date,
            statuses=OCCUPYING_STATUSES,
        )
        company_settings, bookings, blocks = await asyncio.gather(
            self._store.get_company_settings(query.company_id),
            self._store.list_bookings(day_filter),
            self._store.list_blocks(query.company_id),
        )

        return build_slots(
            staff_id=query.staff_id,
            booking_date=query.booking_date,
            company_settings=company_settings,
            service_duration_min=query.service_duration_min,
            buffer_before_min=query.buffer_before_min,
            buffer_after_min=query.buffer_after_min,
            capacity=query.capacity,
            bookings=bookings,
            blocks=blocks,
            exclude_booking_id=exclude_booking_id,
        )
