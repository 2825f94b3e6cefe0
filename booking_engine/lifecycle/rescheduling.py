"""
Company-side "propose a new time" negotiation.

Builds the list of dates and slots a company may counter-offer for a
pending booking, then commits the proposal through the lifecycle machine.
The customer answers with ``BookingLifecycle.accept_proposal`` or
``decline_proposal``.
"""

from datetime import date
from typing import Optional

from booking_engine.config import BookingConfig, settings
from booking_engine.errors import ForbiddenError, NotFoundError, ValidationError
from booking_engine.lifecycle.state_machine import (
    BookingLifecycle,
    clean_proposal_note,
    require_id,
    require_timestamp,
)
from booking_engine.logging_context import get_request_logger, traced
from booking_engine.schemas.booking_schema import Booking, BookingSlot
from booking_engine.tools.availability import SlotAvailabilityCalculator, find_slot
from booking_engine.tools.store import BookingStore
from booking_engine.utils import (
    date_key_for_ms,
    date_keys_from,
    format_date_key,
    get_zone,
    is_valid_date_key,
    now_ms as current_ms,
    parse_date_key,
)

logger = get_request_logger(__name__)


class ReschedulingProtocol:
    """
    Offers a pending booking's alternative slots and records the company's pick.

    Proposals are restricted to the look-ahead window starting at the later
    of today and the booking date, and to slots the calculator reports as
    free with the booking's own occupancy ignored. The write itself goes
    through ``BookingLifecycle.propose_booking_time``.
    """

    def __init__(
        self,
        calculator: SlotAvailabilityCalculator,
        lifecycle: BookingLifecycle,
        store: BookingStore,
        config: Optional[BookingConfig] = None,
    ) -> None:
        self._calculator = calculator
        self._lifecycle = lifecycle
        self._store = store
        self._config = config or settings.booking

    async def _today(self, company_id: str, now: int) -> date:
        company_settings = await self._store.get_company_settings(company_id)
        return parse_date_key(date_key_for_ms(now, get_zone(company_settings.timezone)))

    def proposal_dates(self, booking: Booking, today: date) -> list[str]:
        """Look-ahead date keys, starting at the later of today and the booking date."""
        start = max(format_date_key(today), booking.booking_date)
        return date_keys_from(start, self._config.proposal_lookahead_days)

    @traced
    async def proposal_slots(
        self,
        booking: Booking,
        booking_date: str,
        now_ms: Optional[int] = None,
        today: Optional[date] = None,
    ) -> list[BookingSlot]:
        """
        Slots the company may propose for ``booking`` on ``booking_date``.

        The booking's own occupancy is ignored, so the proposal can overlap
        its current window. Only slots with capacity that start after the
        minimum lead time and differ from the current start are returned.

        Raises:
            ValidationError: ``booking_date`` is malformed or outside the look-ahead window.
        """
        if not is_valid_date_key(booking_date):
            raise ValidationError(f"Invalid booking date: {booking_date!r}")
        now = current_ms() if now_ms is None else now_ms
        if today is None:
            today = await self._today(booking.company_id, now)
        window = self.proposal_dates(booking, today)
        if booking_date not in window:
            raise ValidationError(
                f"{booking_date} is outside the proposal window {window[0]}..{window[-1]}",
                user_message="Pick a date within the next week.",
            )

        slots = await self._calculator.compute_slots(
            company_id=booking.company_id,
            staff_id=booking.staff_id,
            booking_date=booking_date,
            service_duration_min=booking.service_duration_min,
            buffer_before_min=booking.service_buffer_before_min,
            buffer_after_min=booking.service_buffer_after_min,
            capacity=booking.service_capacity,
            exclude_booking_id=booking.id,
        )
        lead_ms = self._config.min_lead_seconds * 1000
        return [
            s for s in slots
            if s.remaining_capacity > 0
            and s.start_at_ms > now + lead_ms
            and abs(s.start_at_ms - booking.start_at_ms) >= lead_ms
        ]

    @traced
    async def propose(
        self,
        booking_id: str,
        company_id: str,
        proposed_start_at_ms: int,
        note: Optional[str] = None,
        now_ms: Optional[int] = None,
        actor_id: Optional[str] = None,
    ) -> Booking:
        """
        Counter-offer ``proposed_start_at_ms`` for a pending booking.

        Input is validated before the store is read. The start must be one
        of the slots ``proposal_slots`` offers for its date.
        """
        booking_id = require_id(booking_id, "booking_id")
        company_id = require_id(company_id, "company_id")
        cleaned_note = clean_proposal_note(note, self._config.proposal_note_max_length)
        require_timestamp(proposed_start_at_ms, "proposed_start_at_ms")
        now = current_ms() if now_ms is None else now_ms

        booking = await self._store.get_booking(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        if booking.company_id != company_id:
            raise ForbiddenError(f"Booking {booking_id} does not belong to company {company_id}")

        company_settings = await self._store.get_company_settings(company_id)
        tz = get_zone(company_settings.timezone)
        proposed_date = date_key_for_ms(proposed_start_at_ms, tz)
        today = parse_date_key(date_key_for_ms(now, tz))
        offered = await self.proposal_slots(booking, proposed_date, now_ms=now, today=today)
        if find_slot(offered, proposed_start_at_ms) is None:
            logger.info(
                "Proposal for booking %s at %s is not an offered slot", booking_id, proposed_start_at_ms
            )
            raise ValidationError(
                f"{proposed_start_at_ms} is not an available slot on {proposed_date}",
                user_message="This time is no longer available.",
            )

        return await self._lifecycle.propose_booking_time(
            booking_id,
            company_id,
            proposed_start_at_ms,
            proposal_note=cleaned_note,
            actor_id=actor_id,
            now_ms=now,
        )
