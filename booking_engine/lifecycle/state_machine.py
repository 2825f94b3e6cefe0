"""
Booking lifecycle state machine.

Defines the booking statuses' legal transitions as an explicit table and
the operations that drive a booking through it. Every operation follows
the same path:

    validate input -> load -> authorize -> check table -> CAS write -> notify

The write is a compare-and-swap on the status the booking had when it was
read, so two sessions racing on the same booking cannot both win: the
loser gets ``InvalidTransitionError`` and the stored record is untouched.

Usage:
    lifecycle = BookingLifecycle(store, notifier)
    booking = await lifecycle.accept_booking("bk_123", company_id="salon-1")
    assert booking.status == BookingStatus.CONFIRMED
"""

import asyncio
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from booking_engine.config import BookingConfig, settings
from booking_engine.errors import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from booking_engine.logging_context import get_request_logger, traced
from booking_engine.schemas.booking_schema import (
    Booking,
    BookingStatus,
    CreateBookingRequest,
)
from booking_engine.schemas.company_schema import BookingBlock, CompanyBookingSettings
from booking_engine.schemas.notification_schema import NotificationType
from booking_engine.tools.availability import (
    effective_capacity,
    fits_operating_hours,
    is_blocked,
)
from booking_engine.tools.notifications import (
    NotificationDispatcher,
    build_event,
    dispatch_safely,
)
from booking_engine.tools.roles import COMPANY_SIDE_ROLES, Role, RoleResolver
from booking_engine.tools.store import BookingStore, CapacityGuard
from booking_engine.utils import (
    MS_PER_MINUTE,
    clean_optional_text,
    date_key_for_ms,
    get_zone,
    normalize_phone,
    now_ms as current_ms,
)

logger = get_request_logger(__name__)

MIN_CUSTOMER_NAME_LENGTH = 2
MIN_PHONE_DIGITS = 5


class BookingTrigger(str, Enum):
    """Events that move a booking between statuses."""
    ACCEPT = "accept"
    DECLINE = "decline"
    PROPOSE_TIME = "propose_time"
    ACCEPT_PROPOSAL = "accept_proposal"
    DECLINE_PROPOSAL = "decline_proposal"
    REQUEST_RESCHEDULE = "request_reschedule"
    APPROVE_RESCHEDULE = "approve_reschedule"
    DECLINE_RESCHEDULE = "decline_reschedule"
    CANCEL = "cancel"
    CANCEL_WITH_FEE = "cancel_with_fee"


class Actor(str, Enum):
    COMPANY = "company"
    CUSTOMER = "customer"


class RescheduleDecision(str, Enum):
    APPROVED = "approved"
    DECLINED = "declined"


@dataclass(frozen=True)
class Transition:
    """A single valid status transition."""
    from_state: BookingStatus
    to_state: BookingStatus
    trigger: BookingTrigger
    actor: Actor
    notification: NotificationType


TRANSITIONS: list[Transition] = [
    # --- Company review of a request ---
    Transition(BookingStatus.PENDING, BookingStatus.CONFIRMED,
               BookingTrigger.ACCEPT, Actor.COMPANY, NotificationType.BOOKING_CONFIRMED),
    Transition(BookingStatus.PENDING, BookingStatus.DECLINED,
               BookingTrigger.DECLINE, Actor.COMPANY, NotificationType.BOOKING_DECLINED),
    Transition(BookingStatus.PENDING, BookingStatus.PROPOSED_BY_COMPANY,
               BookingTrigger.PROPOSE_TIME, Actor.COMPANY, NotificationType.BOOKING_TIME_PROPOSED),

    # --- Customer answer to a company proposal ---
    Transition(BookingStatus.PROPOSED_BY_COMPANY, BookingStatus.CONFIRMED,
               BookingTrigger.ACCEPT_PROPOSAL, Actor.CUSTOMER,
               NotificationType.BOOKING_PROPOSAL_ACCEPTED),
    Transition(BookingStatus.PROPOSED_BY_COMPANY, BookingStatus.DECLINED,
               BookingTrigger.DECLINE_PROPOSAL, Actor.CUSTOMER,
               NotificationType.BOOKING_PROPOSAL_DECLINED),

    # --- Customer-initiated reschedule of a confirmed booking ---
    Transition(BookingStatus.CONFIRMED, BookingStatus.PENDING_RESCHEDULE_APPROVAL,
               BookingTrigger.REQUEST_RESCHEDULE, Actor.CUSTOMER,
               NotificationType.BOOKING_RESCHEDULE_REQUESTED),
    Transition(BookingStatus.PENDING_RESCHEDULE_APPROVAL, BookingStatus.CONFIRMED,
               BookingTrigger.APPROVE_RESCHEDULE, Actor.COMPANY,
               NotificationType.BOOKING_RESCHEDULE_APPROVED),
    Transition(BookingStatus.PENDING_RESCHEDULE_APPROVAL, BookingStatus.DECLINED,
               BookingTrigger.DECLINE_RESCHEDULE, Actor.COMPANY,
               NotificationType.BOOKING_RESCHEDULE_DECLINED),

    # --- Customer cancellation ---
    Transition(BookingStatus.PENDING, BookingStatus.CANCELLED_BY_CUSTOMER,
               BookingTrigger.CANCEL, Actor.CUSTOMER, NotificationType.BOOKING_CANCELLED),
    Transition(BookingStatus.CONFIRMED, BookingStatus.CANCELLED_BY_CUSTOMER,
               BookingTrigger.CANCEL, Actor.CUSTOMER, NotificationType.BOOKING_CANCELLED),
    Transition(BookingStatus.CONFIRMED, BookingStatus.CANCELLED_WITH_FEE,
               BookingTrigger.CANCEL_WITH_FEE, Actor.CUSTOMER, NotificationType.BOOKING_CANCELLED),
]


def find_transition(current: BookingStatus, trigger: BookingTrigger) -> Optional[Transition]:
    for t in TRANSITIONS:
        if t.from_state == current and t.trigger == trigger:
            return t
    return None


def get_valid_triggers(current: BookingStatus) -> list[BookingTrigger]:
    """Return all triggers valid from ``current``."""
    return [t.trigger for t in TRANSITIONS if t.from_state == current]


def require_id(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required", user_message=f"Missing {name.replace('_', ' ')}.")
    return value.strip()


def require_timestamp(value: Any, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(
            f"{name} must be an integer timestamp, got {type(value).__name__}",
            user_message="Pick a valid time.",
        )
    return value


def clean_proposal_note(note: Optional[str], max_length: Optional[int] = None) -> Optional[str]:
    """Trim a proposal note; blank becomes None, too long is a ValidationError."""
    limit = settings.booking.proposal_note_max_length if max_length is None else max_length
    cleaned = clean_optional_text(note)
    if cleaned is not None and len(cleaned) > limit:
        raise ValidationError(
            f"proposal_note is {len(cleaned)} characters, limit is {limit}",
            user_message=f"The note can be at most {limit} characters.",
        )
    return cleaned


def check_open_window(
    company_settings: CompanyBookingSettings,
    blocks: list[BookingBlock],
    booking_date: str,
    occupied_start_ms: int,
    occupied_end_ms: int,
) -> None:
    """Raise ValidationError unless the buffered window is inside opening hours and unblocked."""
    if not fits_operating_hours(company_settings, booking_date, occupied_start_ms, occupied_end_ms):
        raise ValidationError(
            "Requested window is outside operating hours",
            user_message="This time is outside the salon's opening hours.",
        )
    if is_blocked(blocks, occupied_start_ms, occupied_end_ms):
        raise ValidationError("Requested window is blocked", user_message="This time slot is blocked.")


class BookingLifecycle:
    """
    Guarded booking transitions with their store writes and notifications.

    Holds no per-booking state: every call reads the current record from
    the store and commits through a conditional write, so any number of
    independent sessions can share one store.
    """

    def __init__(
        self,
        store: BookingStore,
        notifier: NotificationDispatcher,
        role_resolver: Optional[RoleResolver] = None,
        config: Optional[BookingConfig] = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._roles = role_resolver
        self._config = config or settings.booking

    # ------------------------------------------------------------------ #
    # Creation
    # ------------------------------------------------------------------ #

    @traced
    async def create_booking(
        self, request: CreateBookingRequest, now_ms: Optional[int] = None
    ) -> Booking:
        """
        Validate and persist a new booking as ``pending`` (or ``confirmed``
        when the company auto-confirms).

        The capacity check and the insert are one atomic store call.

        Raises:
            ValidationError: bad input, booking disabled, outside hours or blocked.
            NotFoundError: unknown service or staff member.
            SlotUnavailableError: the slot filled up concurrently.
        """
        now = current_ms() if now_ms is None else now_ms
        company_id = require_id(request.company_id, "company_id")
        service_id = require_id(request.service_id, "service_id")
        staff_id = require_id(request.staff_id, "staff_id")
        customer_id = require_id(request.customer_id, "customer_id")

        customer_name = request.customer_name.strip()
        if len(customer_name) < MIN_CUSTOMER_NAME_LENGTH:
            raise ValidationError("customer_name too short", user_message="Enter a valid name.")
        phone = normalize_phone(request.customer_phone)
        if len(phone.lstrip("+")) < MIN_PHONE_DIGITS:
            raise ValidationError("customer_phone too short", user_message="Enter a valid phone number.")
        if request.start_at_ms < now - self._config.min_lead_seconds * 1000:
            raise ValidationError("start_at_ms is in the past", user_message="This time slot is in the past.")

        company_settings, service, staff, blocks = await asyncio.gather(
            self._store.get_company_settings(company_id),
            self._store.get_service(company_id, service_id),
            self._store.get_staff(company_id, staff_id),
            self._store.list_blocks(company_id),
        )
        if not company_settings.enabled:
            raise ValidationError(
                f"Online booking disabled for {company_id}",
                user_message="Online booking is turned off for this salon.",
            )
        if service is None:
            raise NotFoundError(f"Service {service_id} not found", user_message="Service not found.")
        if not service.is_active:
            raise ValidationError(f"Service {service_id} inactive", user_message="This service is unavailable.")
        if staff is None:
            raise NotFoundError(f"Staff {staff_id} not found", user_message="Staff member not found.")
        if not staff.is_active:
            raise ValidationError(f"Staff {staff_id} inactive", user_message="This staff member is unavailable.")

        tz = get_zone(company_settings.timezone)
        booking_date = date_key_for_ms(request.start_at_ms, tz)
        end_at_ms = request.start_at_ms + service.duration_min * MS_PER_MINUTE
        occupied_start = request.start_at_ms - service.buffer_before_min * MS_PER_MINUTE
        occupied_end = end_at_ms + service.buffer_after_min * MS_PER_MINUTE

        check_open_window(company_settings, blocks, booking_date, occupied_start, occupied_end)

        capacity = effective_capacity(company_settings, service.capacity)
        status = BookingStatus.CONFIRMED if company_settings.auto_confirm else BookingStatus.PENDING
        try:
            booking = Booking(
                id=f"bk_{uuid.uuid4().hex[:12]}",
                company_id=company_id,
                staff_id=staff_id,
                service_id=service_id,
                customer_id=customer_id,
                customer_name=customer_name,
                customer_phone=phone,
                service_name=service.name,
                staff_name=staff.display_name,
                service_price=service.price,
                service_duration_min=service.duration_min,
                service_buffer_before_min=service.buffer_before_min,
                service_buffer_after_min=service.buffer_after_min,
                service_capacity=capacity,
                booking_date=booking_date,
                start_at_ms=request.start_at_ms,
                end_at_ms=end_at_ms,
                status=status,
                note=clean_optional_text(request.note),
            )
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid booking: {exc.errors()}") from None

        guard = CapacityGuard(
            company_id=company_id,
            staff_id=staff_id,
            booking_date=booking_date,
            occupied_start_at_ms=occupied_start,
            occupied_end_at_ms=occupied_end,
            capacity=capacity,
        )
        return await asyncio.shield(self._insert_and_notify(booking, guard))

    async def _insert_and_notify(self, booking: Booking, guard: CapacityGuard) -> Booking:
        stored = await self._store.insert_booking(booking, guard)
        logger.info(
            "Booking %s created as '%s' for staff %s at %s",
            stored.id, stored.status.value, stored.staff_id, stored.start_at_ms,
        )
        await self._notify(stored, NotificationType.BOOKING_REQUEST, stored.customer_id, Role.CUSTOMER.value)
        return stored

    # ------------------------------------------------------------------ #
    # Company-side operations
    # ------------------------------------------------------------------ #

    @traced
    async def accept_booking(
        self, booking_id: str, company_id: str, actor_id: Optional[str] = None
    ) -> Booking:
        """``pending`` -> ``confirmed``."""
        booking, role = await self._load_for_company(booking_id, company_id, actor_id)
        return await self._commit(booking, BookingTrigger.ACCEPT, actor_id or company_id, role)

    @traced
    async def reject_booking(
        self, booking_id: str, company_id: str, actor_id: Optional[str] = None
    ) -> Booking:
        """``pending`` -> ``declined``."""
        booking, role = await self._load_for_company(booking_id, company_id, actor_id)
        return await self._commit(booking, BookingTrigger.DECLINE, actor_id or company_id, role)

    @traced
    async def propose_booking_time(
        self,
        booking_id: str,
        company_id: str,
        proposed_start_at_ms: int,
        proposal_note: Optional[str] = None,
        actor_id: Optional[str] = None,
        now_ms: Optional[int] = None,
    ) -> Booking:
        """
        ``pending`` -> ``proposed_by_company`` with a counter-offered start.

        The note is validated before the store is touched. The proposal
        must start at least the minimum lead time from now and differ
        from the booking's requested start.
        """
        require_id(booking_id, "booking_id")
        require_id(company_id, "company_id")
        note = clean_proposal_note(proposal_note, self._config.proposal_note_max_length)
        require_timestamp(proposed_start_at_ms, "proposed_start_at_ms")
        now = current_ms() if now_ms is None else now_ms
        lead_ms = self._config.min_lead_seconds * 1000
        if proposed_start_at_ms <= now + lead_ms:
            raise ValidationError(
                "proposed_start_at_ms is not far enough in the future",
                user_message="Pick a time further in the future.",
            )

        booking, role = await self._load_for_company(booking_id, company_id, actor_id)
        if abs(proposed_start_at_ms - booking.start_at_ms) < lead_ms:
            raise ValidationError(
                "proposed_start_at_ms equals the requested start",
                user_message="Pick a different time than the one requested.",
            )
        updates = {"proposed_start_at_ms": proposed_start_at_ms, "proposal_note": note}
        return await self._commit(
            booking, BookingTrigger.PROPOSE_TIME, actor_id or company_id, role, updates=updates
        )

    @traced
    async def respond_to_customer_reschedule(
        self,
        booking_id: str,
        company_id: str,
        decision: str,
        actor_id: Optional[str] = None,
    ) -> Booking:
        """``pending_reschedule_approval`` -> ``confirmed`` (adopting the new time) or ``declined``."""
        try:
            parsed = RescheduleDecision(decision)
        except ValueError:
            raise ValidationError(
                f"decision must be 'approved' or 'declined', got {decision!r}"
            ) from None
        booking, role = await self._load_for_company(booking_id, company_id, actor_id)
        actor = actor_id or company_id

        if parsed == RescheduleDecision.DECLINED:
            return await self._commit(
                booking, BookingTrigger.DECLINE_RESCHEDULE, actor, role,
                updates={"proposed_start_at_ms": None},
            )
        self._ensure_transition(booking, BookingTrigger.APPROVE_RESCHEDULE)
        updates, guard = await self._adopt_proposed_time(booking)
        return await self._commit(
            booking, BookingTrigger.APPROVE_RESCHEDULE, actor, role, updates=updates, guard=guard
        )

    # ------------------------------------------------------------------ #
    # Customer-side operations
    # ------------------------------------------------------------------ #

    @traced
    async def accept_proposal(self, booking_id: str, customer_id: str) -> Booking:
        """``proposed_by_company`` -> ``confirmed``; the proposed time becomes the booking time."""
        booking = await self._load_for_customer(booking_id, customer_id)
        self._ensure_transition(booking, BookingTrigger.ACCEPT_PROPOSAL)
        updates, guard = await self._adopt_proposed_time(booking)
        return await self._commit(
            booking, BookingTrigger.ACCEPT_PROPOSAL, customer_id, Role.CUSTOMER.value,
            updates=updates, guard=guard,
        )

    @traced
    async def decline_proposal(self, booking_id: str, customer_id: str) -> Booking:
        """``proposed_by_company`` -> ``declined``."""
        booking = await self._load_for_customer(booking_id, customer_id)
        return await self._commit(
            booking, BookingTrigger.DECLINE_PROPOSAL, customer_id, Role.CUSTOMER.value,
            updates={"proposed_start_at_ms": None, "proposal_note": None},
        )

    @traced
    async def request_reschedule(
        self,
        booking_id: str,
        customer_id: str,
        requested_start_at_ms: int,
        now_ms: Optional[int] = None,
    ) -> Booking:
        """
        ``confirmed`` -> ``pending_reschedule_approval`` with the customer's requested start.

        The requested window is checked against opening hours and blocks
        here and again when the company approves it.
        """
        require_timestamp(requested_start_at_ms, "requested_start_at_ms")
        now = current_ms() if now_ms is None else now_ms
        lead_ms = self._config.min_lead_seconds * 1000
        if requested_start_at_ms <= now + lead_ms:
            raise ValidationError(
                "requested_start_at_ms is not far enough in the future",
                user_message="Pick a time further in the future.",
            )
        booking = await self._load_for_customer(booking_id, customer_id)
        if abs(requested_start_at_ms - booking.start_at_ms) < lead_ms:
            raise ValidationError(
                "requested_start_at_ms equals the current start",
                user_message="Pick a different time than the current one.",
            )
        self._ensure_transition(booking, BookingTrigger.REQUEST_RESCHEDULE)
        await self._checked_move(booking, requested_start_at_ms)
        return await self._commit(
            booking, BookingTrigger.REQUEST_RESCHEDULE, customer_id, Role.CUSTOMER.value,
            updates={"proposed_start_at_ms": requested_start_at_ms},
        )

    @traced
    async def cancel_booking(
        self, booking_id: str, customer_id: str, now_ms: Optional[int] = None
    ) -> Booking:
        """
        Cancel a ``pending`` or ``confirmed`` booking.

        A confirmed booking cancelled inside the late-cancel window ends in
        ``cancelled_with_fee`` with the configured fee percent.
        """
        now = current_ms() if now_ms is None else now_ms
        booking = await self._load_for_customer(booking_id, customer_id)

        window_ms = self._config.late_cancel_window_hours * 3_600_000
        fee_percent = self._config.late_cancel_fee_percent
        is_late = (
            booking.status == BookingStatus.CONFIRMED
            and fee_percent > 0
            and booking.start_at_ms - now < window_ms
        )
        if is_late:
            updates = {
                "cancellation_fee_percent": fee_percent,
                "cancellation_fee_amount": round(booking.service_price * fee_percent / 100, 2),
            }
            return await self._commit(
                booking, BookingTrigger.CANCEL_WITH_FEE, customer_id, Role.CUSTOMER.value,
                updates=updates,
            )
        return await self._commit(booking, BookingTrigger.CANCEL, customer_id, Role.CUSTOMER.value)

    # ------------------------------------------------------------------ #
    # Shared steps
    # ------------------------------------------------------------------ #

    async def _load(self, booking_id: str) -> Booking:
        booking = await self._store.get_booking(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    async def _load_for_company(
        self, booking_id: str, company_id: str, actor_id: Optional[str]
    ) -> tuple[Booking, str]:
        """Load a booking and assert the acting company owns it. Returns (booking, actor role)."""
        booking_id = require_id(booking_id, "booking_id")
        company_id = require_id(company_id, "company_id")
        role = Role.COMPANY.value
        if actor_id is not None and self._roles is not None:
            resolved = await self._roles.resolve_role(actor_id)
            if resolved not in COMPANY_SIDE_ROLES:
                raise ForbiddenError(f"Actor {actor_id} has role {resolved!r}, not a company role")
            role = resolved.value

        booking = await self._load(booking_id)
        if booking.company_id != company_id:
            raise ForbiddenError(f"Booking {booking_id} does not belong to company {company_id}")
        return booking, role

    async def _load_for_customer(self, booking_id: str, customer_id: str) -> Booking:
        booking_id = require_id(booking_id, "booking_id")
        customer_id = require_id(customer_id, "customer_id")
        booking = await self._load(booking_id)
        if booking.customer_id != customer_id:
            raise ForbiddenError(f"Booking {booking_id} does not belong to customer {customer_id}")
        return booking

    def _ensure_transition(self, booking: Booking, trigger: BookingTrigger) -> Transition:
        transition = find_transition(booking.status, trigger)
        if transition is None:
            valid = [t.value for t in get_valid_triggers(booking.status)]
            logger.info(
                "Rejected '%s' on booking %s in status '%s'",
                trigger.value, booking.id, booking.status.value,
            )
            raise InvalidTransitionError(
                f"No valid transition from '{booking.status.value}' "
                f"with trigger '{trigger.value}'. Valid triggers: {valid}",
                current_status=booking.status.value,
            )
        return transition

    async def _checked_move(self, booking: Booking, new_start: int) -> tuple[dict[str, Any], CapacityGuard]:
        """Updates and capacity guard for moving ``booking`` to ``new_start``.

        The buffered window at the new time must be inside opening hours and
        clear of blocks; otherwise ValidationError and nothing is written.
        """
        company_settings, blocks = await asyncio.gather(
            self._store.get_company_settings(booking.company_id),
            self._store.list_blocks(booking.company_id),
        )
        tz = get_zone(company_settings.timezone)
        new_end = new_start + booking.service_duration_min * MS_PER_MINUTE
        new_date = date_key_for_ms(new_start, tz)
        occupied_start = new_start - booking.service_buffer_before_min * MS_PER_MINUTE
        occupied_end = new_end + booking.service_buffer_after_min * MS_PER_MINUTE
        check_open_window(company_settings, blocks, new_date, occupied_start, occupied_end)

        updates = {
            "start_at_ms": new_start,
            "end_at_ms": new_end,
            "booking_date": new_date,
            "proposed_start_at_ms": None,
            "proposal_note": None,
        }
        guard = CapacityGuard(
            company_id=booking.company_id,
            staff_id=booking.staff_id,
            booking_date=new_date,
            occupied_start_at_ms=occupied_start,
            occupied_end_at_ms=occupied_end,
            capacity=booking.service_capacity,
            exclude_booking_id=booking.id,
        )
        return updates, guard

    async def _adopt_proposed_time(self, booking: Booking) -> tuple[dict[str, Any], CapacityGuard]:
        new_start = booking.proposed_start_at_ms
        if new_start is None:
            raise InvalidTransitionError(
                f"Booking {booking.id} has no proposed time", current_status=booking.status.value
            )
        return await self._checked_move(booking, new_start)

    async def _commit(
        self,
        booking: Booking,
        trigger: BookingTrigger,
        actor_id: str,
        actor_role: str,
        updates: Optional[dict[str, Any]] = None,
        guard: Optional[CapacityGuard] = None,
    ) -> Booking:
        transition = self._ensure_transition(booking, trigger)
        changes = {**(updates or {}), "status": transition.to_state}
        # Shielded so a caller that goes away mid-call still gets its write committed.
        return await asyncio.shield(
            self._write_and_notify(booking, transition, changes, guard, actor_id, actor_role)
        )

    async def _write_and_notify(
        self,
        booking: Booking,
        transition: Transition,
        changes: dict[str, Any],
        guard: Optional[CapacityGuard],
        actor_id: str,
        actor_role: str,
    ) -> Booking:
        updated = await self._store.compare_and_set(booking.id, booking.status, changes, guard)
        logger.info(
            "Booking %s: %s -> %s (trigger: %s)",
            booking.id, transition.from_state.value, transition.to_state.value,
            transition.trigger.value,
        )
        await self._notify(updated, transition.notification, actor_id, actor_role)
        return updated

    async def _notify(
        self,
        booking: Booking,
        notification_type: NotificationType,
        actor_id: Optional[str],
        actor_role: Optional[str],
    ) -> None:
        try:
            company_settings = await self._store.get_company_settings(booking.company_id)
            timezone = company_settings.timezone
        except StoreUnavailableError:
            logger.warning("Settings unavailable for notification on %s; using default timezone", booking.id)
            timezone = None
        event = build_event(booking, notification_type, actor_id, actor_role, timezone)
        await dispatch_safely(self._notifier, event)
