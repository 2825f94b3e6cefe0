"""
Notification boundary and the event catalogue for booking transitions.

Delivery (push, in-app inbox) belongs to the notification subsystem. The
engine only builds one ``NotificationEvent`` per transition and hands it
to a ``NotificationDispatcher``. Failures are logged and dropped here so
they never turn a committed transition into an error.
"""

from typing import Optional, Protocol

from booking_engine.config import settings
from booking_engine.logging_context import get_request_logger
from booking_engine.schemas.booking_schema import Booking, BookingStatus
from booking_engine.schemas.notification_schema import (
    NotificationEvent,
    NotificationType,
    Recipient,
)
from booking_engine.utils import format_moment, get_zone, now_ms

logger = get_request_logger(__name__)


class NotificationDispatcher(Protocol):
    async def dispatch(self, event: NotificationEvent) -> None: ...


class InMemoryNotificationSink:
    """Records dispatched events. Used by tests and the console demo."""

    def __init__(self) -> None:
        self.events: list[NotificationEvent] = []

    async def dispatch(self, event: NotificationEvent) -> None:
        self.events.append(event)

    def for_booking(self, booking_id: str) -> list[NotificationEvent]:
        return [e for e in self.events if e.booking_id == booking_id]

    def clear(self) -> None:
        self.events.clear()


async def dispatch_safely(dispatcher: NotificationDispatcher, event: NotificationEvent) -> bool:
    """Dispatch best effort. Returns False when the dispatcher raised."""
    try:
        await dispatcher.dispatch(event)
    except Exception:
        logger.warning(
            "Notification %s for booking %s failed; left to the notification subsystem",
            event.type.value, event.booking_id, exc_info=True,
        )
        return False
    logger.debug("Notification %s dispatched for booking %s", event.type.value, event.booking_id)
    return True


def _label(value: str, fallback: str) -> str:
    return value.strip() if value and value.strip() else fallback


def build_event(
    booking: Booking,
    notification_type: NotificationType,
    actor_id: Optional[str] = None,
    actor_role: Optional[str] = None,
    timezone: Optional[str] = None,
) -> NotificationEvent:
    """Render the title/body for ``notification_type`` about ``booking``."""
    tz = get_zone(timezone or settings.booking.timezone)
    customer = _label(booking.customer_name, "A customer")
    service = _label(booking.service_name, "the appointment")
    moment = format_moment(booking.proposed_start_at_ms or booking.start_at_ms, tz)

    to_company = True
    if notification_type == NotificationType.BOOKING_REQUEST:
        if booking.status == BookingStatus.CONFIRMED:
            title, body = "New booking", f"{customer} booked {service} (auto-confirmed)."
        else:
            title, body = "New booking request", f"{customer} sent a new request for {service}."
    elif notification_type == NotificationType.BOOKING_PROPOSAL_ACCEPTED:
        title, body = "Proposal accepted", f"{customer} accepted your new time for {service}."
    elif notification_type == NotificationType.BOOKING_PROPOSAL_DECLINED:
        title, body = "Proposal declined", f"{customer} declined your proposed time for {service}."
    elif notification_type == NotificationType.BOOKING_RESCHEDULE_REQUESTED:
        title, body = "Reschedule requested", f"{customer} wants to move {service} to {moment}."
    elif notification_type == NotificationType.BOOKING_CANCELLED:
        fee = (
            f" ({booking.cancellation_fee_percent}% cancellation fee)"
            if booking.cancellation_fee_percent else ""
        )
        title, body = "Booking cancelled", f"{customer} cancelled {service}{fee}."
    else:
        to_company = False
        if notification_type == NotificationType.BOOKING_CONFIRMED:
            title, body = "Appointment confirmed", f"Your booking for {service} is confirmed."
        elif notification_type == NotificationType.BOOKING_DECLINED:
            title, body = "Appointment declined", f"Your booking for {service} was declined."
        elif notification_type == NotificationType.BOOKING_TIME_PROPOSED:
            title, body = "New time proposed", f"The salon proposed a new time for {service}: {moment}."
        elif notification_type == NotificationType.BOOKING_RESCHEDULE_APPROVED:
            title, body = "Reschedule approved", f"Your request to move {service} was approved."
        else:
            title, body = "Reschedule declined", f"Your request to move {service} was declined."

    return NotificationEvent(
        booking_id=booking.id,
        company_id=booking.company_id,
        customer_id=booking.customer_id,
        type=notification_type,
        title=title,
        body=body,
        recipient=Recipient.COMPANY if to_company else Recipient.CUSTOMER,
        actor_id=actor_id,
        actor_role=actor_role,
        created_at_ms=now_ms(),
    )
