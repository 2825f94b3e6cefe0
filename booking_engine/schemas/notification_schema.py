"""Notification events emitted by the lifecycle machine."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class NotificationType(str, Enum):
    BOOKING_REQUEST = "booking_request"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_DECLINED = "booking_declined"
    BOOKING_TIME_PROPOSED = "booking_time_proposed"
    BOOKING_PROPOSAL_ACCEPTED = "booking_proposal_accepted"
    BOOKING_PROPOSAL_DECLINED = "booking_proposal_declined"
    BOOKING_RESCHEDULE_REQUESTED = "booking_reschedule_requested"
    BOOKING_RESCHEDULE_APPROVED = "booking_reschedule_approved"
    BOOKING_RESCHEDULE_DECLINED = "booking_reschedule_declined"
    BOOKING_CANCELLED = "booking_cancelled"


class Recipient(str, Enum):
    COMPANY = "company"
    CUSTOMER = "customer"


class NotificationEvent(BaseModel):
    """Fire-and-forget record describing one booking transition."""

    booking_id: str
    company_id: str
    customer_id: str
    type: NotificationType
    title: str
    body: str
    recipient: Recipient
    actor_id: Optional[str] = None
    actor_role: Optional[str] = None
    created_at_ms: int = 0
