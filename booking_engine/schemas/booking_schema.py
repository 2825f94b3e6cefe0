"""Booking, service, and slot data models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from booking_engine.utils import MS_PER_MINUTE


class BookingStatus(str, Enum):
    """Stable wire values for a booking's lifecycle status."""

    PENDING = "pending"
    PROPOSED_BY_COMPANY = "proposed_by_company"
    PENDING_RESCHEDULE_APPROVAL = "pending_reschedule_approval"
    CONFIRMED = "confirmed"
    DECLINED = "declined"
    CANCELLED_BY_CUSTOMER = "cancelled_by_customer"
    CANCELLED_WITH_FEE = "cancelled_with_fee"


# Statuses that consume slot capacity.
OCCUPYING_STATUSES: frozenset[BookingStatus] = frozenset({
    BookingStatus.PENDING,
    BookingStatus.PROPOSED_BY_COMPANY,
    BookingStatus.PENDING_RESCHEDULE_APPROVAL,
    BookingStatus.CONFIRMED,
})

TERMINAL_STATUSES: frozenset[BookingStatus] = frozenset({
    BookingStatus.DECLINED,
    BookingStatus.CANCELLED_BY_CUSTOMER,
    BookingStatus.CANCELLED_WITH_FEE,
})

_PROPOSAL_STATUSES = frozenset({
    BookingStatus.PROPOSED_BY_COMPANY,
    BookingStatus.PENDING_RESCHEDULE_APPROVAL,
})


class ServiceDefinition(BaseModel):
    """A company's bookable service. Read-only to the engine."""

    id: str
    company_id: str
    name: str = "Service"
    duration_min: int = Field(ge=1)
    buffer_before_min: int = Field(default=0, ge=0)
    buffer_after_min: int = Field(default=0, ge=0)
    capacity: int = Field(default=1, ge=1)
    price: float = Field(default=0.0, ge=0)
    is_active: bool = True


class StaffMember(BaseModel):
    """Bookable staff member of a company."""

    id: str
    company_id: str
    display_name: str
    is_active: bool = True


class Booking(BaseModel):
    """
    The central booking entity.

    Negotiation and fee fields are only valid for the statuses that use
    them; the model refuses any other combination so an illegal booking
    can never be constructed or persisted.

    ``customer_name``, ``service_name``, ``staff_name`` and
    ``service_price`` are snapshots taken at creation time. They are not
    refreshed when the referenced customer, service or staff member is
    renamed later.
    """

    id: str
    company_id: str
    staff_id: str
    service_id: str
    customer_id: str
    customer_name: str = ""
    customer_phone: str = ""
    service_name: str = ""
    staff_name: str = ""
    service_price: float = 0.0
    service_duration_min: int = Field(ge=1)
    service_buffer_before_min: int = Field(default=0, ge=0)
    service_buffer_after_min: int = Field(default=0, ge=0)
    service_capacity: int = Field(default=1, ge=1)
    booking_date: str
    start_at_ms: int
    end_at_ms: int
    status: BookingStatus = BookingStatus.PENDING
    proposed_start_at_ms: Optional[int] = None
    proposal_note: Optional[str] = None
    note: Optional[str] = None
    cancellation_fee_percent: Optional[int] = None
    cancellation_fee_amount: Optional[float] = None
    created_at_ms: int = 0
    updated_at_ms: int = 0

    @model_validator(mode="after")
    def _check_variant(self) -> "Booking":
        if self.end_at_ms <= self.start_at_ms:
            raise ValueError("end_at_ms must be after start_at_ms")
        has_proposal = self.proposed_start_at_ms is not None
        if has_proposal != (self.status in _PROPOSAL_STATUSES):
            raise ValueError(
                f"proposed_start_at_ms is only valid for proposal statuses, "
                f"got status '{self.status.value}'"
            )
        if self.proposal_note is not None and self.status != BookingStatus.PROPOSED_BY_COMPANY:
            raise ValueError("proposal_note is only valid for proposed_by_company")
        has_fee = (
            self.cancellation_fee_percent is not None
            or self.cancellation_fee_amount is not None
        )
        if has_fee != (self.status == BookingStatus.CANCELLED_WITH_FEE):
            raise ValueError("cancellation fee fields are only valid for cancelled_with_fee")
        return self

    @property
    def occupied_start_at_ms(self) -> int:
        return self.start_at_ms - self.service_buffer_before_min * MS_PER_MINUTE

    @property
    def occupied_end_at_ms(self) -> int:
        return self.end_at_ms + self.service_buffer_after_min * MS_PER_MINUTE

    @property
    def is_occupying(self) -> bool:
        return self.status in OCCUPYING_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class BookingSlot(BaseModel):
    """Derived, never persisted: one candidate start time for a staff member."""

    key: str
    booking_date: str
    start_at_ms: int
    end_at_ms: int
    label: str
    total_capacity: int
    remaining_capacity: int

    @property
    def is_full(self) -> bool:
        return self.remaining_capacity <= 0


class SlotQuery(BaseModel):
    """Validated slot query input."""

    company_id: str = Field(min_length=1)
    staff_id: str = Field(min_length=1)
    booking_date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    service_duration_min: int = Field(ge=1)
    buffer_before_min: int = Field(default=0, ge=0)
    buffer_after_min: int = Field(default=0, ge=0)
    capacity: int = Field(default=1, ge=1)


class CreateBookingRequest(BaseModel):
    """Customer-side booking creation payload."""

    company_id: str
    service_id: str
    staff_id: str
    customer_id: str
    customer_name: str
    customer_phone: str
    start_at_ms: int
    note: Optional[str] = None


class BookingFilter(BaseModel):
    """Live-query / list filter. Unset fields match everything."""

    company_id: Optional[str] = None
    customer_id: Optional[str] = None
    staff_id: Optional[str] = None
    booking_date: Optional[str] = None
    statuses: Optional[frozenset[BookingStatus]] = None

    def matches(self, booking: Booking) -> bool:
        if self.company_id is not None and booking.company_id != self.company_id:
            return False
        if self.customer_id is not None and booking.customer_id != self.customer_id:
            return False
        if self.staff_id is not None and booking.staff_id != self.staff_id:
            return False
        if self.booking_date is not None and booking.booking_date != self.booking_date:
            return False
        if self.statuses is not None and booking.status not in self.statuses:
            return False
        return True
