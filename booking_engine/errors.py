"""Error taxonomy surfaced by the calculator and the lifecycle machine.

Every error carries a ``user_message`` that callers can show as-is after
rolling back optimistic UI state.
"""

from typing import Optional


class BookingError(Exception):
    """Base class for all booking engine failures."""

    retryable: bool = False
    default_user_message: str = "Something went wrong. Please try again."

    def __init__(self, message: str, user_message: Optional[str] = None) -> None:
        super().__init__(message)
        self.user_message = user_message or self.default_user_message


class ValidationError(BookingError):
    """Malformed or missing input. Never retried automatically."""

    default_user_message = "Some booking details are invalid."


class InvalidTransitionError(BookingError):
    """The booking is not in the status the operation requires."""

    default_user_message = "This booking was already handled."

    def __init__(
        self,
        message: str,
        current_status: Optional[str] = None,
        user_message: Optional[str] = None,
    ) -> None:
        super().__init__(message, user_message)
        self.current_status = current_status


class SlotUnavailableError(BookingError):
    """The chosen time filled up before the write could commit."""

    default_user_message = "This time slot was just taken. Please pick another one."


class NotFoundError(BookingError):
    default_user_message = "Booking not found."


class ForbiddenError(BookingError):
    default_user_message = "You do not have access to this booking."


class StoreUnavailableError(BookingError):
    """Transient I/O failure talking to the document store."""

    retryable = True
    default_user_message = "The booking service is temporarily unavailable."


class WatchdogTimeoutError(BookingError):
    """No first response arrived within the watchdog window."""

    retryable = True
    default_user_message = "This is taking longer than expected. Check your connection."
