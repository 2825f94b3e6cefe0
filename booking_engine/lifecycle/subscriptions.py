"""
Live booking feeds for the company inbox and the customer's booking list.

Each subscription is an explicit handle owning its own cancellation token,
so consumers never share a global list and no callback fires after the
handle is cancelled.

Usage:
    gateway = SubscriptionGateway(store)
    async with gateway.subscribe_company("salon-1", on_data=render) as sub:
        await sub.wait_for_first()
        ...
"""

import asyncio
from typing import Callable, Optional

from booking_engine.config import SubscriptionConfig, settings
from booking_engine.errors import ValidationError, WatchdogTimeoutError
from booking_engine.logging_context import get_request_logger
from booking_engine.schemas.booking_schema import Booking, BookingFilter, BookingStatus
from booking_engine.tools.store import BookingStore

logger = get_request_logger(__name__)

OnBookings = Callable[[list[Booking]], None]
OnSubscriptionError = Callable[[Exception], None]


class CancellationToken:
    """One-shot cancel flag shared between a handle and its callbacks."""

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class BookingSubscription:
    """
    Handle for one live booking query.

    ``latest`` holds the most recent batch. ``wait_for_first`` is the
    watchdog: it raises ``WatchdogTimeoutError`` when the first batch is
    late but leaves the query running, so a slow connection can still
    deliver afterwards.
    """

    def __init__(
        self,
        store: BookingStore,
        booking_filter: BookingFilter,
        on_data: Optional[OnBookings] = None,
        on_error: Optional[OnSubscriptionError] = None,
        sort_key: Optional[Callable[[Booking], object]] = None,
        reverse: bool = False,
        config: Optional[SubscriptionConfig] = None,
    ) -> None:
        self.booking_filter = booking_filter
        self.token = CancellationToken()
        self.latest: Optional[list[Booking]] = None
        self.last_error: Optional[Exception] = None
        self._on_data = on_data
        self._on_error = on_error
        self._sort_key = sort_key
        self._reverse = reverse
        self._config = config or settings.subscriptions
        self._first = asyncio.Event()
        self._unsubscribe = store.subscribe(booking_filter, self._handle_data, self._handle_error)

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    def _handle_data(self, bookings: list[Booking]) -> None:
        if self.token.cancelled:
            return
        if self._sort_key is not None:
            bookings = sorted(bookings, key=self._sort_key, reverse=self._reverse)
        self.latest = bookings
        self._first.set()
        if self._on_data is not None:
            self._on_data(bookings)

    def _handle_error(self, error: Exception) -> None:
        if self.token.cancelled:
            return
        self.last_error = error
        logger.warning("Booking subscription error: %s", error)
        if self._on_error is not None:
            self._on_error(error)

    async def wait_for_first(self, timeout: Optional[float] = None) -> list[Booking]:
        """Wait for the first batch, or raise ``WatchdogTimeoutError``."""
        limit = self._config.first_response_timeout_sec if timeout is None else timeout
        try:
            await asyncio.wait_for(self._first.wait(), timeout=limit)
        except asyncio.TimeoutError:
            logger.warning("No booking data within %.1fs", limit)
            raise WatchdogTimeoutError(f"No first batch within {limit}s") from None
        return self.latest or []

    def cancel(self) -> None:
        """Stop the query. Safe to call more than once."""
        if self.token.cancelled:
            return
        self.token.cancel()
        self._unsubscribe()
        logger.debug("Booking subscription cancelled")

    async def __aenter__(self) -> "BookingSubscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.cancel()


def _company_sort_key(booking: Booking) -> tuple[int, str]:
    return (booking.start_at_ms, booking.id)


def _customer_sort_key(booking: Booking) -> tuple[int, str]:
    return (booking.created_at_ms, booking.id)


class SubscriptionGateway:
    """Creates booking subscriptions against a store."""

    def __init__(self, store: BookingStore, config: Optional[SubscriptionConfig] = None) -> None:
        self._store = store
        self._config = config or settings.subscriptions

    def subscribe_company(
        self,
        company_id: str,
        on_data: Optional[OnBookings] = None,
        on_error: Optional[OnSubscriptionError] = None,
        statuses: Optional[frozenset[BookingStatus]] = None,
        booking_date: Optional[str] = None,
    ) -> BookingSubscription:
        """Company inbox, ordered by start time."""
        if not company_id or not company_id.strip():
            raise ValidationError("company_id is required")
        booking_filter = BookingFilter(
            company_id=company_id.strip(), statuses=statuses, booking_date=booking_date
        )
        return BookingSubscription(
            self._store, booking_filter, on_data, on_error,
            sort_key=_company_sort_key, config=self._config,
        )

    def subscribe_customer(
        self,
        customer_id: str,
        on_data: Optional[OnBookings] = None,
        on_error: Optional[OnSubscriptionError] = None,
    ) -> BookingSubscription:
        """Customer's own bookings, newest first."""
        if not customer_id or not customer_id.strip():
            raise ValidationError("customer_id is required")
        booking_filter = BookingFilter(customer_id=customer_id.strip())
        return BookingSubscription(
            self._store, booking_filter, on_data, on_error,
            sort_key=_customer_sort_key, reverse=True, config=self._config,
        )
