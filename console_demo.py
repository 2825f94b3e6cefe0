"""
Offline console demo: drives the booking engine against the in-memory store.

Runs the real slot calculator, lifecycle machine, rescheduling protocol
and subscription gateway. No database, no push delivery, no network calls.

Usage:
    python console_demo.py
    python console_demo.py --scenario propose
    python console_demo.py --scenario reschedule
"""

import argparse
import asyncio
from datetime import date, timedelta

from booking_engine.config import settings
from booking_engine.errors import BookingError
from booking_engine.lifecycle import (
    BookingLifecycle,
    ReschedulingProtocol,
    SubscriptionGateway,
)
from booking_engine.logging_context import set_request_id
from booking_engine.schemas.booking_schema import (
    Booking,
    CreateBookingRequest,
    ServiceDefinition,
    StaffMember,
)
from booking_engine.schemas.company_schema import CompanyBookingSettings
from booking_engine.tools.availability import SlotAvailabilityCalculator, filter_selectable
from booking_engine.tools.notifications import InMemoryNotificationSink
from booking_engine.tools.store import InMemoryBookingStore
from booking_engine.utils import format_date_key, format_moment, get_zone, now_ms, weekday_key

BLUE = "\033[94m"
GREEN = "\033[92m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

COMPANY_ID = "demo-salon"
STAFF_ID = "staff-lotte"
CUSTOMER_ID = "cust-demo"


class ConsoleSession:
    """Plays one booking negotiation end to end in the terminal."""

    SCENARIOS = ("accept", "propose", "reschedule", "cancel")

    def __init__(self) -> None:
        self.store = InMemoryBookingStore()
        self.sink = InMemoryNotificationSink()
        self.calculator = SlotAvailabilityCalculator(self.store)
        self.lifecycle = BookingLifecycle(self.store, self.sink)
        self.rescheduling = ReschedulingProtocol(self.calculator, self.lifecycle, self.store)
        self.gateway = SubscriptionGateway(self.store)
        self.company_settings = CompanyBookingSettings()
        self.tz = get_zone(self.company_settings.timezone)
        self.service = ServiceDefinition(
            id="svc-cut", company_id=COMPANY_ID, name="Haircut", duration_min=30,
            buffer_before_min=5, buffer_after_min=5, capacity=1, price=35.0,
        )
        self._seed()

    def _seed(self) -> None:
        self.store.put_company_settings(COMPANY_ID, self.company_settings)
        self.store.put_service(self.service)
        self.store.put_staff(StaffMember(id=STAFF_ID, company_id=COMPANY_ID, display_name="Lotte"))

    def say(self, actor: str, text: str) -> None:
        colour = GREEN if actor == "Salon" else BLUE
        print(f"{colour}{BOLD}[{actor}]{RESET} {colour}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def _next_open_day(self) -> str:
        day = date.today() + timedelta(days=1)
        while not self.company_settings.day(weekday_key(format_date_key(day))).open:
            day += timedelta(days=1)
        return format_date_key(day)

    async def _slots(self, booking_date: str):
        slots = await self.calculator.compute_slots(
            COMPANY_ID, STAFF_ID, booking_date, self.service.duration_min,
            self.service.buffer_before_min, self.service.buffer_after_min, self.service.capacity,
        )
        return filter_selectable(slots, now_ms())

    async def _create(self) -> Booking:
        booking_date = self._next_open_day()
        slots = await self._slots(booking_date)
        self.system_log(f"{len(slots)} selectable slots on {booking_date}: "
                        f"{', '.join(s.label.split(' - ')[0] for s in slots[:6])} ...")
        chosen = slots[2]
        self.say("Customer", f"I'd like a haircut at {chosen.label} on {booking_date}.")
        booking = await self.lifecycle.create_booking(CreateBookingRequest(
            company_id=COMPANY_ID,
            service_id=self.service.id,
            staff_id=STAFF_ID,
            customer_id=CUSTOMER_ID,
            customer_name="Demo Customer",
            customer_phone="06 1234 5678",
            start_at_ms=chosen.start_at_ms,
        ))
        self.system_log(f"Booking {booking.id} is '{booking.status.value}'")
        return booking

    async def run_scenario(self, scenario: str) -> None:
        set_request_id(f"DEMO-{scenario}")
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  SALON BOOKING ENGINE - Scenario: {scenario}{RESET}")
        print(f"{BOLD}  Service: {settings.service_name}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()

        inbox = self.gateway.subscribe_company(
            COMPANY_ID,
            on_data=lambda rows: self.system_log(
                "Inbox: " + ", ".join(f"{b.id}={b.status.value}" for b in rows)
            ),
        )
        await inbox.wait_for_first()
        try:
            booking = await self._create()
            if scenario == "accept":
                await self._accept(booking)
            elif scenario == "propose":
                await self._propose(booking)
            elif scenario == "reschedule":
                await self._reschedule(booking)
            else:
                await self._cancel(booking)
        except BookingError as exc:
            print(f"{RED}{exc.user_message}{RESET} {DIM}({exc}){RESET}")
        finally:
            inbox.cancel()

        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        for event in self.sink.events:
            print(f"{DIM}  -> {event.recipient.value}: {event.title}: {event.body}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    async def _accept(self, booking: Booking) -> None:
        self.say("Salon", "Accepted, see you then.")
        await self.lifecycle.accept_booking(booking.id, COMPANY_ID)

    async def _propose(self, booking: Booking) -> None:
        slots = await self.rescheduling.proposal_slots(booking, booking.booking_date)
        offer = slots[-1]
        self.say("Salon", f"We're busy then. How about {offer.label}?")
        await self.rescheduling.propose(
            booking.id, COMPANY_ID, offer.start_at_ms, note="Lotte is free later that day",
        )
        self.say("Customer", "That works.")
        confirmed = await self.lifecycle.accept_proposal(booking.id, CUSTOMER_ID)
        self.system_log(f"Now at {format_moment(confirmed.start_at_ms, self.tz)}")

    async def _reschedule(self, booking: Booking) -> None:
        await self.lifecycle.accept_booking(booking.id, COMPANY_ID)
        new_start = booking.start_at_ms + 2 * 60 * 60_000
        self.say("Customer", f"Could we move to {format_moment(new_start, self.tz)}?")
        await self.lifecycle.request_reschedule(booking.id, CUSTOMER_ID, new_start)
        self.say("Salon", "Approved.")
        await self.lifecycle.respond_to_customer_reschedule(booking.id, COMPANY_ID, "approved")

    async def _cancel(self, booking: Booking) -> None:
        await self.lifecycle.accept_booking(booking.id, COMPANY_ID)
        self.say("Customer", "Sorry, I have to cancel.")
        cancelled = await self.lifecycle.cancel_booking(booking.id, CUSTOMER_ID)
        self.system_log(f"Final status: {cancelled.status.value}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline booking engine demo")
    parser.add_argument(
        "--scenario",
        choices=ConsoleSession.SCENARIOS,
        default="accept",
        help="Which negotiation to play",
    )
    args = parser.parse_args()
    asyncio.run(ConsoleSession().run_scenario(args.scenario))


if __name__ == "__main__":
    main()
