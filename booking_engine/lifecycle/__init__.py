from booking_engine.lifecycle.rescheduling import ReschedulingProtocol
from booking_engine.lifecycle.state_machine import (
    TRANSITIONS,
    BookingLifecycle,
    BookingTrigger,
    RescheduleDecision,
)
from booking_engine.lifecycle.subscriptions import (
    BookingSubscription,
    CancellationToken,
    SubscriptionGateway,
)

__all__ = [
    "BookingLifecycle",
    "BookingTrigger",
    "RescheduleDecision",
    "TRANSITIONS",
    "ReschedulingProtocol",
    "SubscriptionGateway",
    "BookingSubscription",
    "CancellationToken",
]
