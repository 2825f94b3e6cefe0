"""
Centralized configuration with environment variable overrides.

Scheduling defaults, negotiation limits, and watchdog timeouts are
configurable here. Nothing is hardcoded in calculator or lifecycle logic.
"""

import logging
import os
import re
from dataclasses import dataclass, field

from dotenv import load_dotenv

from booking_engine.logging_context import configure_logging, get_request_logger

load_dotenv()

logger = get_request_logger(__name__)

VALID_INTERVALS: tuple[int, ...] = (5, 10, 15, 20, 30, 45, 60)

_HHMM = re.compile(r"^\d{2}:\d{2}$")


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class BookingConfig:
    """Scheduling and negotiation settings loaded from environment or defaults."""

    timezone: str = os.getenv("BOOKING_TIMEZONE", "Europe/Amsterdam")
    interval_min: int = _safe_int("BOOKING_INTERVAL_MIN", "30")
    default_open: str = os.getenv("BOOKING_DEFAULT_OPEN", "09:00")
    default_close: str = os.getenv("BOOKING_DEFAULT_CLOSE", "18:00")
    min_lead_seconds: int = _safe_int("MIN_LEAD_SECONDS", "60")
    proposal_lookahead_days: int = _safe_int("PROPOSAL_LOOKAHEAD_DAYS", "7")
    proposal_note_max_length: int = _safe_int("PROPOSAL_NOTE_MAX_LENGTH", "240")
    late_cancel_window_hours: int = _safe_int("LATE_CANCEL_WINDOW_HOURS", "24")
    late_cancel_fee_percent: int = _safe_int("LATE_CANCEL_FEE_PERCENT", "15")


@dataclass(frozen=True)
class SubscriptionConfig:
    """Live-query watchdog settings."""

    first_response_timeout_sec: float = _safe_float("FIRST_RESPONSE_TIMEOUT_SEC", "12.0")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    booking: BookingConfig = field(default_factory=BookingConfig)
    subscriptions: SubscriptionConfig = field(default_factory=SubscriptionConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    service_name: str = os.getenv("SERVICE_NAME", "salon-booking-engine")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    booking = config.booking
    if booking.interval_min not in VALID_INTERVALS:
        raise ValueError(
            f"BOOKING_INTERVAL_MIN must be one of {list(VALID_INTERVALS)}, "
            f"got {booking.interval_min}"
        )
    for name, value in [
        ("BOOKING_DEFAULT_OPEN", booking.default_open),
        ("BOOKING_DEFAULT_CLOSE", booking.default_close),
    ]:
        if not _HHMM.match(value):
            raise ValueError(f"{name} must be in HH:MM format, got {value!r}")
    if booking.default_close <= booking.default_open:
        raise ValueError(
            "BOOKING_DEFAULT_CLOSE must be after BOOKING_DEFAULT_OPEN, "
            f"got {booking.default_open}-{booking.default_close}"
        )
    if booking.min_lead_seconds < 0:
        raise ValueError(
            f"MIN_LEAD_SECONDS must be >= 0, got {booking.min_lead_seconds}"
        )
    if booking.proposal_lookahead_days < 1:
        raise ValueError(
            f"PROPOSAL_LOOKAHEAD_DAYS must be >= 1, got {booking.proposal_lookahead_days}"
        )
    if booking.proposal_note_max_length < 1:
        raise ValueError(
            "PROPOSAL_NOTE_MAX_LENGTH must be >= 1, "
            f"got {booking.proposal_note_max_length}"
        )
    if booking.late_cancel_window_hours < 0:
        raise ValueError(
            "LATE_CANCEL_WINDOW_HOURS must be >= 0, "
            f"got {booking.late_cancel_window_hours}"
        )
    if not 0 <= booking.late_cancel_fee_percent <= 100:
        raise ValueError(
            "LATE_CANCEL_FEE_PERCENT must be between 0 and 100, "
            f"got {booking.late_cancel_fee_percent}"
        )
    if config.subscriptions.first_response_timeout_sec <= 0:
        raise ValueError(
            "FIRST_RESPONSE_TIMEOUT_SEC must be > 0, "
            f"got {config.subscriptions.first_response_timeout_sec}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    configure_logging(getattr(logging, config.log_level.upper(), logging.INFO))
    logger.info("Configuration loaded for '%s'", config.service_name)
    return config


# Singleton instance
settings = load_config()
