"""Company booking settings, operating hours, and booking blocks."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from booking_engine.config import VALID_INTERVALS, settings
from booking_engine.utils import WEEKDAY_KEYS, get_zone, hhmm_to_minutes


class TimeRange(BaseModel):
    """One opening window within a day, local ``HH:MM`` times."""

    start: str = Field(pattern=r"^\d{2}:\d{2}$")
    end: str = Field(pattern=r"^\d{2}:\d{2}$")

    @property
    def start_minutes(self) -> int:
        return hhmm_to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return hhmm_to_minutes(self.end)


class DaySchedule(BaseModel):
    open: bool = True
    ranges: list[TimeRange] = Field(default_factory=list)

    @field_validator("ranges")
    @classmethod
    def _drop_empty_ranges(cls, ranges: list[TimeRange]) -> list[TimeRange]:
        return [r for r in ranges if r.end_minutes > r.start_minutes]


def _default_day(open_: bool) -> DaySchedule:
    return DaySchedule(
        open=open_,
        ranges=[TimeRange(start=settings.booking.default_open, end=settings.booking.default_close)],
    )


def default_week_schedule() -> dict[str, DaySchedule]:
    """Monday to Saturday open with default hours, Sunday closed."""
    return {key: _default_day(key != "sun") for key in WEEKDAY_KEYS}


class CompanyBookingSettings(BaseModel):
    """Company-owned booking configuration. Read-only to the engine."""

    enabled: bool = True
    auto_confirm: bool = False
    interval_min: int = settings.booking.interval_min
    default_capacity: int = Field(default=1, ge=1)
    timezone: str = settings.booking.timezone
    week_schedule: dict[str, DaySchedule] = Field(default_factory=default_week_schedule)

    @field_validator("interval_min")
    @classmethod
    def _fallback_interval(cls, value: int) -> int:
        return value if value in VALID_INTERVALS else settings.booking.interval_min

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        get_zone(value)
        return value

    @field_validator("week_schedule")
    @classmethod
    def _fill_missing_days(cls, value: dict[str, DaySchedule]) -> dict[str, DaySchedule]:
        unknown = set(value) - set(WEEKDAY_KEYS)
        if unknown:
            raise ValueError(f"Unknown weekday keys: {sorted(unknown)}")
        defaults = default_week_schedule()
        return {key: value.get(key, defaults[key]) for key in WEEKDAY_KEYS}

    def day(self, weekday: str) -> DaySchedule:
        return self.week_schedule[weekday]


class BookingBlock(BaseModel):
    """A company-declared unavailable window (holiday, training, ...)."""

    id: str
    company_id: str
    start_at_ms: int
    end_at_ms: int
    reason: Optional[str] = None
