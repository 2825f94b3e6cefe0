"""Shared date/time and text utilities used across the booking engine.

All wall-clock math happens in the company's local timezone; everything
stored or compared is epoch milliseconds.
"""

import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

MS_PER_MINUTE = 60_000
MINUTES_PER_DAY = 24 * 60

WEEKDAY_KEYS: tuple[str, ...] = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

_DATE_KEY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_HHMM = re.compile(r"^(\d{2}):(\d{2})$")


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("06 1234 5678")
        '0612345678'
        >>> normalize_phone("+31 (6) 1234-5678")
        '+31612345678'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def get_zone(name: str) -> ZoneInfo:
    """Resolve an IANA timezone name, raising ValueError for unknown zones."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone: {name!r}") from None


def parse_date_key(date_key: str) -> date:
    """Parse a ``YYYY-MM-DD`` key. Raises ValueError on malformed keys."""
    if not isinstance(date_key, str) or not _DATE_KEY.match(date_key):
        raise ValueError(f"Invalid date key: {date_key!r}")
    return datetime.strptime(date_key, "%Y-%m-%d").date()


def is_valid_date_key(date_key: str) -> bool:
    try:
        parse_date_key(date_key)
    except ValueError:
        return False
    return True


def format_date_key(value: date) -> str:
    return value.strftime("%Y-%m-%d")


def weekday_key(date_key: str) -> str:
    """Return the schedule key (``mon`` .. ``sun``) for a date key."""
    return WEEKDAY_KEYS[parse_date_key(date_key).weekday()]


def hhmm_to_minutes(value: str) -> int:
    """Convert ``HH:MM`` to minutes after midnight.

    Clamped to ``0..MINUTES_PER_DAY`` so ``24:00`` closes a range at midnight.
    """
    match = _HHMM.match(value.strip())
    if not match:
        raise ValueError(f"Invalid time: {value!r}")
    hours, minutes = int(match.group(1)), int(match.group(2))
    return max(0, min(MINUTES_PER_DAY, hours * 60 + minutes))


def minutes_to_hhmm(total_minutes: int) -> str:
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours:02d}:{minutes:02d}"


def local_ms(date_key: str, minutes: int, tz: ZoneInfo) -> int:
    """Epoch ms of ``minutes`` after local midnight on ``date_key``."""
    day = parse_date_key(date_key)
    base = datetime(day.year, day.month, day.day, tzinfo=tz)
    return int((base + timedelta(minutes=minutes)).timestamp() * 1000)


def date_key_for_ms(timestamp_ms: int, tz: ZoneInfo) -> str:
    """Company-local calendar day of an epoch-ms timestamp."""
    return format_date_key(datetime.fromtimestamp(timestamp_ms / 1000, tz=tz).date())


def local_minutes_for_ms(timestamp_ms: int, tz: ZoneInfo) -> int:
    moment = datetime.fromtimestamp(timestamp_ms / 1000, tz=tz)
    return moment.hour * 60 + moment.minute


def format_time_label(start_ms: int, end_ms: int, tz: ZoneInfo) -> str:
    """Human time range such as ``09:30 - 10:00``."""
    start = datetime.fromtimestamp(start_ms / 1000, tz=tz)
    end = datetime.fromtimestamp(end_ms / 1000, tz=tz)
    return f"{start:%H:%M} - {end:%H:%M}"


def format_moment(timestamp_ms: Optional[int], tz: ZoneInfo) -> str:
    """Short day/month time string for notification bodies."""
    if not timestamp_ms:
        return "soon"
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=tz).strftime("%d-%m %H:%M")


def date_keys_from(start_key: str, days: int) -> list[str]:
    """``days`` consecutive date keys beginning at ``start_key``."""
    start = parse_date_key(start_key)
    return [format_date_key(start + timedelta(days=i)) for i in range(max(1, days))]


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Strict interval overlap; touching windows do not overlap."""
    return a_start < b_end and a_end > b_start


def now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def clean_optional_text(value: Optional[str]) -> Optional[str]:
    """Trim free text; blank becomes None."""
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None
