"""Tests for shared utility functions."""

from datetime import date

import pytest

from booking_engine.utils import (
    clean_optional_text,
    date_key_for_ms,
    date_keys_from,
    format_moment,
    format_time_label,
    get_zone,
    hhmm_to_minutes,
    is_valid_date_key,
    local_minutes_for_ms,
    local_ms,
    minutes_to_hhmm,
    normalize_phone,
    overlaps,
    parse_date_key,
    weekday_key,
)

UTC = get_zone("UTC")
AMSTERDAM = get_zone("Europe/Amsterdam")


class TestNormalizePhone:
    def test_strips_spaces(self):
        assert normalize_phone("06 1234 5678") == "0612345678"

    def test_strips_dashes(self):
        assert normalize_phone("06-1234-5678") == "0612345678"

    def test_preserves_leading_plus(self):
        assert normalize_phone("+31 6 1234 5678") == "+31612345678"

    def test_strips_whitespace(self):
        assert normalize_phone("  0612345678  ") == "0612345678"

    def test_mixed_separators(self):
        assert normalize_phone("+31 (6) 1234-5678") == "+31612345678"


class TestDateKeys:
    def test_parse(self):
        assert parse_date_key("2030-03-15") == date(2030, 3, 15)

    @pytest.mark.parametrize("value", ["2030-3-15", "15-03-2030", "2030-02-30", "", None])
    def test_invalid(self, value):
        assert not is_valid_date_key(value)

    def test_weekday(self):
        assert weekday_key("2030-03-15") == "fri"
        assert weekday_key("2030-03-17") == "sun"

    def test_consecutive_keys_cross_month(self):
        assert date_keys_from("2030-03-30", 3) == ["2030-03-30", "2030-03-31", "2030-04-01"]


class TestClockTimes:
    def test_hhmm_round_trip(self):
        assert hhmm_to_minutes("09:30") == 570
        assert minutes_to_hhmm(570) == "09:30"

    def test_midnight_end_is_end_of_day(self):
        assert hhmm_to_minutes("24:00") == 24 * 60
        assert hhmm_to_minutes("23:59") == 24 * 60 - 1

    def test_clamped_to_day(self):
        assert hhmm_to_minutes("24:30") == 24 * 60
        assert hhmm_to_minutes("00:00") == 0

    def test_malformed(self):
        with pytest.raises(ValueError):
            hhmm_to_minutes("9.30")


class TestTimezones:
    def test_unknown_zone(self):
        with pytest.raises(ValueError, match="Unknown timezone"):
            get_zone("Mars/Olympus_Mons")

    def test_local_ms_uses_zone_offset(self):
        utc = local_ms("2030-01-10", 600, UTC)
        amsterdam = local_ms("2030-01-10", 600, AMSTERDAM)
        assert utc - amsterdam == 60 * 60_000

    def test_date_key_is_local(self):
        # 23:30 UTC on the 10th is already the 11th in Amsterdam.
        ts = local_ms("2030-01-10", 23 * 60 + 30, UTC)
        assert date_key_for_ms(ts, UTC) == "2030-01-10"
        assert date_key_for_ms(ts, AMSTERDAM) == "2030-01-11"

    def test_local_minutes(self):
        ts = local_ms("2030-06-10", 615, AMSTERDAM)
        assert local_minutes_for_ms(ts, AMSTERDAM) == 615


class TestFormatting:
    def test_time_label(self):
        start = local_ms("2030-03-15", 570, UTC)
        assert format_time_label(start, start + 30 * 60_000, UTC) == "09:30 - 10:00"

    def test_moment(self):
        assert format_moment(local_ms("2030-03-15", 840, UTC), UTC) == "15-03 14:00"

    def test_moment_missing(self):
        assert format_moment(None, UTC) == "soon"


class TestOverlaps:
    def test_strict(self):
        assert overlaps(0, 10, 5, 15)
        assert not overlaps(0, 10, 10, 20)
        assert not overlaps(10, 20, 0, 10)

    def test_containment(self):
        assert overlaps(0, 100, 10, 20)


class TestCleanOptionalText:
    def test_blank(self):
        assert clean_optional_text("   ") is None
        assert clean_optional_text(None) is None

    def test_trim(self):
        assert clean_optional_text("  hi ") == "hi"
