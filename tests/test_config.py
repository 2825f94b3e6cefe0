"""Tests for configuration loading and validation."""

import dataclasses

import pytest

from booking_engine.config import AppConfig, BookingConfig, SubscriptionConfig, _validate_config


def config_with(booking: BookingConfig = None, subscriptions: SubscriptionConfig = None) -> AppConfig:
    config = AppConfig.__new__(AppConfig)
    object.__setattr__(config, "booking", booking or BookingConfig())
    object.__setattr__(config, "subscriptions", subscriptions or SubscriptionConfig())
    object.__setattr__(config, "log_level", "INFO")
    object.__setattr__(config, "service_name", "test")
    return config


class TestConfigValidation:
    def test_default_config_passes_validation(self):
        config = AppConfig()
        _validate_config(config)  # should not raise

    def test_invalid_interval(self):
        booking = dataclasses.replace(BookingConfig(), interval_min=7)
        with pytest.raises(ValueError, match="BOOKING_INTERVAL_MIN"):
            _validate_config(config_with(booking))

    def test_malformed_open_time(self):
        booking = dataclasses.replace(BookingConfig(), default_open="9am")
        with pytest.raises(ValueError, match="BOOKING_DEFAULT_OPEN"):
            _validate_config(config_with(booking))

    def test_close_before_open(self):
        booking = dataclasses.replace(BookingConfig(), default_open="18:00", default_close="09:00")
        with pytest.raises(ValueError, match="BOOKING_DEFAULT_CLOSE"):
            _validate_config(config_with(booking))

    def test_negative_lead_time(self):
        booking = dataclasses.replace(BookingConfig(), min_lead_seconds=-1)
        with pytest.raises(ValueError, match="MIN_LEAD_SECONDS"):
            _validate_config(config_with(booking))

    def test_zero_lookahead(self):
        booking = dataclasses.replace(BookingConfig(), proposal_lookahead_days=0)
        with pytest.raises(ValueError, match="PROPOSAL_LOOKAHEAD_DAYS"):
            _validate_config(config_with(booking))

    def test_fee_above_hundred_percent(self):
        booking = dataclasses.replace(BookingConfig(), late_cancel_fee_percent=150)
        with pytest.raises(ValueError, match="LATE_CANCEL_FEE_PERCENT"):
            _validate_config(config_with(booking))

    def test_non_positive_watchdog(self):
        subscriptions = SubscriptionConfig.__new__(SubscriptionConfig)
        object.__setattr__(subscriptions, "first_response_timeout_sec", 0.0)
        with pytest.raises(ValueError, match="FIRST_RESPONSE_TIMEOUT_SEC"):
            _validate_config(config_with(subscriptions=subscriptions))

    def test_safe_int_parsing(self):
        from booking_engine.config import _safe_int

        assert _safe_int("NONEXISTENT_VAR_12345", "42") == 42

    def test_safe_int_names_the_variable(self, monkeypatch):
        from booking_engine.config import _safe_int

        monkeypatch.setenv("BOOKING_TEST_INT", "thirty")
        with pytest.raises(ValueError, match="BOOKING_TEST_INT"):
            _safe_int("BOOKING_TEST_INT", "30")

    def test_safe_float_parsing(self):
        from booking_engine.config import _safe_float

        assert _safe_float("NONEXISTENT_VAR_12345", "3.14") == pytest.approx(3.14)


class TestDefaults:
    def test_booking_defaults(self):
        booking = BookingConfig()
        assert booking.proposal_note_max_length == 240
        assert booking.min_lead_seconds == 60
        assert booking.proposal_lookahead_days == 7

    def test_watchdog_default(self):
        assert SubscriptionConfig().first_response_timeout_sec == pytest.approx(12.0)
