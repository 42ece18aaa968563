"""
Tests for settings validation and the error catalog.
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError as SettingsValidationError

from roster_gate.config import Settings
from roster_gate.services.errors import (
    HTTP_STATUS,
    ErrorKind,
    ExpiredError,
    RateLimitedError,
    error_for_kind
)
from roster_gate.utils.messages import ERROR_MESSAGES, error_message, success_message


class TestSettings:
    """Test cases for Settings."""

    def test_defaults(self):
        config = Settings(_env_file=None)

        assert config.is_development is True
        assert config.otp_config().expiry == timedelta(minutes=5)
        assert config.otp_config().code_length == 6
        assert config.rate_limit_config().limit == 5
        assert config.rate_limit_config().window == timedelta(hours=1)
        assert config.cache_config().ttl == timedelta(hours=24)

    def test_supabase_backend_requires_credentials(self):
        with pytest.raises(SettingsValidationError):
            Settings(_env_file=None, store_backend="supabase")

    def test_production_requires_secret_and_admin_key(self):
        with pytest.raises(SettingsValidationError):
            Settings(_env_file=None, environment="production", admin_api_key="key")
        with pytest.raises(SettingsValidationError):
            Settings(_env_file=None, environment="production", roster_hash_secret="a-real-production-secret")

    @pytest.mark.parametrize("field,value", [
        ("environment", "staging"),
        ("store_backend", "redis"),
        ("message_locale", "fr"),
        ("roster_hash_secret", "short"),
        ("otp_code_length", 3),
    ])
    def test_invalid_values(self, field, value):
        with pytest.raises(SettingsValidationError):
            Settings(_env_file=None, **{field: value})


class TestErrorCatalog:
    """Test cases for error kinds and messages."""

    def test_every_kind_has_status_and_messages(self):
        for kind in ErrorKind:
            assert kind in HTTP_STATUS
            assert kind in ERROR_MESSAGES["he"]
            assert kind in ERROR_MESSAGES["en"]

    def test_error_for_kind(self):
        error = error_for_kind(ErrorKind.EXPIRED)

        assert isinstance(error, ExpiredError)
        assert error.status_code == 410

    def test_rate_limited_needs_reset_time(self):
        with pytest.raises(ValueError):
            error_for_kind(ErrorKind.RATE_LIMITED)

        error = RateLimitedError(datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc))
        assert error.status_code == 429

    def test_rate_limited_message_uses_israel_time(self):
        reset_time = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)

        assert error_message(ErrorKind.RATE_LIMITED, "he", reset_time).endswith("12:00")
        assert error_message(ErrorKind.RATE_LIMITED, "en", reset_time) == "Too many attempts. Try again at 12:00"

    def test_unknown_locale_falls_back_to_hebrew(self):
        assert error_message(ErrorKind.EXPIRED, "fr") == ERROR_MESSAGES["he"][ErrorKind.EXPIRED]

    def test_sms_body(self):
        body = success_message("sms_body", "he", code="123456", minutes=5)

        assert "123456" in body
        assert "5 דקות" in body
