"""
Tests for phone number utilities.
"""

import pytest

from roster_gate.utils.phone_utils import (
    format_phone_number,
    mask_phone_number,
    validate_phone_number
)


class TestFormatPhoneNumber:
    """Test cases for format_phone_number."""

    @pytest.mark.parametrize("raw", [
        "0501234567",
        "050-123-4567",
        "501234567",
        "972501234567",
        "+972501234567",
        "+972 50 123 4567",
    ])
    def test_israeli_formats_normalize(self, raw):
        assert format_phone_number(raw) == "+972501234567"

    def test_international_number_kept(self):
        assert format_phone_number("+1 (555) 123-4567") == "+15551234567"


class TestValidatePhoneNumber:
    """Test cases for validate_phone_number."""

    @pytest.mark.parametrize("raw", ["+972501234567", "0501234567", "972501234567"])
    def test_valid_numbers(self, raw):
        is_valid, formatted, error = validate_phone_number(raw)
        assert is_valid is True
        assert formatted == "+972501234567"
        assert error is None

    @pytest.mark.parametrize("raw", ["123", "12345", "abc123", ""])
    def test_invalid_numbers(self, raw):
        is_valid, formatted, error = validate_phone_number(raw)
        assert is_valid is False
        assert formatted is None
        assert error

    def test_empty_number_message(self):
        assert validate_phone_number("")[2] == "Phone number is required"

    def test_international_number_length_check(self):
        is_valid, formatted, _ = validate_phone_number("+1 555 123 4567")
        assert is_valid is True
        assert formatted == "+15551234567"


class TestMaskPhoneNumber:
    """Test cases for mask_phone_number."""

    def test_masks_middle_digits(self):
        masked = mask_phone_number("+972501234567")
        assert masked == "+97250***4567"
        assert "123" not in masked

    def test_short_input_fully_masked(self):
        assert mask_phone_number("12345") == "***"
