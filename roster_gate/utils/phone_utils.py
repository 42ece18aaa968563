"""
Phone number normalization and validation.

Numbers are normalized to E.164. Local Israeli formats (``050-1234567``,
``501234567``, ``972501234567``) map to ``+972501234567``; anything else is
treated as an international number that already carries its country code.
"""

import re
from typing import Optional, Tuple

ISRAEL_COUNTRY_CODE = "972"

_NON_DIGITS = re.compile(r"[^0-9]")


def format_phone_number(phone_number: str) -> str:
    """
    Format a phone number into E.164 form.

    Args:
        phone_number: Raw user input

    Returns:
        Number prefixed with ``+`` and its country code
    """
    digits = _NON_DIGITS.sub("", phone_number)

    if digits.startswith(ISRAEL_COUNTRY_CODE):
        return f"+{digits}"
    if digits.startswith("0"):
        return f"+{ISRAEL_COUNTRY_CODE}{digits[1:]}"
    if len(digits) == 9:
        return f"+{ISRAEL_COUNTRY_CODE}{digits}"
    return f"+{digits}"


def validate_phone_number(phone_number: str) -> Tuple[bool, Optional[str], Optional[str]]:
    """
    Validate and normalize a phone number.

    Args:
        phone_number: Raw user input

    Returns:
        Tuple of (is_valid, formatted_number, error_message)
    """
    if not phone_number or not isinstance(phone_number, str):
        return False, None, "Phone number is required"

    formatted = format_phone_number(phone_number)

    if formatted.startswith(f"+{ISRAEL_COUNTRY_CODE}"):
        national = formatted[len(ISRAEL_COUNTRY_CODE) + 1:]
        if len(national) == 9 and national[0] in "56789":
            return True, formatted, None

    # Other international numbers only get a length check
    if 10 <= len(formatted) <= 15:
        return True, formatted, None

    return False, None, "Invalid phone number format"


def mask_phone_number(phone_number: str) -> str:
    """Mask the middle of a phone number for logs, e.g. ``+97250***4567``."""
    if not phone_number or len(phone_number) < 8:
        return "***"
    return f"{phone_number[:6]}***{phone_number[-4:]}"
