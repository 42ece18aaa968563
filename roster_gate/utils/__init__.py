# Utilities module

from .phone_utils import (
    format_phone_number,
    mask_phone_number,
    validate_phone_number,
)
from .messages import (
    error_message,
    success_message,
)

__all__ = [
    "format_phone_number",
    "mask_phone_number",
    "validate_phone_number",
    "error_message",
    "success_message",
]
