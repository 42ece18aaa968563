"""
Error taxonomy for OTP verification and roster lookup.

Every failure the service reports carries an ``ErrorKind`` so the API layer
can map it to an HTTP status and a localized message without inspecting
exception text.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Type


class ErrorKind(str, Enum):
    """Structured failure kinds reported to callers."""
    VALIDATION = "ValidationError"
    RATE_LIMITED = "RateLimitedError"
    SESSION_NOT_FOUND = "SessionNotFoundError"
    ALREADY_USED = "AlreadyUsedError"
    EXPIRED = "ExpiredError"
    CODE_MISMATCH = "CodeMismatchError"
    ATTEMPTS_EXHAUSTED = "AttemptsExhaustedError"
    GATEWAY = "GatewayError"
    PERSONNEL_NOT_FOUND = "PersonnelNotFoundError"
    ALREADY_REGISTERED = "AlreadyRegisteredError"
    PHONE_NOT_VERIFIED = "PhoneNotVerifiedError"
    DUPLICATE_IDENTIFIER = "DuplicateIdentifierError"
    UNAUTHORIZED = "UnauthorizedError"
    INFRASTRUCTURE = "InfrastructureError"


HTTP_STATUS: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.SESSION_NOT_FOUND: 404,
    ErrorKind.ALREADY_USED: 409,
    ErrorKind.EXPIRED: 410,
    ErrorKind.CODE_MISMATCH: 400,
    ErrorKind.ATTEMPTS_EXHAUSTED: 429,
    ErrorKind.GATEWAY: 502,
    ErrorKind.PERSONNEL_NOT_FOUND: 404,
    ErrorKind.ALREADY_REGISTERED: 409,
    ErrorKind.PHONE_NOT_VERIFIED: 403,
    ErrorKind.DUPLICATE_IDENTIFIER: 409,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.INFRASTRUCTURE: 500,
}


class GateError(Exception):
    """Base exception for roster gate failures."""

    kind: ErrorKind = ErrorKind.INFRASTRUCTURE

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.kind.value)
        self.detail = detail

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.kind]


class ValidationError(GateError):
    """Raised for malformed or missing input, before any store access."""
    kind = ErrorKind.VALIDATION


class RateLimitedError(GateError):
    """Raised when a phone number has used its OTP request budget."""
    kind = ErrorKind.RATE_LIMITED

    def __init__(self, reset_time: datetime, detail: str = ""):
        super().__init__(detail or f"Rate limited until {reset_time.isoformat()}")
        self.reset_time = reset_time


class SessionNotFoundError(GateError):
    kind = ErrorKind.SESSION_NOT_FOUND


class AlreadyUsedError(GateError):
    kind = ErrorKind.ALREADY_USED


class ExpiredError(GateError):
    kind = ErrorKind.EXPIRED


class CodeMismatchError(GateError):
    kind = ErrorKind.CODE_MISMATCH


class AttemptsExhaustedError(GateError):
    kind = ErrorKind.ATTEMPTS_EXHAUSTED


class GatewayError(GateError):
    """Raised when the SMS gateway did not accept the message."""
    kind = ErrorKind.GATEWAY


class PersonnelNotFoundError(GateError):
    kind = ErrorKind.PERSONNEL_NOT_FOUND


class AlreadyRegisteredError(GateError):
    kind = ErrorKind.ALREADY_REGISTERED


class PhoneNotVerifiedError(GateError):
    kind = ErrorKind.PHONE_NOT_VERIFIED


class DuplicateIdentifierError(GateError):
    kind = ErrorKind.DUPLICATE_IDENTIFIER


class UnauthorizedError(GateError):
    kind = ErrorKind.UNAUTHORIZED


class InfrastructureError(GateError):
    """Raised when a backing store is unreachable or misbehaves."""
    kind = ErrorKind.INFRASTRUCTURE


_ERRORS_BY_KIND: Dict[ErrorKind, Type[GateError]] = {
    cls.kind: cls
    for cls in (
        ValidationError,
        SessionNotFoundError,
        AlreadyUsedError,
        ExpiredError,
        CodeMismatchError,
        AttemptsExhaustedError,
        GatewayError,
        PersonnelNotFoundError,
        AlreadyRegisteredError,
        PhoneNotVerifiedError,
        DuplicateIdentifierError,
        UnauthorizedError,
        InfrastructureError,
    )
}


def error_for_kind(kind: ErrorKind, detail: Optional[str] = None) -> GateError:
    """Build the exception matching a reported failure kind."""
    if kind is ErrorKind.RATE_LIMITED:
        raise ValueError("RateLimitedError needs a reset time; construct it directly")
    return _ERRORS_BY_KIND[kind](detail or "")
