"""Data models for the registration gate."""

from .api_models import (
    SendOTPRequest,
    SendOTPResponse,
    VerifyOTPRequest,
    VerifyOTPResponse,
    LookupPersonnelRequest,
    LookupPersonnelResponse,
    ClaimRegistrationRequest,
    ClaimRegistrationResponse,
    PersonnelCreateRequest,
    PersonnelCreateResponse,
    BulkImportRequest,
    BulkImportResponse,
    RosterResponse,
    CleanupResponse,
    HealthResponse,
    ErrorResponse
)
from .internal_models import (
    OTPSession,
    OTPState,
    AuthorizedPersonnelRecord,
    PersonnelEntry,
    PersonnelProfile,
    RosterImportResult
)

__all__ = [
    "SendOTPRequest",
    "SendOTPResponse",
    "VerifyOTPRequest",
    "VerifyOTPResponse",
    "LookupPersonnelRequest",
    "LookupPersonnelResponse",
    "ClaimRegistrationRequest",
    "ClaimRegistrationResponse",
    "PersonnelCreateRequest",
    "PersonnelCreateResponse",
    "BulkImportRequest",
    "BulkImportResponse",
    "RosterResponse",
    "CleanupResponse",
    "HealthResponse",
    "ErrorResponse",
    "OTPSession",
    "OTPState",
    "AuthorizedPersonnelRecord",
    "PersonnelEntry",
    "PersonnelProfile",
    "RosterImportResult"
]
