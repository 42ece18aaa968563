"""Pydantic models for API requests and responses."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SendOTPRequest(BaseModel):
    """Request model for the send-otp endpoint."""

    phoneNumber: Optional[str] = Field(None, description="Phone number in local or international form")

    model_config = ConfigDict(json_schema_extra={"example": {"phoneNumber": "050-123-4567"}})


class SendOTPResponse(BaseModel):
    """Response model for the send-otp endpoint."""

    success: bool = True
    message: str = Field(..., description="Localized confirmation")
    phoneNumber: str = Field(..., description="Canonical E.164 phone number")
    attemptsRemaining: int = Field(..., ge=0, description="OTP requests left in the current window")
    expiresInMinutes: int = Field(..., gt=0, description="Code lifetime")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "success": True,
            "message": "קוד אימות נשלח בהצלחה",
            "phoneNumber": "+972501234567",
            "attemptsRemaining": 4,
            "expiresInMinutes": 5
        }
    })


class VerifyOTPRequest(BaseModel):
    """Request model for the verify-otp endpoint."""

    phoneNumber: Optional[str] = None
    otpCode: Optional[str] = Field(None, description="Code received over SMS")


class VerifyOTPResponse(BaseModel):
    success: bool = True
    message: str
    phoneNumber: str
    verified: bool


class LookupPersonnelRequest(BaseModel):
    """Request model for the military ID lookup endpoint."""

    militaryId: Optional[str] = Field(None, description="Military ID, 5-7 digits")


class PersonnelProfileModel(BaseModel):
    """Roster fields returned to a registration candidate."""

    phoneNumber: str
    firstName: str
    lastName: str
    rank: str


class LookupPersonnelResponse(BaseModel):
    success: bool = True
    message: str
    personnel: PersonnelProfileModel


class ClaimRegistrationRequest(BaseModel):
    """Request model for consuming a roster entry."""

    militaryId: Optional[str] = None
    phoneNumber: Optional[str] = None


class ClaimRegistrationResponse(BaseModel):
    success: bool = True
    message: str
    personnel: PersonnelProfileModel


class PersonnelCreateRequest(BaseModel):
    """One roster entry as submitted by an administrator."""

    militaryId: str = Field(..., description="Military ID, 5-7 digits")
    phoneNumber: str
    firstName: str
    lastName: str
    rank: str


class RosterEntryModel(BaseModel):
    """Roster entry as listed to administrators; never includes hash material."""

    phoneNumber: str
    firstName: str
    lastName: str
    rank: str
    registered: bool
    createdAt: Optional[str] = None


class PersonnelCreateResponse(BaseModel):
    success: bool = True
    personnel: RosterEntryModel


class BulkImportRequest(BaseModel):
    """Rows of a roster spreadsheet, header row excluded."""

    personnel: List[PersonnelCreateRequest] = Field(..., min_length=1)


class BulkImportResponse(BaseModel):
    """Per-row outcome of a roster import; row numbers start at 2."""

    success: bool = True
    totalProcessed: int
    successful: List[Dict[str, Any]]
    failed: List[Dict[str, Any]]
    duplicates: List[Dict[str, Any]]


class RosterResponse(BaseModel):
    success: bool = True
    count: int
    personnel: List[RosterEntryModel]


class CleanupResponse(BaseModel):
    success: bool = True
    deleted: int = Field(..., ge=0, description="Expired OTP sessions removed")


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str = Field(..., description="Service health status")
    timestamp: datetime = Field(..., description="Health check timestamp")
    version: str = Field(..., description="Service version")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "status": "healthy",
            "timestamp": "2024-01-01T12:00:00Z",
            "version": "1.0.0"
        }
    })


class ErrorResponse(BaseModel):
    """Standard error response model."""

    success: bool = False
    error: str = Field(..., description="Error kind")
    message: str = Field(..., description="Localized human-readable error message")
    correlation_id: str = Field(..., description="Request correlation ID for tracing")
    timestamp: datetime = Field(..., description="Error timestamp")
    resetTime: Optional[datetime] = Field(None, description="When a rate limit window ends")
    details: Optional[Dict[str, Any]] = Field(None, description="Diagnostics, development only")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "success": False,
            "error": "ValidationError",
            "message": "הנתונים שהוזנו אינם תקינים",
            "correlation_id": "req_123456789",
            "timestamp": "2024-01-01T12:00:00Z"
        }
    })
