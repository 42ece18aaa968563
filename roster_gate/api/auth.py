"""
Registration API endpoints: OTP request and verification, roster lookup and claim.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from roster_gate.config import settings
from roster_gate.middleware import get_correlation_id
from roster_gate.models.api_models import (
    ClaimRegistrationRequest,
    ClaimRegistrationResponse,
    ErrorResponse,
    LookupPersonnelRequest,
    LookupPersonnelResponse,
    PersonnelProfileModel,
    SendOTPRequest,
    SendOTPResponse,
    VerifyOTPRequest,
    VerifyOTPResponse,
)
from roster_gate.models.internal_models import PersonnelProfile
from roster_gate.observability import record_personnel_lookup
from roster_gate.services.errors import HTTP_STATUS, ErrorKind, GateError, RateLimitedError
from roster_gate.services.verification_service import VerificationService, get_verification_service
from roster_gate.utils.messages import error_message, success_message

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1/auth", tags=["registration"])


def create_error_response(
    kind: ErrorKind,
    correlation_id: str,
    reset_time: Optional[datetime] = None,
    details: Optional[Dict[str, Any]] = None
) -> JSONResponse:
    """Create standardized error response."""
    error_response = ErrorResponse(
        error=kind.value,
        message=error_message(kind, settings.message_locale, reset_time),
        correlation_id=correlation_id,
        timestamp=datetime.now(timezone.utc),
        resetTime=reset_time,
        details=details if settings.is_development else None
    )
    return JSONResponse(
        status_code=HTTP_STATUS[kind],
        content=error_response.model_dump(mode="json", exclude_none=True)
    )


def gate_error_response(error: Exception, correlation_id: str, operation: str) -> JSONResponse:
    """Map any exception raised by the service to the error response shape."""
    if not isinstance(error, GateError):
        logger.error(
            "Unexpected error",
            operation=operation,
            error_type=type(error).__name__,
            error=str(error)
        )
        return create_error_response(
            ErrorKind.INFRASTRUCTURE,
            correlation_id,
            details={"error": str(error)}
        )

    log = logger.error if error.status_code >= 500 else logger.info
    log("Request rejected", operation=operation, error=error.kind.value)

    reset_time = error.reset_time if isinstance(error, RateLimitedError) else None
    return create_error_response(
        error.kind,
        correlation_id,
        reset_time=reset_time,
        details={"reason": error.detail} if error.detail else None
    )


def _profile_model(profile: PersonnelProfile) -> PersonnelProfileModel:
    return PersonnelProfileModel(
        phoneNumber=profile.phone_number,
        firstName=profile.first_name,
        lastName=profile.last_name,
        rank=profile.rank
    )


@router.post(
    "/send-otp",
    response_model=SendOTPResponse,
    responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}, 502: {"model": ErrorResponse}}
)
async def send_otp(
    request: SendOTPRequest,
    http_request: Request,
    service: VerificationService = Depends(get_verification_service)
):
    """
    Send a one-time verification code to a phone number.

    The number is canonicalized to +972 form, checked against the per-phone
    request budget, and any earlier pending code for it is replaced.
    """
    correlation_id = get_correlation_id(http_request)

    try:
        result = await service.request_otp(request.phoneNumber)
    except Exception as e:
        return gate_error_response(e, correlation_id, "send_otp")

    return SendOTPResponse(
        message=success_message("otp_sent", settings.message_locale),
        **result
    )


@router.post(
    "/verify-otp",
    response_model=VerifyOTPResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 410: {"model": ErrorResponse}}
)
async def verify_otp(
    request: VerifyOTPRequest,
    http_request: Request,
    service: VerificationService = Depends(get_verification_service)
):
    """Check a submitted code against the phone's current session."""
    correlation_id = get_correlation_id(http_request)

    try:
        result = await service.verify_otp(request.phoneNumber, request.otpCode)
    except Exception as e:
        return gate_error_response(e, correlation_id, "verify_otp")

    return VerifyOTPResponse(
        message=success_message("otp_verified", settings.message_locale),
        **result
    )


@router.post(
    "/verify-military-id",
    response_model=LookupPersonnelResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}}
)
async def verify_military_id(
    request: LookupPersonnelRequest,
    http_request: Request,
    service: VerificationService = Depends(get_verification_service)
):
    """
    Look up a registration candidate on the authorized roster.

    Returns the roster profile used to pre-fill registration. Entries that
    already have an account are rejected with AlreadyRegisteredError.
    """
    correlation_id = get_correlation_id(http_request)

    try:
        profile = await service.lookup_personnel(request.militaryId)
    except Exception as e:
        record_personnel_lookup(e.kind.value if isinstance(e, GateError) else ErrorKind.INFRASTRUCTURE.value)
        return gate_error_response(e, correlation_id, "verify_military_id")

    record_personnel_lookup("found")
    return LookupPersonnelResponse(
        message=success_message("personnel_found", settings.message_locale),
        personnel=_profile_model(profile)
    )


@router.post(
    "/register/claim",
    response_model=ClaimRegistrationResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}}
)
async def claim_registration(
    request: ClaimRegistrationRequest,
    http_request: Request,
    service: VerificationService = Depends(get_verification_service)
):
    """Consume a roster entry after its phone number passed OTP verification."""
    correlation_id = get_correlation_id(http_request)

    try:
        profile = await service.claim_roster_entry(request.militaryId, request.phoneNumber)
    except Exception as e:
        return gate_error_response(e, correlation_id, "claim_registration")

    logger.info("Roster entry claimed", correlation_id=correlation_id)
    return ClaimRegistrationResponse(
        message=success_message("registration_claimed", settings.message_locale),
        personnel=_profile_model(profile)
    )


@router.get("/health")
async def auth_health_check(service: VerificationService = Depends(get_verification_service)) -> Dict[str, Any]:
    """Health check for the registration stores."""
    try:
        store_healthy = await service.health_check()
    except Exception as e:
        logger.error("Store health check failed", error=str(e))
        store_healthy = False

    return {
        "status": "healthy" if store_healthy else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "store": "healthy" if store_healthy else "unhealthy"
        }
    }
