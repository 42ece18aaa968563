"""
Roster administration endpoints.

All routes require the ``X-Admin-Key`` header to match ``ADMIN_API_KEY``.
With no key configured the routes are closed.
"""

import hmac
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Header, Request

from roster_gate.api.auth import gate_error_response
from roster_gate.config import settings
from roster_gate.middleware import get_correlation_id
from roster_gate.models.api_models import (
    BulkImportRequest,
    BulkImportResponse,
    CleanupResponse,
    ErrorResponse,
    PersonnelCreateRequest,
    PersonnelCreateResponse,
    RosterResponse,
)
from roster_gate.models.internal_models import PersonnelEntry
from roster_gate.services.errors import UnauthorizedError
from roster_gate.services.verification_service import VerificationService, get_verification_service

logger = structlog.get_logger()


async def require_admin_key(x_admin_key: Optional[str] = Header(None)) -> None:
    """Reject the request unless it carries the configured admin key."""
    expected = settings.admin_api_key
    if not expected or not x_admin_key:
        raise UnauthorizedError("Admin key missing")
    if not hmac.compare_digest(x_admin_key.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("Admin request with invalid key")
        raise UnauthorizedError("Admin key invalid")


router = APIRouter(
    prefix="/api/v1/admin",
    tags=["roster administration"],
    dependencies=[Depends(require_admin_key)],
    responses={401: {"model": ErrorResponse}}
)


def _entry(item: PersonnelCreateRequest) -> PersonnelEntry:
    return PersonnelEntry(
        military_id=item.militaryId,
        phone_number=item.phoneNumber,
        first_name=item.firstName,
        last_name=item.lastName,
        rank=item.rank
    )


@router.get("/personnel", response_model=RosterResponse)
async def list_personnel(
    http_request: Request,
    service: VerificationService = Depends(get_verification_service)
):
    """List the roster without identifier hashes."""
    try:
        roster = await service.list_roster()
    except Exception as e:
        return gate_error_response(e, get_correlation_id(http_request), "list_personnel")

    return RosterResponse(count=len(roster), personnel=roster)


@router.post("/personnel", response_model=PersonnelCreateResponse, status_code=201)
async def add_personnel(
    request: PersonnelCreateRequest,
    http_request: Request,
    service: VerificationService = Depends(get_verification_service)
):
    """Add one roster entry."""
    try:
        view = await service.add_personnel(_entry(request))
    except Exception as e:
        return gate_error_response(e, get_correlation_id(http_request), "add_personnel")

    logger.info("Roster entry added")
    return PersonnelCreateResponse(personnel=view)


@router.post("/personnel/bulk", response_model=BulkImportResponse)
async def import_personnel(
    request: BulkImportRequest,
    http_request: Request,
    service: VerificationService = Depends(get_verification_service)
):
    """
    Import spreadsheet rows.

    Each row is reported as successful, failed (with a reason) or duplicate;
    row numbers start at 2 because row 1 is the header.
    """
    try:
        result = await service.import_roster([_entry(item) for item in request.personnel])
    except Exception as e:
        return gate_error_response(e, get_correlation_id(http_request), "import_personnel")

    return BulkImportResponse(
        totalProcessed=result.total_processed,
        successful=result.successful,
        failed=result.failed,
        duplicates=result.duplicates
    )


@router.post("/otp-sessions/cleanup", response_model=CleanupResponse)
async def cleanup_otp_sessions(
    http_request: Request,
    service: VerificationService = Depends(get_verification_service)
):
    """Delete expired OTP sessions."""
    try:
        deleted = await service.cleanup_expired_sessions()
    except Exception as e:
        return gate_error_response(e, get_correlation_id(http_request), "cleanup_otp_sessions")

    return CleanupResponse(deleted=deleted)
