"""
Registration gate service.

This module provides the operations the API exposes:
- OTP request: rate limit, generate, store, dispatch over SMS
- OTP verification against the phone's session
- Roster lookup by military ID
- Roster claim once phone and roster entry have both been verified
"""

import logging
import time
from typing import Any, Dict, List, Optional, Sequence

from roster_gate.clients.base import StoreBundle
from roster_gate.clients.memory_store import InMemoryStoreBundle
from roster_gate.clients.sms_gateway import SMSGateway, create_sms_gateway
from roster_gate.clients.supabase_client import DatabaseManager, SupabaseClient
from roster_gate.config import Settings, settings
from roster_gate.models.internal_models import PersonnelEntry, PersonnelProfile, RosterImportResult
from roster_gate.observability import (
    record_otp_request,
    record_otp_verification,
    record_sms_dispatch,
    trace_function,
)
from roster_gate.services.code_generator import CodeGenerator
from roster_gate.services.errors import (
    GateError,
    GatewayError,
    PhoneNotVerifiedError,
    RateLimitedError,
    ValidationError,
    error_for_kind,
)
from roster_gate.services.identifier_hasher import IdentifierHasher
from roster_gate.services.otp_manager import OTPManager
from roster_gate.services.personnel_directory import PersonnelDirectory
from roster_gate.services.rate_limiter import RateLimiter
from roster_gate.utils.phone_utils import mask_phone_number, validate_phone_number

logger = logging.getLogger(__name__)


def _require_phone(phone_number: Any) -> str:
    if not phone_number or not isinstance(phone_number, str):
        raise ValidationError("Phone number is required and must be a string")
    is_valid, formatted, error = validate_phone_number(phone_number)
    if not is_valid:
        raise ValidationError(error or "Invalid phone number format")
    return formatted


class VerificationService:
    """
    Orchestrates the registration gate.

    Input validation happens before any store access; every failure leaves
    this class as a ``GateError`` subclass carrying its ``ErrorKind``.
    """

    def __init__(
        self,
        stores: StoreBundle,
        sms_gateway: SMSGateway,
        config: Optional[Settings] = None,
        rate_limiter: Optional[RateLimiter] = None,
        otp_manager: Optional[OTPManager] = None,
        directory: Optional[PersonnelDirectory] = None,
        code_generator: Optional[CodeGenerator] = None,
    ):
        """
        Initialize the service.

        Args:
            stores: Session, rate-limit and personnel stores
            sms_gateway: Gateway that delivers codes
            config: Settings; defaults to the process settings
            rate_limiter, otp_manager, directory, code_generator: Optional
                prebuilt components, mainly for tests that inject clocks
        """
        self.config = config or settings
        self.stores = stores
        self.sms_gateway = sms_gateway
        otp_config = self.config.otp_config()

        self.rate_limiter = rate_limiter or RateLimiter(stores.rate_limits, self.config.rate_limit_config())
        self.otp_manager = otp_manager or OTPManager(stores.sessions, otp_config)
        self.directory = directory or PersonnelDirectory(
            stores.personnel, IdentifierHasher(self.config.roster_hash_secret)
        )
        self.code_generator = code_generator or CodeGenerator(otp_config.code_length)

        logger.info(
            f"Verification service initialized: {otp_config.code_length}-digit codes, "
            f"{otp_config.expiry_minutes} minute expiry, "
            f"{self.rate_limiter.config.limit} requests per {self.rate_limiter.config.window}"
        )

    @trace_function("gate.request_otp")
    async def request_otp(self, phone_number: Any) -> Dict[str, Any]:
        """
        Send a fresh verification code to a phone number.

        Returns:
            Dict with phoneNumber, attemptsRemaining and expiresInMinutes

        Raises:
            ValidationError: Malformed phone number
            RateLimitedError: Request budget used up for this window
            GatewayError: SMS dispatch failed
            InfrastructureError: A store failed
        """
        try:
            formatted = _require_phone(phone_number)
            masked = mask_phone_number(formatted)

            decision = await self.rate_limiter.check(formatted)
            if not decision.allowed:
                raise RateLimitedError(decision.reset_time)

            code = self.code_generator.generate()
            await self.otp_manager.create_otp_session(formatted, code)

            start_time = time.time()
            sms_result = await self.sms_gateway.send_code(formatted, code)
            record_sms_dispatch(sms_result.success, time.time() - start_time)

            if not sms_result.success:
                logger.error(f"OTP SMS dispatch failed for {masked}: {sms_result.error}")
                raise GatewayError(sms_result.error or "SMS dispatch failed")

        except GateError as e:
            record_otp_request(e.kind.value)
            raise

        record_otp_request("sent")
        logger.info(f"OTP sent to {masked}, {decision.attempts_remaining} requests remaining")
        return {
            "phoneNumber": formatted,
            "attemptsRemaining": decision.attempts_remaining,
            "expiresInMinutes": self.otp_manager.config.expiry_minutes,
        }

    @trace_function("gate.verify_otp")
    async def verify_otp(self, phone_number: Any, otp_code: Any) -> Dict[str, Any]:
        """
        Verify a submitted code.

        Raises:
            ValidationError: Missing fields or a code that is not exactly N digits
            SessionNotFoundError, AlreadyUsedError, ExpiredError,
            AttemptsExhaustedError, CodeMismatchError: Per-attempt failures
            InfrastructureError: A store failed
        """
        try:
            if not phone_number or not isinstance(phone_number, str):
                raise ValidationError("Phone number is required and must be a string")
            if not otp_code or not isinstance(otp_code, str):
                raise ValidationError("OTP code is required and must be a string")
            length = self.code_generator.length
            if len(otp_code) != length or not otp_code.isascii() or not otp_code.isdigit():
                raise ValidationError(f"OTP code must be exactly {length} digits")
            formatted = _require_phone(phone_number)

            result = await self.otp_manager.verify_otp_code(formatted, otp_code)
            if not result.verified:
                raise error_for_kind(result.error)

        except GateError as e:
            record_otp_verification(e.kind.value)
            raise

        record_otp_verification("verified")
        return {"phoneNumber": formatted, "verified": True}

    @trace_function("gate.lookup_personnel")
    async def lookup_personnel(self, military_id: Any) -> PersonnelProfile:
        """
        Find the roster entry for a military ID.

        Raises:
            ValidationError: Identifier is not 5-7 digits
            PersonnelNotFoundError: Not on the roster
            AlreadyRegisteredError: Entry already consumed
            InfrastructureError: The store failed
        """
        return await self.directory.find(military_id)

    @trace_function("gate.claim_roster_entry")
    async def claim_roster_entry(self, military_id: Any, phone_number: Any) -> PersonnelProfile:
        """
        Consume a roster entry once its phone number has passed OTP verification.

        Raises:
            ValidationError: Malformed identifier or phone number
            PhoneNotVerifiedError: No verified, unexpired OTP session for the phone
            PersonnelNotFoundError: No matching entry for this identifier and phone
            AlreadyRegisteredError: Entry already consumed
            InfrastructureError: A store failed
        """
        formatted = _require_phone(phone_number)
        if not await self.otp_manager.is_phone_verified(formatted):
            raise PhoneNotVerifiedError("Phone number has no verified OTP session")
        return await self.directory.mark_registered(military_id, formatted)

    async def add_personnel(self, entry: PersonnelEntry) -> Dict[str, Any]:
        return await self.directory.add_personnel(entry)

    async def import_roster(self, entries: Sequence[PersonnelEntry]) -> RosterImportResult:
        return await self.directory.import_roster(entries)

    async def list_roster(self) -> List[Dict[str, Any]]:
        return await self.directory.list_roster()

    async def cleanup_expired_sessions(self) -> int:
        """Remove expired OTP sessions; safe to run from a scheduler."""
        return await self.otp_manager.cleanup_expired_sessions()

    async def health_check(self) -> bool:
        return await self.stores.health_check()

    async def close(self) -> None:
        await self.sms_gateway.close()


def create_store_bundle(config: Settings) -> StoreBundle:
    """Build the configured store backend."""
    if config.store_backend == "supabase":
        return DatabaseManager(SupabaseClient(config.supabase_url, config.supabase_key))
    return InMemoryStoreBundle()


# Global service instance
_verification_service: Optional[VerificationService] = None


def get_verification_service() -> VerificationService:
    """
    Get the global verification service instance.

    Returns:
        VerificationService: The global verification service instance
    """
    global _verification_service
    if _verification_service is None:
        _verification_service = VerificationService(
            stores=create_store_bundle(settings),
            sms_gateway=create_sms_gateway(settings),
            config=settings,
        )
    return _verification_service
