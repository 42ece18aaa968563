"""
OTP session lifecycle.

States per phone number::

    NoSession -> Pending -> {Verified, Expired, Exhausted, Superseded}

``create_otp_session`` always moves the phone to Pending and supersedes any
prior session. ``verify_otp_code`` is the only transition out of Pending;
it touches nothing but the one session it inspected.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from roster_gate.clients.base import OTPSessionStore
from roster_gate.config import OTPConfig
from roster_gate.models.internal_models import OTPSession, OTPState
from roster_gate.services.code_generator import generate_salt, hash_code, verify_code_hash
from roster_gate.services.errors import ErrorKind, InfrastructureError
from roster_gate.utils.clock import utc_now
from roster_gate.utils.phone_utils import mask_phone_number

logger = logging.getLogger(__name__)


@dataclass
class OTPVerificationResult:
    """Outcome of one verification attempt."""

    verified: bool
    phone_number: str
    error: Optional[ErrorKind] = None
    attempts: int = 0


class OTPManager:
    """Creates and verifies one-time-password sessions."""

    def __init__(
        self,
        store: OTPSessionStore,
        config: Optional[OTPConfig] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.config = config or OTPConfig()
        self.clock = clock

    def session_state(self, session: Optional[OTPSession], now: Optional[datetime] = None) -> OTPState:
        """Classify a session at ``now``."""
        if session is None:
            return OTPState.NO_SESSION
        now = now or self.clock()
        if session.used:
            return OTPState.VERIFIED
        if session.is_expired(now):
            return OTPState.EXPIRED
        if session.attempts >= self.config.max_attempts:
            return OTPState.EXHAUSTED
        return OTPState.PENDING

    async def create_otp_session(self, phone_number: str, code: str) -> OTPSession:
        """
        Start a Pending session for ``phone_number``, replacing any prior one.

        Args:
            phone_number: Normalized phone number
            code: Plain verification code; only its salted hash is stored

        Returns:
            The stored session

        Raises:
            InfrastructureError: If the session store fails
        """
        now = self.clock()
        salt = generate_salt()
        session = OTPSession(
            id=str(uuid.uuid4()),
            phone_number=phone_number,
            code_hash=hash_code(code, salt),
            code_salt=salt,
            created_at=now,
            expires_at=now + self.config.expiry,
        )

        try:
            previous = await self.store.replace(session)
        except Exception as e:
            logger.error(f"Failed to store OTP session for {mask_phone_number(phone_number)}: {e}")
            raise InfrastructureError(f"OTP session store unavailable: {e}")

        if previous is not None and self.session_state(previous, now) is OTPState.PENDING:
            logger.info(
                f"OTP session {previous.id} for {mask_phone_number(phone_number)} "
                f"moved to {OTPState.SUPERSEDED.value} by {session.id}"
            )

        logger.info(
            f"OTP session {session.id} created for {mask_phone_number(phone_number)}, "
            f"expires at {session.expires_at.isoformat()}"
        )
        return session

    async def verify_otp_code(self, phone_number: str, submitted_code: str) -> OTPVerificationResult:
        """
        Check a submitted code against the phone's session.

        Failure kinds, in the order they are checked: SessionNotFound,
        AlreadyUsed, Expired, AttemptsExhausted, CodeMismatch.

        Raises:
            InfrastructureError: If the session store fails
        """
        masked = mask_phone_number(phone_number)
        try:
            session = await self.store.get(phone_number)
        except Exception as e:
            logger.error(f"Failed to read OTP session for {masked}: {e}")
            raise InfrastructureError(f"OTP session store unavailable: {e}")

        now = self.clock()
        state = self.session_state(session, now)

        if state is OTPState.NO_SESSION:
            logger.info(f"No OTP session for {masked}")
            return OTPVerificationResult(False, phone_number, ErrorKind.SESSION_NOT_FOUND)
        if state is OTPState.VERIFIED:
            logger.info(f"OTP session {session.id} already used")
            return OTPVerificationResult(False, phone_number, ErrorKind.ALREADY_USED, session.attempts)
        if state is OTPState.EXPIRED:
            logger.info(f"OTP session {session.id} expired at {session.expires_at.isoformat()}")
            return OTPVerificationResult(False, phone_number, ErrorKind.EXPIRED, session.attempts)
        if state is OTPState.EXHAUSTED:
            logger.warning(f"OTP session {session.id} exhausted after {session.attempts} attempts")
            return OTPVerificationResult(False, phone_number, ErrorKind.ATTEMPTS_EXHAUSTED, session.attempts)

        try:
            if not verify_code_hash(submitted_code, session.code_salt, session.code_hash):
                attempts = await self.store.increment_attempts(session.id)
                logger.warning(f"Invalid OTP for {masked} ({attempts}/{self.config.max_attempts})")
                return OTPVerificationResult(False, phone_number, ErrorKind.CODE_MISMATCH, attempts)

            if not await self.store.mark_used(session.id):
                # Lost a race with a concurrent verification or a newer session
                logger.warning(f"OTP session {session.id} was consumed or replaced concurrently")
                return OTPVerificationResult(False, phone_number, ErrorKind.ALREADY_USED, session.attempts)

        except Exception as e:
            logger.error(f"Failed to update OTP session {session.id}: {e}")
            raise InfrastructureError(f"OTP session store unavailable: {e}")

        logger.info(f"OTP session {session.id} verified for {masked}")
        return OTPVerificationResult(True, phone_number, attempts=session.attempts)

    async def is_phone_verified(self, phone_number: str) -> bool:
        """True while the phone's latest session is verified and not yet expired."""
        try:
            session = await self.store.get(phone_number)
        except Exception as e:
            raise InfrastructureError(f"OTP session store unavailable: {e}")
        if session is None:
            return False
        return session.used and not session.is_expired(self.clock())

    async def cleanup_expired_sessions(self) -> int:
        """Delete expired sessions and return how many were removed."""
        try:
            deleted = await self.store.delete_expired(self.clock())
        except Exception as e:
            logger.error(f"Failed to clean up expired OTP sessions: {e}")
            raise InfrastructureError(f"OTP session store unavailable: {e}")
        logger.info(f"Cleaned up {deleted} expired OTP sessions")
        return deleted
