"""Supabase client for session, rate-limit and roster storage."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from supabase import create_client, Client
from postgrest.exceptions import APIError

from ..config import settings
from ..models.internal_models import (
    AuthorizedPersonnelRecord,
    OTPSession,
    RateLimitWindow,
)
from ..utils.phone_utils import mask_phone_number
from .base import OTPSessionStore, PersonnelStore, RateLimitStore, StoreBundle

logger = logging.getLogger(__name__)

OTP_SESSIONS_TABLE = "otp_sessions"
RATE_LIMITS_TABLE = "otp_rate_limits"
PERSONNEL_TABLE = "authorized_personnel"


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace('Z', '+00:00'))


class SupabaseClient:
    """Client for Supabase database operations."""

    def __init__(self, url: Optional[str] = None, key: Optional[str] = None):
        """Initialize Supabase client with configuration."""
        self._client: Optional[Client] = None
        self._url = url or settings.supabase_url
        self._key = key or settings.supabase_key

    @property
    def client(self) -> Client:
        """Get or create Supabase client instance."""
        if self._client is None:
            self._client = create_client(self._url, self._key)
        return self._client

    async def health_check(self) -> bool:
        """Check if database connection is healthy."""
        try:
            self.client.table(PERSONNEL_TABLE).select("hash", count="exact").limit(0).execute()
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False


class SupabaseOTPSessionRepository(OTPSessionStore):
    """Repository for OTP sessions, one row per phone number."""

    def __init__(self, supabase_client: SupabaseClient):
        self.client = supabase_client

    @staticmethod
    def _to_row(session: OTPSession) -> Dict[str, Any]:
        return {
            "id": session.id,
            "phone_number": session.phone_number,
            "code_hash": session.code_hash,
            "code_salt": session.code_salt,
            "created_at": session.created_at.isoformat(),
            "expires_at": session.expires_at.isoformat(),
            "attempts": session.attempts,
            "used": session.used,
        }

    @staticmethod
    def _from_row(row: Dict[str, Any]) -> OTPSession:
        return OTPSession(
            id=row["id"],
            phone_number=row["phone_number"],
            code_hash=row["code_hash"],
            code_salt=row["code_salt"],
            created_at=_parse_timestamp(row["created_at"]),
            expires_at=_parse_timestamp(row["expires_at"]),
            attempts=row["attempts"],
            used=row["used"],
        )

    async def replace(self, session: OTPSession) -> Optional[OTPSession]:
        """Upsert the phone's session. The prior-session read only feeds audit logs."""
        try:
            previous = await self.get(session.phone_number)
            result = self.client.client.table(OTP_SESSIONS_TABLE).upsert(
                self._to_row(session),
                on_conflict="phone_number"
            ).execute()

            if not result.data:
                raise ValueError("Failed to store OTP session")

            return previous

        except APIError as e:
            logger.error(f"Database error storing OTP session for {mask_phone_number(session.phone_number)}: {e}")
            raise

    async def get(self, phone_number: str) -> Optional[OTPSession]:
        try:
            result = (
                self.client.client.table(OTP_SESSIONS_TABLE)
                .select("*")
                .eq("phone_number", phone_number)
                .execute()
            )
            if not result.data:
                return None
            return self._from_row(result.data[0])

        except APIError as e:
            logger.error(f"Database error retrieving OTP session for {mask_phone_number(phone_number)}: {e}")
            raise

    async def increment_attempts(self, session_id: str) -> int:
        try:
            result = self.client.client.rpc(
                "otp_session_record_attempt",
                {"p_session_id": session_id}
            ).execute()
            return int(result.data or 0)

        except APIError as e:
            logger.error(f"Database error recording attempt on session {session_id}: {e}")
            raise

    async def mark_used(self, session_id: str) -> bool:
        try:
            result = (
                self.client.client.table(OTP_SESSIONS_TABLE)
                .update({"used": True})
                .eq("id", session_id)
                .eq("used", False)
                .execute()
            )
            return len(result.data) > 0

        except APIError as e:
            logger.error(f"Database error marking session {session_id} used: {e}")
            raise

    async def delete_expired(self, now: datetime) -> int:
        try:
            result = (
                self.client.client.table(OTP_SESSIONS_TABLE)
                .delete()
                .lt("expires_at", now.isoformat())
                .execute()
            )
            deleted = len(result.data)
            logger.info(f"Deleted {deleted} expired OTP sessions")
            return deleted

        except APIError as e:
            logger.error(f"Database error deleting expired OTP sessions: {e}")
            raise


class SupabaseRateLimitRepository(RateLimitStore):
    """Repository for rate-limit windows; the check-and-increment runs in Postgres."""

    def __init__(self, supabase_client: SupabaseClient):
        self.client = supabase_client

    async def hit(self, phone_number: str, limit: int, window_seconds: int, now: datetime) -> RateLimitWindow:
        try:
            result = self.client.client.rpc(
                "otp_rate_limit_hit",
                {
                    "p_phone_number": phone_number,
                    "p_limit": limit,
                    "p_window_seconds": window_seconds,
                    "p_now": now.isoformat(),
                }
            ).execute()

            if not result.data:
                raise ValueError("Rate limit function returned no row")

            row = result.data[0]
            return RateLimitWindow(
                phone_number=phone_number,
                window_start=_parse_timestamp(row["out_window_start"]),
                count=row["out_request_count"],
                limit=limit,
                reset_time=_parse_timestamp(row["out_reset_time"]),
                allowed=row["out_allowed"],
            )

        except APIError as e:
            logger.error(f"Database error checking rate limit for {mask_phone_number(phone_number)}: {e}")
            raise


class SupabasePersonnelRepository(PersonnelStore):
    """Repository for the authorized personnel roster."""

    def __init__(self, supabase_client: SupabaseClient):
        self.client = supabase_client

    @staticmethod
    def _from_row(row: Dict[str, Any]) -> AuthorizedPersonnelRecord:
        return AuthorizedPersonnelRecord(
            hash=row["hash"],
            salt=row["salt"],
            verifier=row["verifier"],
            phone_number=row["phone_number"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            rank=row["rank"],
            registered=row.get("registered", False),
            created_at=_parse_timestamp(row.get("created_at")),
            registered_at=_parse_timestamp(row.get("registered_at")),
        )

    async def get(self, key: str) -> Optional[AuthorizedPersonnelRecord]:
        try:
            result = self.client.client.table(PERSONNEL_TABLE).select("*").eq("hash", key).execute()
            if not result.data:
                return None
            return self._from_row(result.data[0])

        except APIError as e:
            logger.error(f"Database error retrieving roster record: {e}")
            raise

    async def insert(self, record: AuthorizedPersonnelRecord) -> bool:
        row = {
            "hash": record.hash,
            "salt": record.salt,
            "verifier": record.verifier,
            "phone_number": record.phone_number,
            "first_name": record.first_name,
            "last_name": record.last_name,
            "rank": record.rank,
            "registered": record.registered,
        }
        if record.created_at:
            row["created_at"] = record.created_at.isoformat()

        try:
            result = self.client.client.table(PERSONNEL_TABLE).insert(row).execute()
            return bool(result.data)

        except APIError as e:
            # 23505: unique_violation on the hash primary key
            if getattr(e, "code", None) == "23505":
                return False
            logger.error(f"Database error inserting roster record: {e}")
            raise

    async def mark_registered(self, key: str, now: datetime) -> bool:
        try:
            result = (
                self.client.client.table(PERSONNEL_TABLE)
                .update({"registered": True, "registered_at": now.isoformat()})
                .eq("hash", key)
                .eq("registered", False)
                .execute()
            )
            return len(result.data) > 0

        except APIError as e:
            logger.error(f"Database error marking roster record registered: {e}")
            raise

    async def list_all(self) -> List[AuthorizedPersonnelRecord]:
        try:
            result = (
                self.client.client.table(PERSONNEL_TABLE)
                .select("*")
                .order("last_name")
                .execute()
            )
            return [self._from_row(row) for row in result.data]

        except APIError as e:
            logger.error(f"Database error listing roster: {e}")
            raise


class DatabaseManager(StoreBundle):
    """High-level database manager that coordinates repositories."""

    def __init__(self, supabase_client: Optional[SupabaseClient] = None):
        """Initialize database manager with client and repositories."""
        self.client = supabase_client or SupabaseClient()
        super().__init__(
            sessions=SupabaseOTPSessionRepository(self.client),
            rate_limits=SupabaseRateLimitRepository(self.client),
            personnel=SupabasePersonnelRepository(self.client),
        )

    async def health_check(self) -> bool:
        """Check overall database health."""
        return await self.client.health_check()
