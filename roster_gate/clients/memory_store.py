"""In-memory store backend for local development and tests."""

import asyncio
import logging
from collections import defaultdict
from dataclasses import replace as copy_record
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from roster_gate.clients.base import (
    OTPSessionStore,
    PersonnelStore,
    RateLimitStore,
    StoreBundle,
)
from roster_gate.models.internal_models import (
    AuthorizedPersonnelRecord,
    OTPSession,
    RateLimitWindow,
)

logger = logging.getLogger(__name__)


class InMemoryOTPSessionStore(OTPSessionStore):
    """Sessions held in a dict keyed by phone number."""

    def __init__(self):
        self._sessions: Dict[str, OTPSession] = {}
        self._lock = asyncio.Lock()

    async def replace(self, session: OTPSession) -> Optional[OTPSession]:
        async with self._lock:
            previous = self._sessions.get(session.phone_number)
            self._sessions[session.phone_number] = copy_record(session)
            return previous

    async def get(self, phone_number: str) -> Optional[OTPSession]:
        session = self._sessions.get(phone_number)
        return copy_record(session) if session else None

    def _find(self, session_id: str) -> Optional[OTPSession]:
        for session in self._sessions.values():
            if session.id == session_id:
                return session
        return None

    async def increment_attempts(self, session_id: str) -> int:
        async with self._lock:
            session = self._find(session_id)
            if session is None:
                return 0
            session.attempts += 1
            return session.attempts

    async def mark_used(self, session_id: str) -> bool:
        async with self._lock:
            session = self._find(session_id)
            if session is None or session.used:
                return False
            session.used = True
            return True

    async def delete_expired(self, now: datetime) -> int:
        async with self._lock:
            expired = [phone for phone, s in self._sessions.items() if s.is_expired(now)]
            for phone in expired:
                del self._sessions[phone]
            return len(expired)


class InMemoryRateLimitStore(RateLimitStore):
    """Counting windows guarded by one lock per phone number."""

    def __init__(self):
        self._windows: Dict[str, RateLimitWindow] = {}
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def hit(self, phone_number: str, limit: int, window_seconds: int, now: datetime) -> RateLimitWindow:
        async with self._locks[phone_number]:
            window = self._windows.get(phone_number)
            if window is None or now >= window.reset_time:
                window = RateLimitWindow(
                    phone_number=phone_number,
                    window_start=now,
                    count=0,
                    limit=limit,
                    reset_time=now + timedelta(seconds=window_seconds),
                )

            if window.count < limit:
                window.count += 1
                window.allowed = True
                self._windows[phone_number] = window
            else:
                window.allowed = False

            return copy_record(window)


class InMemoryPersonnelStore(PersonnelStore):
    """Roster records keyed by hashed identifier."""

    def __init__(self):
        self._records: Dict[str, AuthorizedPersonnelRecord] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[AuthorizedPersonnelRecord]:
        record = self._records.get(key)
        return copy_record(record) if record else None

    async def insert(self, record: AuthorizedPersonnelRecord) -> bool:
        async with self._lock:
            if record.hash in self._records:
                return False
            self._records[record.hash] = copy_record(record)
            return True

    async def mark_registered(self, key: str, now: datetime) -> bool:
        async with self._lock:
            record = self._records.get(key)
            if record is None or record.registered:
                return False
            record.registered = True
            record.registered_at = now
            return True

    async def list_all(self) -> List[AuthorizedPersonnelRecord]:
        return [copy_record(record) for record in self._records.values()]


class InMemoryStoreBundle(StoreBundle):
    """All three stores backed by process memory."""

    def __init__(self):
        super().__init__(
            sessions=InMemoryOTPSessionStore(),
            rate_limits=InMemoryRateLimitStore(),
            personnel=InMemoryPersonnelStore(),
        )
        logger.warning("Using in-memory stores; data is lost on restart")
