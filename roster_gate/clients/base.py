"""
Repository interfaces shared by the Supabase and in-memory backends.

Each method is a single suspension point against the backing store. The
operations that must be atomic per key (``RateLimitStore.hit``,
``OTPSessionStore.increment_attempts``, ``OTPSessionStore.mark_used`` and
``PersonnelStore.mark_registered``) are performed by the store itself, never
as a read followed by a write in the caller.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from roster_gate.models.internal_models import (
    AuthorizedPersonnelRecord,
    OTPSession,
    RateLimitWindow,
)


class OTPSessionStore(ABC):
    """One verification session per phone number."""

    @abstractmethod
    async def replace(self, session: OTPSession) -> Optional[OTPSession]:
        """Store ``session`` as the phone's only session; return the one it replaced."""

    @abstractmethod
    async def get(self, phone_number: str) -> Optional[OTPSession]:
        """Fetch the phone's current session."""

    @abstractmethod
    async def increment_attempts(self, session_id: str) -> int:
        """Atomically add one attempt; return the new count."""

    @abstractmethod
    async def mark_used(self, session_id: str) -> bool:
        """Flip ``used`` on an unused session; return False if it was already used or replaced."""

    @abstractmethod
    async def delete_expired(self, now: datetime) -> int:
        """Remove sessions past their expiry; return how many were removed."""


class RateLimitStore(ABC):
    """Per-phone request counting windows."""

    @abstractmethod
    async def hit(self, phone_number: str, limit: int, window_seconds: int, now: datetime) -> RateLimitWindow:
        """
        Atomically evaluate one request against the phone's window.

        Starts a fresh window when ``now >= reset_time``, then increments the
        count only if it is below ``limit``. ``allowed`` on the returned window
        reports whether the increment happened.
        """


class PersonnelStore(ABC):
    """Authorized personnel keyed by hashed identifier."""

    @abstractmethod
    async def get(self, key: str) -> Optional[AuthorizedPersonnelRecord]:
        """Point read by hashed key."""

    @abstractmethod
    async def insert(self, record: AuthorizedPersonnelRecord) -> bool:
        """Insert a new record; return False if the key already exists."""

    @abstractmethod
    async def mark_registered(self, key: str, now: datetime) -> bool:
        """Flip ``registered`` on an unregistered record; return whether this call flipped it."""

    @abstractmethod
    async def list_all(self) -> List[AuthorizedPersonnelRecord]:
        """Every roster record."""


class StoreBundle:
    """The three stores a deployment runs against."""

    def __init__(self, sessions: OTPSessionStore, rate_limits: RateLimitStore, personnel: PersonnelStore):
        self.sessions = sessions
        self.rate_limits = rate_limits
        self.personnel = personnel

    async def health_check(self) -> bool:
        return True
