"""Internal data models for the roster gate service."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class OTPState(str, Enum):
    """Lifecycle states of a phone number's verification session."""
    NO_SESSION = "no_session"
    PENDING = "pending"
    VERIFIED = "verified"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"
    SUPERSEDED = "superseded"


@dataclass
class OTPSession:
    """Active verification session, keyed by phone number."""

    phone_number: str  # Primary key - normalized E.164 number
    code_hash: str
    code_salt: str
    created_at: datetime
    expires_at: datetime
    id: str = ""
    attempts: int = 0
    used: bool = False

    def __post_init__(self):
        if self.expires_at <= self.created_at:
            raise ValueError("Session must expire after it is created")

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


@dataclass
class RateLimitWindow:
    """Request counting window for one phone number."""

    phone_number: str
    window_start: datetime
    count: int
    limit: int
    reset_time: datetime
    allowed: bool = True


@dataclass
class RateLimitDecision:
    """Outcome of a rate limit check."""

    allowed: bool
    attempts_remaining: int
    reset_time: datetime


@dataclass
class AuthorizedPersonnelRecord:
    """
    Roster entry stored under the keyed hash of its military ID.

    ``salt`` and ``verifier`` confirm a hit really belongs to the supplied
    identifier; neither they nor ``hash`` ever leave the service.
    """

    hash: str
    salt: str
    verifier: str
    phone_number: str
    first_name: str
    last_name: str
    rank: str
    registered: bool = False
    created_at: Optional[datetime] = None
    registered_at: Optional[datetime] = None

    def profile(self) -> "PersonnelProfile":
        return PersonnelProfile(
            phone_number=self.phone_number,
            first_name=self.first_name,
            last_name=self.last_name,
            rank=self.rank,
        )


@dataclass
class PersonnelProfile:
    """Profile fields released to a verified registration candidate."""

    phone_number: str
    first_name: str
    last_name: str
    rank: str


@dataclass
class PersonnelEntry:
    """Administrative roster input row, before hashing."""

    military_id: str
    phone_number: str
    first_name: str
    last_name: str
    rank: str


@dataclass
class RosterImportResult:
    """Per-row outcome of a bulk roster import."""

    successful: List[Dict[str, Any]] = field(default_factory=list)
    failed: List[Dict[str, Any]] = field(default_factory=list)
    duplicates: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def total_processed(self) -> int:
        return len(self.successful) + len(self.failed) + len(self.duplicates)


@dataclass
class PersonnelCacheEntry:
    """Client-side snapshot of the roster."""

    data: List[Dict[str, Any]]
    timestamp: float  # Unix seconds
    last_manual_refresh: Optional[float] = None


@dataclass
class SMSResult:
    """Result of a single SMS dispatch."""

    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
