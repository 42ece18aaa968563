"""Client modules for stores and external service integrations."""

from roster_gate.clients.base import (
    OTPSessionStore,
    RateLimitStore,
    PersonnelStore,
    StoreBundle
)

from roster_gate.clients.memory_store import InMemoryStoreBundle

from roster_gate.clients.supabase_client import (
    SupabaseClient,
    SupabaseOTPSessionRepository,
    SupabaseRateLimitRepository,
    SupabasePersonnelRepository,
    DatabaseManager
)

from roster_gate.clients.sms_gateway import (
    SMSGateway,
    TwilioSMSGateway,
    LoggingSMSGateway,
    create_sms_gateway
)

from roster_gate.clients.local_storage import (
    KeyValueStorage,
    InMemoryStorage,
    FileStorage
)

__all__ = [
    "OTPSessionStore",
    "RateLimitStore",
    "PersonnelStore",
    "StoreBundle",
    "InMemoryStoreBundle",
    "SupabaseClient",
    "SupabaseOTPSessionRepository",
    "SupabaseRateLimitRepository",
    "SupabasePersonnelRepository",
    "DatabaseManager",
    "SMSGateway",
    "TwilioSMSGateway",
    "LoggingSMSGateway",
    "create_sms_gateway",
    "KeyValueStorage",
    "InMemoryStorage",
    "FileStorage"
]
