"""Configuration management for the roster gate service."""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEVELOPMENT_HASH_SECRET = "roster-gate-development-secret"


@dataclass(frozen=True)
class OTPConfig:
    """Session lifetime and code shape for OTP verification."""
    code_length: int = 6
    expiry: timedelta = timedelta(minutes=5)
    max_attempts: int = 5

    @property
    def expiry_minutes(self) -> int:
        return int(self.expiry.total_seconds() // 60)


@dataclass(frozen=True)
class RateLimitConfig:
    """Per-phone OTP request budget."""
    limit: int = 5
    window: timedelta = timedelta(hours=1)


@dataclass(frozen=True)
class CacheConfig:
    """Client-side roster cache settings."""
    ttl: timedelta = timedelta(hours=24)
    storage_key: str = "admin-personnel-data"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"  # Ignore extra environment variables
    )

    # Server configuration
    port: int = 8000
    host: str = "0.0.0.0"
    environment: str = "development"

    # Storage backend: "memory" for local development, "supabase" for deployments
    store_backend: str = "memory"
    supabase_url: str = ""
    supabase_key: str = ""

    # Twilio Messaging Service
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_messaging_service_sid: str = ""
    sms_timeout_seconds: float = 10.0

    # OTP settings
    otp_code_length: int = 6
    otp_expiry_minutes: int = 5
    otp_max_attempts: int = 5
    rate_limit_max_requests: int = 5
    rate_limit_window_seconds: int = 3600

    # Roster settings
    roster_hash_secret: str = DEVELOPMENT_HASH_SECRET
    personnel_cache_ttl_hours: int = 24
    admin_api_key: str = ""

    # Roster admin client: where to fetch the roster and where to keep its cache
    roster_admin_base_url: str = "http://localhost:8000"
    personnel_cache_dir: Optional[str] = None

    # Coarse per-IP throttle applied to every request
    ip_rate_limit_max_requests: int = 100
    ip_rate_limit_window_seconds: int = 60

    # Logging and telemetry
    log_level: str = "INFO"
    message_locale: str = "he"
    otlp_endpoint: Optional[str] = None
    otel_console_export: bool = False

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v):
        if v not in ("development", "production"):
            raise ValueError('ENVIRONMENT must be "development" or "production"')
        return v

    @field_validator('store_backend')
    @classmethod
    def validate_store_backend(cls, v):
        if v not in ("memory", "supabase"):
            raise ValueError('STORE_BACKEND must be "memory" or "supabase"')
        return v

    @field_validator('message_locale')
    @classmethod
    def validate_message_locale(cls, v):
        if v not in ("he", "en"):
            raise ValueError('MESSAGE_LOCALE must be "he" or "en"')
        return v

    @field_validator('roster_hash_secret')
    @classmethod
    def validate_roster_hash_secret(cls, v):
        if len(v) < 16:
            raise ValueError('ROSTER_HASH_SECRET must be at least 16 characters')
        return v

    @field_validator('otp_code_length')
    @classmethod
    def validate_otp_code_length(cls, v):
        if not 4 <= v <= 10:
            raise ValueError('OTP_CODE_LENGTH must be between 4 and 10')
        return v

    @model_validator(mode='after')
    def validate_deployment(self):
        if self.store_backend == "supabase" and not (self.supabase_url and self.supabase_key):
            raise ValueError('SUPABASE_URL and SUPABASE_KEY are required for the supabase backend')
        if self.environment == "production":
            if self.roster_hash_secret == DEVELOPMENT_HASH_SECRET:
                raise ValueError('ROSTER_HASH_SECRET must be set in production')
            if not self.admin_api_key:
                raise ValueError('ADMIN_API_KEY must be set in production')
        return self

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def twilio_configured(self) -> bool:
        return bool(
            self.twilio_account_sid
            and self.twilio_auth_token
            and self.twilio_messaging_service_sid
        )

    def otp_config(self) -> OTPConfig:
        return OTPConfig(
            code_length=self.otp_code_length,
            expiry=timedelta(minutes=self.otp_expiry_minutes),
            max_attempts=self.otp_max_attempts,
        )

    def rate_limit_config(self) -> RateLimitConfig:
        return RateLimitConfig(
            limit=self.rate_limit_max_requests,
            window=timedelta(seconds=self.rate_limit_window_seconds),
        )

    def cache_config(self) -> CacheConfig:
        return CacheConfig(ttl=timedelta(hours=self.personnel_cache_ttl_hours))


# Global settings instance
settings = Settings()
