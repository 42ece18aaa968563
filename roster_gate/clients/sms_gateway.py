"""
SMS delivery for verification codes.

``TwilioSMSGateway`` posts to the Twilio Messages API through a Messaging
Service. Each dispatch has a bounded timeout and is attempted once; any
failure is reported as ``SMSResult(success=False)`` for the caller to map.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from roster_gate.config import Settings, settings as default_settings
from roster_gate.models.internal_models import SMSResult
from roster_gate.utils.messages import success_message
from roster_gate.utils.phone_utils import mask_phone_number

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


class SMSGateway(ABC):
    """Delivers a verification code to a phone number."""

    def __init__(self, expiry_minutes: int = 5, locale: str = "he"):
        self.expiry_minutes = expiry_minutes
        self.locale = locale

    def render_message(self, code: str) -> str:
        return success_message("sms_body", self.locale, code=code, minutes=self.expiry_minutes)

    @abstractmethod
    async def send_code(self, phone_number: str, code: str) -> SMSResult:
        ...

    async def close(self) -> None:
        pass


class TwilioSMSGateway(SMSGateway):
    """Twilio Messaging Service gateway."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        messaging_service_sid: str,
        timeout: float = 10.0,
        expiry_minutes: int = 5,
        locale: str = "he",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(expiry_minutes=expiry_minutes, locale=locale)
        if not account_sid:
            raise ValueError('TWILIO_ACCOUNT_SID environment variable is required')
        if not auth_token:
            raise ValueError('TWILIO_AUTH_TOKEN environment variable is required')
        if not messaging_service_sid:
            raise ValueError('TWILIO_MESSAGING_SERVICE_SID environment variable is required')

        self.account_sid = account_sid
        self.messaging_service_sid = messaging_service_sid
        self.messages_url = f"{TWILIO_API_BASE}/Accounts/{account_sid}/Messages.json"
        self._client = httpx.AsyncClient(
            auth=(account_sid, auth_token),
            timeout=timeout,
            transport=transport,
        )

    async def send_code(self, phone_number: str, code: str) -> SMSResult:
        """Send one code; never retried here."""
        masked = mask_phone_number(phone_number)
        payload = {
            "MessagingServiceSid": self.messaging_service_sid,
            "To": phone_number,
            "Body": self.render_message(code),
        }

        try:
            response = await self._client.post(self.messages_url, data=payload)
        except httpx.TimeoutException as e:
            logger.error(f"Twilio request timed out for {masked}: {e}")
            return SMSResult(success=False, error="SMS gateway timed out")
        except httpx.HTTPError as e:
            logger.error(f"Twilio request failed for {masked}: {e}")
            return SMSResult(success=False, error=f"SMS gateway unreachable: {e}")

        if response.is_success:
            message_id = response.json().get("sid")
            logger.info(f"OTP SMS {message_id} accepted for {masked}")
            return SMSResult(success=True, message_id=message_id)

        try:
            error_data = response.json()
        except ValueError:
            error_data = {}
        error = error_data.get("message", "Unknown error")
        logger.error(f"Twilio API error {response.status_code} for {masked}: {error}")
        return SMSResult(success=False, error=f"Failed to send SMS: {error}")

    async def close(self) -> None:
        await self._client.aclose()


class LoggingSMSGateway(SMSGateway):
    """Development gateway: logs the dispatch instead of sending it."""

    async def send_code(self, phone_number: str, code: str) -> SMSResult:
        logger.warning(
            f"Development SMS gateway: code for {mask_phone_number(phone_number)} not sent over SMS"
        )
        return SMSResult(success=True, message_id="development")


def create_sms_gateway(config: Optional[Settings] = None) -> SMSGateway:
    """Pick the gateway for the current environment."""
    config = config or default_settings
    if config.twilio_configured:
        return TwilioSMSGateway(
            account_sid=config.twilio_account_sid,
            auth_token=config.twilio_auth_token,
            messaging_service_sid=config.twilio_messaging_service_sid,
            timeout=config.sms_timeout_seconds,
            expiry_minutes=config.otp_expiry_minutes,
            locale=config.message_locale,
        )
    if config.is_development:
        return LoggingSMSGateway(expiry_minutes=config.otp_expiry_minutes, locale=config.message_locale)
    raise ValueError("Twilio credentials are required outside development")
