"""Shared fixtures for the roster gate tests."""

from datetime import datetime, timedelta, timezone
from typing import List, Tuple

import pytest

from roster_gate.clients.sms_gateway import SMSGateway
from roster_gate.models.internal_models import SMSResult

TEST_HASH_SECRET = "test-secret-for-identifier-hashing"


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingSMSGateway(SMSGateway):
    """Keeps every dispatched code instead of sending it."""

    def __init__(self, succeed: bool = True):
        super().__init__(expiry_minutes=5, locale="he")
        self.succeed = succeed
        self.sent: List[Tuple[str, str]] = []

    async def send_code(self, phone_number: str, code: str) -> SMSResult:
        if not self.succeed:
            return SMSResult(success=False, error="Failed to send SMS: carrier rejected")
        self.sent.append((phone_number, code))
        return SMSResult(success=True, message_id=f"SM{len(self.sent)}")

    def last_code(self, phone_number: str) -> str:
        return [code for phone, code in self.sent if phone == phone_number][-1]


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def sms_gateway():
    return RecordingSMSGateway()
