"""
Tests for the OTP session lifecycle.
"""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from roster_gate.clients.memory_store import InMemoryOTPSessionStore
from roster_gate.config import OTPConfig
from roster_gate.models.internal_models import OTPState
from roster_gate.services.errors import ErrorKind, InfrastructureError
from roster_gate.services.otp_manager import OTPManager

PHONE = "+972501234567"


class TestOTPManager:
    """Test cases for OTPManager."""

    @pytest.fixture
    def store(self):
        return InMemoryOTPSessionStore()

    @pytest.fixture
    def manager(self, store, clock):
        return OTPManager(store, OTPConfig(expiry=timedelta(minutes=5), max_attempts=5), clock)

    @pytest.mark.asyncio
    async def test_create_session_stores_hash_only(self, manager, store, clock):
        session = await manager.create_otp_session(PHONE, "123456")

        stored = await store.get(PHONE)
        assert stored.id == session.id
        assert stored.code_hash != "123456"
        assert "123456" not in stored.code_hash
        assert stored.expires_at == clock.now + timedelta(minutes=5)
        assert stored.attempts == 0
        assert stored.used is False

    @pytest.mark.asyncio
    async def test_correct_code_verifies_once(self, manager):
        await manager.create_otp_session(PHONE, "123456")

        first = await manager.verify_otp_code(PHONE, "123456")
        second = await manager.verify_otp_code(PHONE, "123456")

        assert first.verified is True
        assert first.error is None
        assert second.verified is False
        assert second.error is ErrorKind.ALREADY_USED

    @pytest.mark.asyncio
    async def test_missing_session(self, manager):
        result = await manager.verify_otp_code(PHONE, "123456")

        assert result.verified is False
        assert result.error is ErrorKind.SESSION_NOT_FOUND

    @pytest.mark.asyncio
    async def test_expired_session(self, manager, clock):
        await manager.create_otp_session(PHONE, "123456")
        clock.advance(minutes=5, seconds=1)

        result = await manager.verify_otp_code(PHONE, "123456")

        assert result.error is ErrorKind.EXPIRED

    @pytest.mark.asyncio
    async def test_code_valid_until_expiry_instant(self, manager, clock):
        await manager.create_otp_session(PHONE, "123456")
        clock.advance(minutes=5)

        result = await manager.verify_otp_code(PHONE, "123456")

        assert result.verified is True

    @pytest.mark.asyncio
    async def test_mismatch_increments_attempts(self, manager, store):
        await manager.create_otp_session(PHONE, "123456")

        result = await manager.verify_otp_code(PHONE, "000000")

        assert result.verified is False
        assert result.error is ErrorKind.CODE_MISMATCH
        assert result.attempts == 1
        assert (await store.get(PHONE)).attempts == 1

    @pytest.mark.asyncio
    async def test_attempts_exhausted_blocks_correct_code(self, manager):
        await manager.create_otp_session(PHONE, "123456")
        for _ in range(5):
            await manager.verify_otp_code(PHONE, "000000")

        result = await manager.verify_otp_code(PHONE, "123456")

        assert result.verified is False
        assert result.error is ErrorKind.ATTEMPTS_EXHAUSTED

    @pytest.mark.asyncio
    async def test_new_session_supersedes_old_code(self, manager):
        await manager.create_otp_session(PHONE, "111111")
        await manager.create_otp_session(PHONE, "222222")

        old = await manager.verify_otp_code(PHONE, "111111")
        new = await manager.verify_otp_code(PHONE, "222222")

        assert old.error is ErrorKind.CODE_MISMATCH
        assert new.verified is True

    @pytest.mark.asyncio
    async def test_verification_does_not_touch_other_phones(self, manager, store):
        await manager.create_otp_session(PHONE, "123456")
        await manager.create_otp_session("+972521111111", "654321")

        await manager.verify_otp_code(PHONE, "123456")

        other = await store.get("+972521111111")
        assert other.used is False
        assert other.attempts == 0

    @pytest.mark.asyncio
    async def test_is_phone_verified(self, manager, clock):
        await manager.create_otp_session(PHONE, "123456")
        assert await manager.is_phone_verified(PHONE) is False

        await manager.verify_otp_code(PHONE, "123456")
        assert await manager.is_phone_verified(PHONE) is True

        clock.advance(minutes=6)
        assert await manager.is_phone_verified(PHONE) is False

    @pytest.mark.asyncio
    async def test_cleanup_removes_only_expired(self, manager, store, clock):
        await manager.create_otp_session(PHONE, "123456")
        clock.advance(minutes=10)
        await manager.create_otp_session("+972521111111", "654321")

        deleted = await manager.cleanup_expired_sessions()

        assert deleted == 1
        assert await store.get(PHONE) is None
        assert await store.get("+972521111111") is not None

    @pytest.mark.asyncio
    async def test_lost_mark_used_race_reports_already_used(self, manager, store):
        await manager.create_otp_session(PHONE, "123456")
        store.mark_used = AsyncMock(return_value=False)

        result = await manager.verify_otp_code(PHONE, "123456")

        assert result.error is ErrorKind.ALREADY_USED

    @pytest.mark.asyncio
    async def test_store_failure_is_infrastructure_error(self, clock):
        store = AsyncMock()
        store.get.side_effect = ConnectionError("database down")
        manager = OTPManager(store, OTPConfig(), clock)

        with pytest.raises(InfrastructureError):
            await manager.verify_otp_code(PHONE, "123456")


class TestSessionState:
    """Test cases for session state classification."""

    @pytest.mark.asyncio
    async def test_states(self, clock):
        store = InMemoryOTPSessionStore()
        manager = OTPManager(store, OTPConfig(max_attempts=2), clock)

        assert manager.session_state(None) is OTPState.NO_SESSION

        session = await manager.create_otp_session(PHONE, "123456")
        assert manager.session_state(session) is OTPState.PENDING

        session.attempts = 2
        assert manager.session_state(session) is OTPState.EXHAUSTED

        session.attempts = 0
        assert manager.session_state(session, clock.now + timedelta(minutes=6)) is OTPState.EXPIRED

        session.used = True
        assert manager.session_state(session) is OTPState.VERIFIED
