"""
Tests for the Supabase repositories.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, Mock

import pytest
from postgrest.exceptions import APIError

from roster_gate.clients.supabase_client import (
    DatabaseManager,
    SupabaseOTPSessionRepository,
    SupabasePersonnelRepository,
    SupabaseRateLimitRepository
)
from roster_gate.models.internal_models import AuthorizedPersonnelRecord, OTPSession

NOW = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
PHONE = "+972501234567"


@pytest.fixture
def supabase():
    """Mock SupabaseClient wrapper whose .client is the query builder root."""
    wrapper = Mock()
    wrapper.client = MagicMock()
    return wrapper


def session_row(**overrides):
    row = {
        "id": "session-1",
        "phone_number": PHONE,
        "code_hash": "hash",
        "code_salt": "salt",
        "created_at": "2024-03-01T09:00:00+00:00",
        "expires_at": "2024-03-01T09:05:00Z",
        "attempts": 0,
        "used": False,
    }
    row.update(overrides)
    return row


class TestSupabaseOTPSessionRepository:
    """Test cases for SupabaseOTPSessionRepository."""

    @pytest.mark.asyncio
    async def test_get_parses_row(self, supabase):
        table = supabase.client.table.return_value
        table.select.return_value.eq.return_value.execute.return_value = Mock(data=[session_row()])

        session = await SupabaseOTPSessionRepository(supabase).get(PHONE)

        supabase.client.table.assert_called_with("otp_sessions")
        table.select.return_value.eq.assert_called_with("phone_number", PHONE)
        assert session.id == "session-1"
        assert session.expires_at == NOW + timedelta(minutes=5)

    @pytest.mark.asyncio
    async def test_get_missing(self, supabase):
        table = supabase.client.table.return_value
        table.select.return_value.eq.return_value.execute.return_value = Mock(data=[])

        assert await SupabaseOTPSessionRepository(supabase).get(PHONE) is None

    @pytest.mark.asyncio
    async def test_replace_upserts_on_phone(self, supabase):
        table = supabase.client.table.return_value
        table.select.return_value.eq.return_value.execute.return_value = Mock(data=[])
        table.upsert.return_value.execute.return_value = Mock(data=[session_row()])
        session = OTPSession(
            id="session-2",
            phone_number=PHONE,
            code_hash="hash",
            code_salt="salt",
            created_at=NOW,
            expires_at=NOW + timedelta(minutes=5)
        )

        previous = await SupabaseOTPSessionRepository(supabase).replace(session)

        assert previous is None
        row = table.upsert.call_args.args[0]
        assert row["id"] == "session-2"
        assert row["attempts"] == 0
        assert table.upsert.call_args.kwargs["on_conflict"] == "phone_number"

    @pytest.mark.asyncio
    async def test_increment_attempts_uses_rpc(self, supabase):
        supabase.client.rpc.return_value.execute.return_value = Mock(data=3)

        attempts = await SupabaseOTPSessionRepository(supabase).increment_attempts("session-1")

        assert attempts == 3
        supabase.client.rpc.assert_called_once_with("otp_session_record_attempt", {"p_session_id": "session-1"})

    @pytest.mark.asyncio
    async def test_mark_used_is_conditional(self, supabase):
        update = supabase.client.table.return_value.update
        update.return_value.eq.return_value.eq.return_value.execute.return_value = Mock(data=[])

        assert await SupabaseOTPSessionRepository(supabase).mark_used("session-1") is False
        update.assert_called_with({"used": True})
        update.return_value.eq.return_value.eq.assert_called_with("used", False)

    @pytest.mark.asyncio
    async def test_delete_expired_counts_rows(self, supabase):
        delete = supabase.client.table.return_value.delete
        delete.return_value.lt.return_value.execute.return_value = Mock(data=[session_row(), session_row(id="s2")])

        assert await SupabaseOTPSessionRepository(supabase).delete_expired(NOW) == 2
        delete.return_value.lt.assert_called_with("expires_at", NOW.isoformat())

    @pytest.mark.asyncio
    async def test_api_error_propagates(self, supabase):
        table = supabase.client.table.return_value
        table.select.return_value.eq.return_value.execute.side_effect = APIError(
            {"message": "connection refused", "code": "08006"}
        )

        with pytest.raises(APIError):
            await SupabaseOTPSessionRepository(supabase).get(PHONE)


class TestSupabaseRateLimitRepository:
    """Test cases for SupabaseRateLimitRepository."""

    @pytest.mark.asyncio
    async def test_hit_maps_function_row(self, supabase):
        supabase.client.rpc.return_value.execute.return_value = Mock(data=[{
            "out_window_start": "2024-03-01T09:00:00+00:00",
            "out_request_count": 5,
            "out_reset_time": "2024-03-01T10:00:00+00:00",
            "out_allowed": False,
        }])

        window = await SupabaseRateLimitRepository(supabase).hit(PHONE, 5, 3600, NOW)

        assert window.allowed is False
        assert window.count == 5
        assert window.reset_time == NOW + timedelta(hours=1)
        name, params = supabase.client.rpc.call_args.args
        assert name == "otp_rate_limit_hit"
        assert params["p_limit"] == 5
        assert params["p_window_seconds"] == 3600

    @pytest.mark.asyncio
    async def test_hit_without_row_fails(self, supabase):
        supabase.client.rpc.return_value.execute.return_value = Mock(data=[])

        with pytest.raises(ValueError):
            await SupabaseRateLimitRepository(supabase).hit(PHONE, 5, 3600, NOW)


class TestSupabasePersonnelRepository:
    """Test cases for SupabasePersonnelRepository."""

    @pytest.fixture
    def record(self):
        return AuthorizedPersonnelRecord(
            hash="a" * 64,
            salt="salt",
            verifier="b" * 64,
            phone_number=PHONE,
            first_name="דנה",
            last_name="כהן",
            rank="סגן",
            created_at=NOW
        )

    @pytest.mark.asyncio
    async def test_insert(self, supabase, record):
        insert = supabase.client.table.return_value.insert
        insert.return_value.execute.return_value = Mock(data=[{"hash": record.hash}])

        assert await SupabasePersonnelRepository(supabase).insert(record) is True
        row = insert.call_args.args[0]
        assert row["hash"] == record.hash
        assert row["created_at"] == NOW.isoformat()

    @pytest.mark.asyncio
    async def test_insert_duplicate_returns_false(self, supabase, record):
        insert = supabase.client.table.return_value.insert
        insert.return_value.execute.side_effect = APIError({"message": "duplicate key", "code": "23505"})

        assert await SupabasePersonnelRepository(supabase).insert(record) is False

    @pytest.mark.asyncio
    async def test_insert_other_error_raises(self, supabase, record):
        insert = supabase.client.table.return_value.insert
        insert.return_value.execute.side_effect = APIError({"message": "permission denied", "code": "42501"})

        with pytest.raises(APIError):
            await SupabasePersonnelRepository(supabase).insert(record)

    @pytest.mark.asyncio
    async def test_mark_registered_is_conditional(self, supabase):
        update = supabase.client.table.return_value.update
        update.return_value.eq.return_value.eq.return_value.execute.return_value = Mock(data=[{"hash": "a"}])

        assert await SupabasePersonnelRepository(supabase).mark_registered("a" * 64, NOW) is True
        update.return_value.eq.return_value.eq.assert_called_with("registered", False)

    @pytest.mark.asyncio
    async def test_get_parses_row(self, supabase):
        table = supabase.client.table.return_value
        table.select.return_value.eq.return_value.execute.return_value = Mock(data=[{
            "hash": "a" * 64,
            "salt": "salt",
            "verifier": "b" * 64,
            "phone_number": PHONE,
            "first_name": "דנה",
            "last_name": "כהן",
            "rank": "סגן",
            "registered": True,
            "created_at": "2024-03-01T09:00:00+00:00",
            "registered_at": None,
        }])

        record = await SupabasePersonnelRepository(supabase).get("a" * 64)

        assert record.registered is True
        assert record.created_at == NOW
        assert record.registered_at is None


class TestDatabaseManager:
    """Test cases for DatabaseManager."""

    def test_bundles_repositories(self, supabase):
        manager = DatabaseManager(supabase)

        assert isinstance(manager.sessions, SupabaseOTPSessionRepository)
        assert isinstance(manager.rate_limits, SupabaseRateLimitRepository)
        assert isinstance(manager.personnel, SupabasePersonnelRepository)

    @pytest.mark.asyncio
    async def test_health_check_delegates(self, supabase):
        supabase.health_check = AsyncMock(return_value=False)

        assert await DatabaseManager(supabase).health_check() is False
