"""Unit tests for admin audit logging."""

import uuid
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from duely.admin.audit_log import AuditLogger


@pytest.fixture
def mock_db_session() -> AsyncSession:
    """Provide a mocked database session for testing."""
    session = MagicMock(spec=AsyncSession)
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    return session


@pytest.mark.unit
class TestActionLogging:
    """Unit tests for recording admin actions."""

    @pytest.mark.asyncio
    async def test_log_action_generates_uuid(self, mock_db_session: AsyncSession) -> None:
        """Test that log_action returns the new entry id."""
        logger = AuditLogger(mock_db_session)

        log_id = await logger.log_action(admin_id=uuid.uuid4(), action="login")

        assert isinstance(log_id, uuid.UUID)
        mock_db_session.add.assert_called_once()
        mock_db_session.flush.assert_called_once()
        mock_db_session.commit.assert_called_once()

    @pytest.mark.asyncio
    async def test_log_action_with_all_fields(self, mock_db_session: AsyncSession) -> None:
        """Test logging an action with request context and metadata."""
        logger = AuditLogger(mock_db_session)
        admin_id = uuid.uuid4()

        await logger.log_action(
            admin_id=admin_id,
            action="user_updated",
            target="User jane@example.com",
            metadata={"changes": {"subscription_plan": "pro"}},
            ip_address="192.168.1.100",
            user_agent="Mozilla/5.0",
        )

        entry = mock_db_session.add.call_args.args[0]
        assert entry.admin_id == admin_id
        assert entry.action == "user_updated"
        assert entry.log_metadata == {"changes": {"subscription_plan": "pro"}}
        assert entry.ip_address == "192.168.1.100"
        assert entry.user_agent == "Mozilla/5.0"

    @pytest.mark.asyncio
    async def test_long_target_truncated(self, mock_db_session: AsyncSession) -> None:
        """Test that targets are cut to the column length."""
        logger = AuditLogger(mock_db_session)

        await logger.log_action(admin_id=uuid.uuid4(), action="setting_updated", target="x" * 400)

        entry = mock_db_session.add.call_args.args[0]
        assert len(entry.target) == 255

    @pytest.mark.asyncio
    async def test_log_action_without_commit(self, mock_db_session: AsyncSession) -> None:
        """Test joining the caller's transaction."""
        logger = AuditLogger(mock_db_session)

        await logger.log_action(admin_id=uuid.uuid4(), action="user_deleted", commit=False)

        mock_db_session.flush.assert_called_once()
        mock_db_session.commit.assert_not_called()


@pytest.mark.unit
class TestLogRetrieval:
    """Unit tests for reading the audit trail."""

    @pytest.mark.asyncio
    async def test_get_logs_returns_entries(self, mock_db_session: AsyncSession) -> None:
        """Test retrieving entries joined with the admin's email and name."""
        logger = AuditLogger(mock_db_session)

        rows = []
        for i in range(3):
            entry = MagicMock()
            entry.id = uuid.uuid4()
            entry.admin_id = uuid.uuid4()
            entry.action = f"action_{i}"
            entry.target = None
            entry.log_metadata = {"index": i}
            entry.ip_address = "10.0.0.1"
            entry.user_agent = "pytest"
            entry.created_at = datetime.utcnow() - timedelta(hours=i)
            rows.append((entry, "ops@duely.com", "Ops"))

        mock_result = MagicMock()
        mock_result.all.return_value = rows
        mock_db_session.execute.return_value = mock_result

        logs = await logger.get_logs()

        assert len(logs) == 3
        assert all(log["admin_email"] == "ops@duely.com" for log in logs)
        assert logs[1]["metadata"] == {"index": 1}
        assert logs[0]["action"] == "action_0"

    @pytest.mark.asyncio
    async def test_get_logs_with_filters(self, mock_db_session: AsyncSession) -> None:
        """Test retrieving entries with admin, action and time filters."""
        logger = AuditLogger(mock_db_session)

        mock_result = MagicMock()
        mock_result.all.return_value = []
        mock_db_session.execute.return_value = mock_result

        logs = await logger.get_logs(
            admin_id=uuid.uuid4(),
            action="login",
            start_time=datetime.utcnow() - timedelta(days=7),
            end_time=datetime.utcnow(),
            limit=10,
        )

        assert logs == []
        mock_db_session.execute.assert_called_once()


@pytest.mark.unit
class TestActionStatistics:
    """Unit tests for action statistics."""

    @pytest.mark.asyncio
    async def test_counts_per_action(self, mock_db_session: AsyncSession) -> None:
        """Test that totals are summed from per-action counts."""
        logger = AuditLogger(mock_db_session)

        mock_result = MagicMock()
        mock_result.all.return_value = [("login", 12), ("user_updated", 3)]
        mock_db_session.execute.return_value = mock_result

        stats = await logger.get_action_statistics()

        assert stats == {"total_actions": 15, "by_action": {"login": 12, "user_updated": 3}}

    @pytest.mark.asyncio
    async def test_no_actions(self, mock_db_session: AsyncSession) -> None:
        """Test statistics when nothing has been logged."""
        logger = AuditLogger(mock_db_session)

        mock_result = MagicMock()
        mock_result.all.return_value = []
        mock_db_session.execute.return_value = mock_result

        stats = await logger.get_action_statistics(start_time=datetime.utcnow() - timedelta(days=1))

        assert stats == {"total_actions": 0, "by_action": {}}
