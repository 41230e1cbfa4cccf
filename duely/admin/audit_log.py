"""Audit trail of admin actions."""

import uuid
from datetime import datetime

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from duely.models.admin import AdminDB, AdminLogDB

logger = structlog.get_logger(__name__)


class AuditLogger:
    """Audit logging service for recording admin operations.

    Entries are append-only; nothing in the application updates or
    deletes them.
    """

    def __init__(self, db_session: AsyncSession):
        """Initialize audit logger.

        Args:
            db_session: Database session for writing audit logs
        """
        self.db_session = db_session

    async def log_action(
        self,
        admin_id: uuid.UUID,
        action: str,
        target: str | None = None,
        metadata: dict | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        commit: bool = True,
    ) -> uuid.UUID:
        """Record an admin action.

        Args:
            admin_id: Admin performing the action
            action: Action name, e.g. ``user_updated`` or ``admin_login``
            target: Human readable description of what was acted on
            metadata: Structured details (before/after values, counts)
            ip_address: Client IP address
            user_agent: Client user agent string
            commit: Commit immediately; pass False to join the caller's transaction

        Returns:
            Audit log entry ID
        """
        entry = AdminLogDB(
            id=uuid.uuid4(),
            admin_id=admin_id,
            action=action,
            target=target[:255] if target else None,
            log_metadata=metadata,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=datetime.utcnow(),
        )
        self.db_session.add(entry)
        await self.db_session.flush()
        if commit:
            await self.db_session.commit()

        logger.info("admin_action", admin_id=str(admin_id), action=action, target=target)
        return entry.id

    async def get_logs(
        self,
        admin_id: uuid.UUID | None = None,
        action: str | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
        limit: int = 50,
    ) -> list[dict]:
        """Get audit entries, newest first, with the acting admin's name and email."""
        query = select(AdminLogDB, AdminDB.email, AdminDB.name).outerjoin(
            AdminDB, AdminLogDB.admin_id == AdminDB.id
        )

        if admin_id:
            query = query.where(AdminLogDB.admin_id == admin_id)
        if action:
            query = query.where(AdminLogDB.action == action)
        if start_time:
            query = query.where(AdminLogDB.created_at >= start_time)
        if end_time:
            query = query.where(AdminLogDB.created_at <= end_time)

        query = query.order_by(AdminLogDB.created_at.desc()).limit(limit)
        result = await self.db_session.execute(query)

        return [
            {
                "id": str(entry.id),
                "admin_id": str(entry.admin_id),
                "admin_email": email,
                "admin_name": name,
                "action": entry.action,
                "target": entry.target,
                "metadata": entry.log_metadata,
                "ip_address": entry.ip_address,
                "user_agent": entry.user_agent,
                "created_at": entry.created_at.isoformat(),
            }
            for entry, email, name in result.all()
        ]

    async def get_action_statistics(
        self, start_time: datetime | None = None, end_time: datetime | None = None
    ) -> dict:
        """Count of entries per action."""
        conditions = []
        if start_time:
            conditions.append(AdminLogDB.created_at >= start_time)
        if end_time:
            conditions.append(AdminLogDB.created_at <= end_time)

        query = select(AdminLogDB.action, func.count(AdminLogDB.id)).group_by(AdminLogDB.action)
        if conditions:
            query = query.where(*conditions)
        result = await self.db_session.execute(query)
        by_action = dict(result.all())

        return {"total_actions": sum(by_action.values()), "by_action": by_action}
