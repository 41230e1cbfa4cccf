"""System notifications shown in the admin back-office."""

import uuid
from datetime import datetime

import structlog
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from duely.models.admin import AdminNotificationDB
from duely.services.errors import NotFoundError

logger = structlog.get_logger(__name__)

LIST_LIMIT = 100
NOTIFICATION_TYPES = ("info", "warning", "error", "critical")
NOTIFICATION_CATEGORIES = ("system", "security", "user_action", "subscription")


def serialize_admin_notification(notification: AdminNotificationDB) -> dict:
    return {
        "id": str(notification.id),
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "category": notification.category,
        "severity": notification.severity,
        "is_read": notification.is_read,
        "read_at": notification.read_at.isoformat() if notification.read_at else None,
        "read_by": str(notification.read_by) if notification.read_by else None,
        "metadata": notification.notification_metadata,
        "action_url": notification.action_url,
        "expires_at": notification.expires_at.isoformat() if notification.expires_at else None,
        "created_at": notification.created_at.isoformat(),
    }


def _not_expired(now: datetime):
    return or_(AdminNotificationDB.expires_at.is_(None), AdminNotificationDB.expires_at > now)


class AdminNotificationService:
    """Create, list and acknowledge admin notifications."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def create(
        self,
        type: str,
        title: str,
        message: str,
        category: str,
        severity: int = 1,
        metadata: dict | None = None,
        action_url: str | None = None,
        expires_at: datetime | None = None,
    ) -> AdminNotificationDB:
        notification = AdminNotificationDB(
            type=type,
            title=title,
            message=message,
            category=category,
            severity=severity or 1,
            notification_metadata=metadata,
            action_url=action_url,
            expires_at=expires_at,
        )
        self.db_session.add(notification)
        await self.db_session.commit()
        logger.info("admin_notification_created", type=type, category=category, severity=severity)
        return notification

    async def list_notifications(
        self,
        type: str | None = None,
        category: str | None = None,
        is_read: bool | None = None,
        limit: int = LIST_LIMIT,
        now: datetime | None = None,
    ) -> list[dict]:
        """Unexpired notifications, most severe and then newest first."""
        query = select(AdminNotificationDB).where(_not_expired(now or datetime.utcnow()))
        if type:
            query = query.where(AdminNotificationDB.type == type)
        if category:
            query = query.where(AdminNotificationDB.category == category)
        if is_read is not None:
            query = query.where(AdminNotificationDB.is_read.is_(is_read))

        query = query.order_by(
            AdminNotificationDB.severity.desc(), AdminNotificationDB.created_at.desc()
        ).limit(limit)
        result = await self.db_session.execute(query)
        return [serialize_admin_notification(n) for n in result.scalars().all()]

    async def unread_count(self, now: datetime | None = None) -> int:
        result = await self.db_session.execute(
            select(func.count(AdminNotificationDB.id)).where(
                AdminNotificationDB.is_read.is_(False), _not_expired(now or datetime.utcnow())
            )
        )
        return result.scalar_one()

    async def mark_read(self, notification_id: uuid.UUID, read_by: uuid.UUID) -> None:
        notification = await self.db_session.get(AdminNotificationDB, notification_id)
        if notification is None:
            raise NotFoundError("Notification not found")
        notification.is_read = True
        notification.read_at = datetime.utcnow()
        notification.read_by = read_by
        await self.db_session.commit()

    async def mark_all_read(self, read_by: uuid.UUID) -> int:
        result = await self.db_session.execute(
            update(AdminNotificationDB)
            .where(AdminNotificationDB.is_read.is_(False))
            .values(is_read=True, read_at=datetime.utcnow(), read_by=read_by)
        )
        await self.db_session.commit()
        return result.rowcount

    async def delete(self, notification_id: uuid.UUID) -> None:
        notification = await self.db_session.get(AdminNotificationDB, notification_id)
        if notification is None:
            raise NotFoundError("Notification not found")
        await self.db_session.delete(notification)
        await self.db_session.commit()

    async def cleanup_expired(self, now: datetime | None = None) -> int:
        result = await self.db_session.execute(
            delete(AdminNotificationDB).where(
                AdminNotificationDB.expires_at < (now or datetime.utcnow())
            )
        )
        await self.db_session.commit()
        return result.rowcount

    async def notify_system_error(self, title: str, message: str, metadata: dict | None = None):
        return await self.create("error", title, message, "system", 4, metadata)

    async def notify_security_alert(self, title: str, message: str, metadata: dict | None = None):
        return await self.create("critical", title, message, "security", 5, metadata)

    async def notify_user_action(self, title: str, message: str, metadata: dict | None = None):
        return await self.create("info", title, message, "user_action", 2, metadata)

    async def notify_subscription_event(self, title: str, message: str, metadata: dict | None = None):
        return await self.create("warning", title, message, "subscription", 3, metadata)
