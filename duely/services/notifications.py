"""In-app notifications for end users."""

import uuid

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from duely.models.notification import NotificationCreate, NotificationDB
from duely.models.subscription import SubscriptionDB
from duely.services.errors import NotFoundError, OwnershipError

logger = structlog.get_logger(__name__)

LIST_LIMIT = 50


def serialize_notification(
    notification: NotificationDB, subscription: SubscriptionDB | None = None
) -> dict:
    return {
        "id": str(notification.id),
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "is_read": notification.is_read,
        "created_at": notification.created_at.isoformat(),
        "subscription": (
            {
                "id": str(subscription.id),
                "service_name": subscription.service_name,
                "amount": subscription.amount,
                "next_billing": subscription.next_billing.isoformat(),
            }
            if subscription is not None
            else None
        ),
    }


class NotificationService:
    """Read, acknowledge and clean up a user's notifications."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def _get_owned(self, user_id: uuid.UUID, notification_id: uuid.UUID) -> NotificationDB:
        notification = await self.db_session.get(NotificationDB, notification_id)
        if notification is None:
            raise NotFoundError("Notification not found")
        if notification.user_id != user_id:
            raise OwnershipError("Unauthorized")
        return notification

    async def list_notifications(self, user_id: uuid.UUID, unread_only: bool = False) -> list[dict]:
        """The 50 most recent notifications, newest first."""
        query = (
            select(NotificationDB, SubscriptionDB)
            .outerjoin(SubscriptionDB, NotificationDB.subscription_id == SubscriptionDB.id)
            .where(NotificationDB.user_id == user_id)
        )
        if unread_only:
            query = query.where(NotificationDB.is_read.is_(False))
        query = query.order_by(NotificationDB.created_at.desc()).limit(LIST_LIMIT)

        result = await self.db_session.execute(query)
        return [serialize_notification(n, sub) for n, sub in result.all()]

    async def unread_count(self, user_id: uuid.UUID) -> int:
        result = await self.db_session.execute(
            select(func.count(NotificationDB.id)).where(
                NotificationDB.user_id == user_id, NotificationDB.is_read.is_(False)
            )
        )
        return result.scalar_one()

    async def mark_read(self, user_id: uuid.UUID, notification_id: uuid.UUID) -> None:
        notification = await self._get_owned(user_id, notification_id)
        notification.is_read = True
        await self.db_session.commit()

    async def mark_all_read(self, user_id: uuid.UUID) -> int:
        result = await self.db_session.execute(
            update(NotificationDB)
            .where(NotificationDB.user_id == user_id, NotificationDB.is_read.is_(False))
            .values(is_read=True)
        )
        await self.db_session.commit()
        return result.rowcount

    async def delete(self, user_id: uuid.UUID, notification_id: uuid.UUID) -> None:
        notification = await self._get_owned(user_id, notification_id)
        await self.db_session.delete(notification)
        await self.db_session.commit()

    async def clear_read(self, user_id: uuid.UUID) -> int:
        result = await self.db_session.execute(
            delete(NotificationDB).where(
                NotificationDB.user_id == user_id, NotificationDB.is_read.is_(True)
            )
        )
        await self.db_session.commit()
        return result.rowcount

    async def create(self, user_id: uuid.UUID, data: NotificationCreate) -> NotificationDB:
        notification = NotificationDB(user_id=user_id, **data.model_dump())
        self.db_session.add(notification)
        await self.db_session.commit()
        logger.info(
            "notification_created",
            user_id=str(user_id),
            notification_id=str(notification.id),
            type=notification.type,
        )
        return notification
