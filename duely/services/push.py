"""Browser push subscriptions and Web Push delivery (VAPID)."""

import asyncio
import json
import os
import uuid

import requests
import structlog
from pywebpush import WebPushException, webpush
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from duely.models.notification import PushSubscriptionCreate, PushSubscriptionDB

logger = structlog.get_logger(__name__)

DEFAULT_VAPID_SUBJECT = "mailto:admin@duely.online"
DEFAULT_ICON = "/icons/notification-icon.png"
GONE_STATUSES = (404, 410)


def build_payload(
    title: str,
    body: str,
    icon: str | None = None,
    url: str | None = None,
    tag: str | None = None,
    require_interaction: bool = False,
    notification_id: str | None = None,
    data: dict | None = None,
    actions: list[dict] | None = None,
) -> str:
    """JSON document read by the service worker's ``push`` handler."""
    return json.dumps(
        {
            "title": title,
            "body": body,
            "icon": icon or DEFAULT_ICON,
            "url": url or "/dashboard",
            "tag": tag or "duely-notification",
            "requireInteraction": require_interaction,
            "notificationId": notification_id,
            "data": data or {},
            "actions": actions or [],
        }
    )


def _vapid_config() -> tuple[str | None, str | None, str]:
    return (
        os.getenv("VAPID_PUBLIC_KEY"),
        os.getenv("VAPID_PRIVATE_KEY"),
        os.getenv("VAPID_SUBJECT", DEFAULT_VAPID_SUBJECT),
    )


class PushService:
    """Stores push subscriptions and sends notifications to them."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session
        self.public_key, self.private_key, self.subject = _vapid_config()

    @property
    def is_configured(self) -> bool:
        return bool(self.public_key and self.private_key)

    async def subscribe(self, user_id: uuid.UUID, data: PushSubscriptionCreate) -> PushSubscriptionDB:
        """Register a browser endpoint, refreshing the keys if it is already known."""
        result = await self.db_session.execute(
            select(PushSubscriptionDB).where(PushSubscriptionDB.endpoint == data.endpoint)
        )
        subscription = result.scalar_one_or_none()

        if subscription is None:
            subscription = PushSubscriptionDB(
                user_id=user_id,
                endpoint=data.endpoint,
                p256dh=data.keys.p256dh,
                auth=data.keys.auth,
                user_agent=data.user_agent,
            )
            self.db_session.add(subscription)
        else:
            subscription.user_id = user_id
            subscription.p256dh = data.keys.p256dh
            subscription.auth = data.keys.auth

        await self.db_session.commit()
        logger.info("push_subscribed", user_id=str(user_id))
        return subscription

    async def unsubscribe(self, user_id: uuid.UUID, endpoint: str) -> bool:
        result = await self.db_session.execute(
            delete(PushSubscriptionDB).where(
                PushSubscriptionDB.user_id == user_id, PushSubscriptionDB.endpoint == endpoint
            )
        )
        await self.db_session.commit()
        return result.rowcount > 0

    async def list_subscriptions(self, user_id: uuid.UUID) -> list[dict]:
        result = await self.db_session.execute(
            select(PushSubscriptionDB)
            .where(PushSubscriptionDB.user_id == user_id)
            .order_by(PushSubscriptionDB.created_at.desc())
        )
        return [
            {
                "id": str(sub.id),
                "endpoint": sub.endpoint,
                "user_agent": sub.user_agent,
                "created_at": sub.created_at.isoformat(),
            }
            for sub in result.scalars().all()
        ]

    def _send(self, subscription: PushSubscriptionDB, payload: str) -> None:
        webpush(
            subscription_info={
                "endpoint": subscription.endpoint,
                "keys": {"p256dh": subscription.p256dh, "auth": subscription.auth},
            },
            data=payload,
            vapid_private_key=self.private_key,
            vapid_claims={"sub": self.subject},
        )

    async def send_to_user(self, user_id: uuid.UUID, payload: str) -> dict:
        """Deliver ``payload`` to every device of the user.

        Endpoints the push service reports as gone are removed.

        Returns:
            Dict with ``sent`` and ``failed`` counts
        """
        if not self.is_configured:
            logger.warning("push_not_configured")
            return {"sent": 0, "failed": 0}

        result = await self.db_session.execute(
            select(PushSubscriptionDB).where(PushSubscriptionDB.user_id == user_id)
        )
        subscriptions = list(result.scalars().all())

        sent = failed = 0
        for subscription in subscriptions:
            try:
                await asyncio.to_thread(self._send, subscription, payload)
                sent += 1
            except WebPushException as e:
                failed += 1
                status = e.response.status_code if e.response is not None else None
                logger.warning("push_send_failed", user_id=str(user_id), status=status, error=str(e))
                if status in GONE_STATUSES:
                    await self.db_session.delete(subscription)
            except requests.RequestException as e:
                # Network failures are per device; the remaining devices still get the push
                failed += 1
                logger.warning("push_send_failed", user_id=str(user_id), status=None, error=str(e))

        if failed:
            await self.db_session.commit()

        logger.info("push_sent", user_id=str(user_id), sent=sent, failed=failed)
        return {"sent": sent, "failed": failed}

    async def send_test(self, user_id: uuid.UUID) -> bool:
        payload = build_payload(
            title="Test Notification",
            body="This is a test push notification from Duely!",
            tag="test-notification",
        )
        result = await self.send_to_user(user_id, payload)
        return result["sent"] > 0
