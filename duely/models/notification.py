"""In-app notification and web push subscription models."""

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
)

from duely.models.base import Base


class NotificationType(str, Enum):
    """Kinds of notification shown to end users."""

    RENEWAL_REMINDER = "renewal_reminder"
    OVERDUE = "overdue"
    BUDGET_ALERT = "budget_alert"
    SYSTEM = "system"


# ========== SQLAlchemy ORM Models ==========


class NotificationDB(Base):
    """SQLAlchemy model for notifications table."""

    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    subscription_id = Column(
        Uuid, ForeignKey("subscriptions.id", ondelete="CASCADE"), nullable=True
    )
    type = Column(String(30), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_user_notifications", "user_id", "created_at"),
        Index("idx_notification_dedupe", "subscription_id", "type", "created_at"),
    )


class PushSubscriptionDB(Base):
    """SQLAlchemy model for push_subscriptions table (one row per browser)."""

    __tablename__ = "push_subscriptions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    endpoint = Column(String(1000), nullable=False, unique=True)
    p256dh = Column(String(255), nullable=False)
    auth = Column(String(255), nullable=False)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )


# ========== Pydantic Models ==========


class NotificationCreate(BaseModel):
    """Payload for creating a notification."""

    type: NotificationType
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    subscription_id: uuid.UUID | None = None

    class Config:
        """Pydantic configuration."""

        use_enum_values = True


class PushKeys(BaseModel):
    """Keys part of a browser PushSubscription."""

    p256dh: str
    auth: str


class PushSubscriptionCreate(BaseModel):
    """Browser PushSubscription as serialised by the service worker."""

    endpoint: str = Field(..., min_length=1, max_length=1000)
    keys: PushKeys
    user_agent: str | None = None


class PushUnsubscribe(BaseModel):
    """Payload for removing a push subscription."""

    endpoint: str
