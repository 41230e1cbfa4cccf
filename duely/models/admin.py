"""Admin back-office data models."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)

from duely.models.base import Base, to_naive_utc


class SettingType(str, Enum):
    """Storage type of an admin setting value."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"


class SettingCategory(str, Enum):
    """Grouping of admin settings."""

    GENERAL = "general"
    SECURITY = "security"
    NOTIFICATIONS = "notifications"
    ANALYTICS = "analytics"


class AdminNotificationType(str, Enum):
    """Severity class of an admin notification."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AdminNotificationCategory(str, Enum):
    """Origin of an admin notification."""

    SYSTEM = "system"
    SECURITY = "security"
    USER_ACTION = "user_action"
    SUBSCRIPTION = "subscription"


# ========== SQLAlchemy ORM Models ==========


class AdminDB(Base):
    """SQLAlchemy model for admins table."""

    __tablename__ = "admins"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(100), nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="admin")
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime, nullable=True)
    two_factor_enabled = Column(Boolean, nullable=False, default=False)
    two_factor_secret = Column(Text, nullable=True)
    backup_codes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class AdminLogDB(Base):
    """SQLAlchemy model for admin_logs table (append-only)."""

    __tablename__ = "admin_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    admin_id = Column(Uuid, ForeignKey("admins.id", ondelete="CASCADE"), nullable=False)
    action = Column(String(100), nullable=False)
    target = Column(String(255), nullable=True)
    log_metadata = Column("metadata", JSON, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_admin_logs_admin", "admin_id", "created_at"),
        Index("idx_admin_logs_action", "action"),
    )


class AdminSettingDB(Base):
    """SQLAlchemy model for admin_settings key/value table."""

    __tablename__ = "admin_settings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    key = Column(String(100), nullable=False, unique=True)
    value = Column(Text, nullable=False)
    type = Column(String(20), nullable=False)
    category = Column(String(30), nullable=False)
    description = Column(Text, nullable=True)
    updated_by = Column(Uuid, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint(
            "type IN ('string', 'number', 'boolean', 'json')", name="admin_settings_type_check"
        ),
        Index("idx_admin_settings_category", "category"),
    )


class AdminNotificationDB(Base):
    """SQLAlchemy model for admin_notifications table."""

    __tablename__ = "admin_notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    type = Column(String(20), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    category = Column(String(30), nullable=False)
    severity = Column(Integer, nullable=False, default=1)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime, nullable=True)
    read_by = Column(Uuid, nullable=True)
    notification_metadata = Column("metadata", JSON, nullable=True)
    action_url = Column(String(500), nullable=True)
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("severity BETWEEN 1 AND 5", name="admin_notifications_severity_check"),
        Index("idx_admin_notifications_unread", "is_read", "created_at"),
    )


class MaintenanceModeDB(Base):
    """SQLAlchemy model for the single-row maintenance_mode table."""

    __tablename__ = "maintenance_mode"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    is_enabled = Column(Boolean, nullable=False, default=False)
    message = Column(Text, nullable=True)
    estimated_end_time = Column(DateTime, nullable=True)
    started_at = Column(DateTime, nullable=True)
    started_by = Column(Uuid, nullable=True)
    ended_at = Column(DateTime, nullable=True)
    ended_by = Column(Uuid, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class MaintenanceLogDB(Base):
    """SQLAlchemy model for maintenance_logs table (finished windows)."""

    __tablename__ = "maintenance_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    started_at = Column(DateTime, nullable=False)
    ended_at = Column(DateTime, nullable=False)
    duration = Column(Integer, nullable=True)
    message = Column(Text, nullable=True)
    started_by = Column(Uuid, nullable=False)
    started_by_name = Column(String(100), nullable=True)
    ended_by = Column(Uuid, nullable=False)
    ended_by_name = Column(String(100), nullable=True)
    reason = Column(String(50), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


# ========== Pydantic Models ==========


class AdminLoginRequest(BaseModel):
    """Admin login payload."""

    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class TwoFactorCodeRequest(BaseModel):
    """Payload carrying a TOTP or backup code."""

    token: str = Field(..., min_length=1)
    pending_token: str | None = None
    is_backup_code: bool = False


class TwoFactorSetupComplete(BaseModel):
    """Payload confirming a freshly generated TOTP secret."""

    secret: str = Field(..., min_length=1)
    token: str = Field(..., min_length=1)


class SettingWrite(BaseModel):
    """One setting in a create or bulk update request."""

    key: str = Field(..., min_length=1, max_length=100)
    value: Any
    type: SettingType
    category: SettingCategory
    description: str | None = None

    class Config:
        """Pydantic configuration."""

        use_enum_values = True


class AdminNotificationCreate(BaseModel):
    """Payload for creating an admin notification."""

    type: AdminNotificationType
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    category: AdminNotificationCategory
    severity: int = Field(1, ge=1, le=5)
    metadata: dict | None = None
    action_url: str | None = None
    expires_at: datetime | None = None

    @field_validator("expires_at", mode="after")
    @classmethod
    def normalise_expiry(cls, v: datetime | None) -> datetime | None:
        return to_naive_utc(v)

    class Config:
        """Pydantic configuration."""

        use_enum_values = True


class AdminUserUpdate(BaseModel):
    """Fields an admin may change on a user account."""

    name: str | None = Field(None, min_length=1, max_length=50)
    username: str | None = Field(None, min_length=3, max_length=30)
    email: str | None = None
    subscription_plan: str | None = None
    subscription_status: str | None = None
    subscription_end_date: datetime | None = None

    @field_validator("subscription_end_date", mode="after")
    @classmethod
    def normalise_end_date(cls, v: datetime | None) -> datetime | None:
        return to_naive_utc(v)


class AdminSubscriptionUpdate(BaseModel):
    """Fields an admin may change on a tracked subscription."""

    service_name: str | None = Field(None, min_length=1, max_length=100)
    amount: float | None = Field(None, gt=0)
    currency: str | None = None
    billing_frequency: str | None = None
    next_billing: datetime | None = None
    status: str | None = None
    notes: str | None = Field(None, max_length=500)

    @field_validator("next_billing", mode="after")
    @classmethod
    def normalise_next_billing(cls, v: datetime | None) -> datetime | None:
        return to_naive_utc(v)


class SubscriptionStatusChange(BaseModel):
    """Payload for an admin status change."""

    status: str
    reason: str | None = None


class MaintenanceToggle(BaseModel):
    """Payload for switching maintenance mode."""

    enabled: bool
    message: str | None = None
    estimated_minutes: int | None = Field(None, ge=1)
    reason: str | None = None
