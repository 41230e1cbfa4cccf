"""User account, user settings and plan data models."""

import re
import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Uuid,
)

from duely.models.base import Base

NAME_PATTERN = re.compile(r"^[a-zA-Z0-9\s'-]+$")
USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class SubscriptionPlan(str, Enum):
    """Duely pricing tier a user is on."""

    FREE = "free"
    PRO = "pro"
    BUSINESS = "business"


class PlanStatus(str, Enum):
    """Status of the user's Duely plan."""

    ACTIVE = "active"
    TRIAL = "trial"
    CANCELED = "canceled"
    EXPIRED = "expired"


class BillingCycle(str, Enum):
    """Billing cycle of a paid Duely plan."""

    MONTHLY = "monthly"
    YEARLY = "yearly"


# ========== SQLAlchemy ORM Models ==========


class UserDB(Base):
    """SQLAlchemy model for users table."""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(50), nullable=False)
    username = Column(String(30), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=True)
    image = Column(String(500), nullable=True)
    google_id = Column(String(255), nullable=True, unique=True)
    subscription_plan = Column(String(20), nullable=False, default=SubscriptionPlan.FREE.value)
    subscription_status = Column(String(20), nullable=False, default=PlanStatus.ACTIVE.value)
    subscription_start_date = Column(DateTime, nullable=True)
    subscription_end_date = Column(DateTime, nullable=True)
    billing_cycle = Column(String(20), nullable=True)
    stripe_customer_id = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint(
            "subscription_plan IN ('free', 'pro', 'business')",
            name="users_subscription_plan_check",
        ),
        CheckConstraint(
            "subscription_status IN ('active', 'trial', 'canceled', 'expired')",
            name="users_subscription_status_check",
        ),
    )


class UserSettingsDB(Base):
    """SQLAlchemy model for user_settings table (one row per user)."""

    __tablename__ = "user_settings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    currency = Column(String(3), nullable=False, default="IDR")
    language = Column(String(5), nullable=False, default="en")
    email_reminders = Column(Boolean, nullable=False, default=True)
    reminder_days_before = Column(Integer, nullable=False, default=3)
    weekly_digest = Column(Boolean, nullable=False, default=False)
    monthly_budget_limit = Column(Float, nullable=True)
    monthly_budget_currency = Column(String(3), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


# ========== Pydantic Models ==========


def _validate_name(value: str) -> str:
    value = value.strip()
    if len(value) < 2:
        raise ValueError("Name must be at least 2 characters")
    if len(value) > 50:
        raise ValueError("Name must be less than 50 characters")
    if not NAME_PATTERN.match(value):
        raise ValueError("Name can only contain letters, numbers, spaces, hyphens, and apostrophes")
    return value.title()


def _validate_username(value: str) -> str:
    value = value.strip().lower()
    if len(value) < 3:
        raise ValueError("Username must be at least 3 characters")
    if len(value) > 30:
        raise ValueError("Username must be less than 30 characters")
    if not USERNAME_PATTERN.match(value):
        raise ValueError("Username can only contain letters, numbers, underscores, and hyphens")
    return value


def _validate_password(value: str) -> str:
    if len(value) < 6:
        raise ValueError("Password must be at least 6 characters")
    if len(value) > 100:
        raise ValueError("Password is too long")
    if not re.search(r"[A-Za-z]", value) or not re.search(r"\d", value):
        raise ValueError("Password must contain at least one letter and one number")
    return value


class RegisterRequest(BaseModel):
    """Sign-up form payload."""

    name: str
    username: str
    email: str = Field(..., max_length=255)
    password: str
    confirm_password: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _validate_name(v)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        return _validate_username(v)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Invalid email address")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _validate_password(v)

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class LoginRequest(BaseModel):
    """Credentials login payload."""

    email: str
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class ProfileUpdate(BaseModel):
    """Profile edit payload; omitted fields are left unchanged."""

    name: str | None = None
    username: str | None = None
    image: str | None = Field(None, max_length=500)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        return _validate_name(v) if v is not None else v

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str | None) -> str | None:
        return _validate_username(v) if v is not None else v


class PasswordChange(BaseModel):
    """Password change payload."""

    current_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        return _validate_password(v)


class UserSettingsUpdate(BaseModel):
    """Partial update of a user's preferences."""

    currency: str | None = Field(None, min_length=3, max_length=3)
    language: str | None = Field(None, pattern=r"^(en|id)$")
    email_reminders: bool | None = None
    reminder_days_before: int | None = Field(None, ge=1, le=30)
    weekly_digest: bool | None = None
    monthly_budget_limit: float | None = Field(None, gt=0)
    monthly_budget_currency: str | None = Field(None, min_length=3, max_length=3)

    @field_validator("currency", "monthly_budget_currency")
    @classmethod
    def upper_currency(cls, v: str | None) -> str | None:
        return v.upper() if v else v


class User(BaseModel):
    """Public view of a user account."""

    id: uuid.UUID
    name: str
    username: str
    email: str
    image: str | None = None
    subscription_plan: SubscriptionPlan = SubscriptionPlan.FREE
    subscription_status: PlanStatus = PlanStatus.ACTIVE
    subscription_end_date: datetime | None = None
    billing_cycle: BillingCycle | None = None
    created_at: datetime

    class Config:
        """Pydantic configuration."""

        from_attributes = True
        use_enum_values = True
