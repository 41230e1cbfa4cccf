"""Tracked subscription, category and family member data models."""

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
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)

from duely.models.base import Base, to_naive_utc

SUPPORTED_CURRENCIES = ["USD", "EUR", "GBP", "JPY", "IDR", "CAD", "AUD", "INR", "KRW"]
MAX_AMOUNT = 100_000_000


class BillingFrequency(str, Enum):
    """How often a tracked subscription bills."""

    MONTHLY = "monthly"
    YEARLY = "yearly"
    QUARTERLY = "quarterly"
    WEEKLY = "weekly"


class SubscriptionStatus(str, Enum):
    """Lifecycle status of a tracked subscription."""

    ACTIVE = "active"
    TRIAL = "trial"
    PAUSED = "paused"
    CANCELED = "canceled"


class SortField(str, Enum):
    """Sortable subscription columns."""

    SERVICE_NAME = "service_name"
    AMOUNT = "amount"
    NEXT_BILLING = "next_billing"
    CREATED_AT = "created_at"


# ========== SQLAlchemy ORM Models ==========


class CategoryDB(Base):
    """SQLAlchemy model for categories table."""

    __tablename__ = "categories"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    icon = Column(String(50), nullable=True)
    color = Column(String(20), nullable=True)
    budget_limit = Column(Float, nullable=True)
    budget_currency = Column(String(3), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_categories_user_name"),)


class MemberDB(Base):
    """SQLAlchemy model for members table (household/family members)."""

    __tablename__ = "members"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    avatar_color = Column(String(20), nullable=True)
    avatar_image = Column(String(500), nullable=True)
    is_primary = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class SubscriptionDB(Base):
    """SQLAlchemy model for subscriptions table."""

    __tablename__ = "subscriptions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    service_name = Column(String(100), nullable=False)
    service_icon = Column(String(255), nullable=True)
    amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False, default="IDR")
    billing_frequency = Column(String(20), nullable=False)
    category_id = Column(Uuid, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    member_id = Column(Uuid, ForeignKey("members.id", ondelete="SET NULL"), nullable=True)
    start_date = Column(DateTime, nullable=False)
    next_billing = Column(DateTime, nullable=False)
    status = Column(String(20), nullable=False, default=SubscriptionStatus.ACTIVE.value)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'trial', 'paused', 'canceled')",
            name="subscriptions_status_check",
        ),
        CheckConstraint("amount > 0", name="subscriptions_amount_check"),
        Index("idx_user_next_billing", "user_id", "next_billing"),
        Index("idx_user_status", "user_id", "status"),
    )


# ========== Pydantic Models ==========


def _check_currency(value: str | None) -> str | None:
    if value is None:
        return value
    value = value.upper()
    if value not in SUPPORTED_CURRENCIES:
        raise ValueError("Invalid currency")
    return value


class SubscriptionCreate(BaseModel):
    """Payload for recording a new subscription."""

    service_name: str = Field(..., min_length=1, max_length=100)
    service_icon: str | None = None
    amount: float = Field(..., gt=0, le=MAX_AMOUNT)
    currency: str = "IDR"
    billing_frequency: BillingFrequency
    category_id: uuid.UUID | None = None
    member_id: uuid.UUID | None = None
    start_date: datetime
    next_billing: datetime
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    notes: str | None = Field(None, max_length=500)

    @field_validator("service_name")
    @classmethod
    def strip_service_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Service name is required")
        return v

    @field_validator("start_date", "next_billing", mode="after")
    @classmethod
    def normalise_dates(cls, v: datetime) -> datetime:
        return to_naive_utc(v)

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return _check_currency(v)

    @model_validator(mode="after")
    def next_billing_after_start(self) -> "SubscriptionCreate":
        if self.next_billing < self.start_date:
            raise ValueError("Next billing date must be after start date")
        return self

    class Config:
        """Pydantic configuration."""

        use_enum_values = True
        validate_default = True


class SubscriptionUpdate(BaseModel):
    """Partial update of a subscription; omitted fields are left unchanged."""

    service_name: str | None = Field(None, min_length=1, max_length=100)
    service_icon: str | None = None
    amount: float | None = Field(None, gt=0, le=MAX_AMOUNT)
    currency: str | None = None
    billing_frequency: BillingFrequency | None = None
    category_id: uuid.UUID | None = None
    member_id: uuid.UUID | None = None
    start_date: datetime | None = None
    next_billing: datetime | None = None
    status: SubscriptionStatus | None = None
    notes: str | None = Field(None, max_length=500)

    @field_validator("start_date", "next_billing", mode="after")
    @classmethod
    def normalise_dates(cls, v: datetime | None) -> datetime | None:
        return to_naive_utc(v)

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str | None) -> str | None:
        return _check_currency(v)

    class Config:
        """Pydantic configuration."""

        use_enum_values = True
        validate_default = True


class SubscriptionFilter(BaseModel):
    """Search, filter and sort options for listing subscriptions."""

    search: str | None = None
    category_id: uuid.UUID | None = None
    member_id: uuid.UUID | None = None
    status: str = Field("all", pattern=r"^(active|trial|paused|canceled|all)$")
    billing_frequency: str = Field("all", pattern=r"^(monthly|yearly|quarterly|weekly|all)$")
    sort_by: SortField = SortField.NEXT_BILLING
    sort_order: str = Field("asc", pattern=r"^(asc|desc)$")

    class Config:
        """Pydantic configuration."""

        use_enum_values = True
        validate_default = True


class CategoryCreate(BaseModel):
    """Payload for creating a budget category."""

    name: str = Field(..., min_length=1, max_length=50)
    icon: str | None = None
    color: str | None = None
    budget_limit: float | None = Field(None, gt=0)
    budget_currency: str | None = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Category name is required")
        return v

    @field_validator("budget_currency")
    @classmethod
    def validate_currency(cls, v: str | None) -> str | None:
        return _check_currency(v)


class CategoryUpdate(BaseModel):
    """Partial update of a category."""

    name: str | None = Field(None, min_length=1, max_length=50)
    icon: str | None = None
    color: str | None = None
    budget_limit: float | None = Field(None, gt=0)
    budget_currency: str | None = None

    @field_validator("budget_currency")
    @classmethod
    def validate_currency(cls, v: str | None) -> str | None:
        return _check_currency(v)


class MemberCreate(BaseModel):
    """Payload for adding a family member."""

    name: str = Field(..., min_length=1, max_length=50)
    avatar_color: str | None = None
    avatar_image: str | None = None
    is_primary: bool = False

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class MemberUpdate(BaseModel):
    """Partial update of a family member."""

    name: str | None = Field(None, min_length=1, max_length=50)
    avatar_color: str | None = None
    avatar_image: str | None = None
    is_primary: bool | None = None
