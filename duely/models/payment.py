"""Payment, plan history and exchange rate models."""

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field
from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    Uuid,
)

from duely.models.base import Base


class PaymentProvider(str, Enum):
    """Supported payment gateways."""

    STRIPE = "stripe"
    XENDIT = "xendit"


class PaymentStatus(str, Enum):
    """Outcome of a payment attempt."""

    COMPLETED = "completed"
    FAILED = "failed"
    PENDING = "pending"


# ========== SQLAlchemy ORM Models ==========


class PaymentDB(Base):
    """SQLAlchemy model for payments table."""

    __tablename__ = "payments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    provider = Column(String(20), nullable=False)
    provider_payment_id = Column(String(255), nullable=True)
    provider_customer_id = Column(String(255), nullable=True)
    amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String(20), nullable=False)
    payment_method = Column(String(50), nullable=True)
    plan = Column(String(50), nullable=False)
    billing_period_start = Column(DateTime, nullable=True)
    billing_period_end = Column(DateTime, nullable=True)
    invoice_url = Column(String(1000), nullable=True)
    receipt_url = Column(String(1000), nullable=True)
    payment_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class SubscriptionHistoryDB(Base):
    """SQLAlchemy model for subscription_history table (plan changes)."""

    __tablename__ = "subscription_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    action = Column(String(30), nullable=False)
    from_plan = Column(String(20), nullable=True)
    to_plan = Column(String(20), nullable=False)
    effective_date = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class ExchangeRateDB(Base):
    """SQLAlchemy model for exchange_rates table."""

    __tablename__ = "exchange_rates"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    base_currency = Column(String(3), nullable=False)
    target_currency = Column(String(3), nullable=False)
    rate = Column(Float, nullable=False)
    date = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint(
            "base_currency", "target_currency", "date", name="uq_exchange_rate_pair_date"
        ),
        Index("idx_exchange_rate_pair", "base_currency", "target_currency"),
    )


# ========== Pydantic Models ==========


class CheckoutRequest(BaseModel):
    """Request to start a paid plan checkout."""

    plan_id: str = Field(..., pattern=r"^(pro|business)_(monthly|yearly)$")
    provider: PaymentProvider = PaymentProvider.STRIPE

    class Config:
        """Pydantic configuration."""

        use_enum_values = True


class PlanChangeRequest(BaseModel):
    """Request to move to another Duely plan without a payment flow."""

    plan: str = Field(..., pattern=r"^(free|pro|business)$")
    billing_cycle: str = Field("monthly", pattern=r"^(monthly|yearly)$")
