"""Data models for Duely."""

# Import SQLAlchemy ORM models to register them with Base.metadata
# This ensures all tables are known when create_tables() is called
from duely.models.admin import (  # noqa: F401
    AdminDB,
    AdminLogDB,
    AdminNotificationDB,
    AdminSettingDB,
    MaintenanceLogDB,
    MaintenanceModeDB,
)
from duely.models.notification import NotificationDB, PushSubscriptionDB  # noqa: F401
from duely.models.payment import (  # noqa: F401
    ExchangeRateDB,
    PaymentDB,
    SubscriptionHistoryDB,
)
from duely.models.subscription import (  # noqa: F401
    BillingFrequency,
    CategoryDB,
    MemberDB,
    SubscriptionDB,
    SubscriptionStatus,
)
from duely.models.user import PlanStatus, SubscriptionPlan, UserDB, UserSettingsDB  # noqa: F401

__all__ = [
    "BillingFrequency",
    "PlanStatus",
    "SubscriptionPlan",
    "SubscriptionStatus",
]
