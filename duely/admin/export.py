"""CSV exports of users, subscriptions, admin logs and analytics series."""

import csv
import io
import json
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from duely.admin.audit_log import AuditLogger
from duely.models.subscription import CategoryDB, MemberDB, SubscriptionDB
from duely.models.user import UserDB

EXPORT_KINDS = ("users", "subscriptions", "admin-logs", "analytics")
DEFAULT_EXPORT_LIMIT = 10000

USER_COLUMNS = [
    "ID",
    "Name",
    "Username",
    "Email",
    "Subscription Plan",
    "Subscription Status",
    "Google ID",
    "Created At",
    "Updated At",
]
SUBSCRIPTION_COLUMNS = [
    "ID",
    "Service Name",
    "Amount",
    "Currency",
    "Frequency",
    "Status",
    "Next Billing",
    "User Email",
    "User Name",
    "Category",
    "Member",
    "Notes",
    "Created At",
    "Updated At",
]
ADMIN_LOG_COLUMNS = [
    "ID",
    "Admin",
    "Admin Email",
    "Action",
    "Target",
    "IP Address",
    "User Agent",
    "Metadata",
    "Timestamp",
]
ANALYTICS_COLUMNS = [
    "Date",
    "Revenue",
    "Subscriptions",
    "Total Users",
    "New Users",
    "Active Users",
    "Churn Rate",
]


def export_filename(kind: str, today: date | None = None) -> str:
    return f"{kind}-export-{(today or datetime.utcnow().date()).isoformat()}.csv"


def _cell(value):
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value


def to_csv(rows: list[dict], columns: list[str]) -> str:
    """Render ``rows`` as CSV text with a header row.

    Nested dicts and lists are written as JSON, datetimes as ISO 8601.
    """
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=columns, extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow({column: _cell(row.get(column)) for column in columns})
    return buffer.getvalue()


def analytics_rows(revenue: list[dict], user_growth: list[dict], churn_rate: float = 0) -> list[dict]:
    """Merge the revenue and user growth series of an overview by date label."""
    users_by_date = {point["date"]: point for point in user_growth}
    rows = []
    for point in revenue:
        users = users_by_date.get(point["date"], {})
        rows.append(
            {
                "Date": point["date"],
                "Revenue": point.get("amount", 0),
                "Subscriptions": point.get("subscription_count", 0),
                "Total Users": users.get("total_users", 0),
                "New Users": users.get("new_users", 0),
                "Active Users": users.get("active_users", 0),
                "Churn Rate": churn_rate,
            }
        )
    return rows


class ExportService:
    """Builds CSV documents straight from the database."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def users_csv(self, limit: int = DEFAULT_EXPORT_LIMIT) -> str:
        result = await self.db_session.execute(
            select(UserDB).order_by(UserDB.created_at.desc()).limit(limit)
        )
        rows = [
            {
                "ID": str(user.id),
                "Name": user.name,
                "Username": user.username,
                "Email": user.email,
                "Subscription Plan": user.subscription_plan or "free",
                "Subscription Status": user.subscription_status or "active",
                "Google ID": user.google_id,
                "Created At": user.created_at,
                "Updated At": user.updated_at,
            }
            for user in result.scalars().all()
        ]
        return to_csv(rows, USER_COLUMNS)

    async def subscriptions_csv(self, limit: int = DEFAULT_EXPORT_LIMIT) -> str:
        result = await self.db_session.execute(
            select(SubscriptionDB, UserDB.email, UserDB.name, CategoryDB.name, MemberDB.name)
            .join(UserDB, SubscriptionDB.user_id == UserDB.id)
            .outerjoin(CategoryDB, SubscriptionDB.category_id == CategoryDB.id)
            .outerjoin(MemberDB, SubscriptionDB.member_id == MemberDB.id)
            .order_by(SubscriptionDB.created_at.desc())
            .limit(limit)
        )
        rows = [
            {
                "ID": str(sub.id),
                "Service Name": sub.service_name,
                "Amount": sub.amount,
                "Currency": sub.currency,
                "Frequency": sub.billing_frequency,
                "Status": sub.status,
                "Next Billing": sub.next_billing,
                "User Email": email,
                "User Name": user_name,
                "Category": category_name,
                "Member": member_name,
                "Notes": sub.notes,
                "Created At": sub.created_at,
                "Updated At": sub.updated_at,
            }
            for sub, email, user_name, category_name, member_name in result.all()
        ]
        return to_csv(rows, SUBSCRIPTION_COLUMNS)

    async def admin_logs_csv(self, limit: int = DEFAULT_EXPORT_LIMIT, **filters) -> str:
        logs = await AuditLogger(self.db_session).get_logs(limit=limit, **filters)
        rows = [
            {
                "ID": log["id"],
                "Admin": log["admin_name"],
                "Admin Email": log["admin_email"],
                "Action": log["action"],
                "Target": log["target"],
                "IP Address": log["ip_address"],
                "User Agent": log["user_agent"],
                "Metadata": log["metadata"],
                "Timestamp": log["created_at"],
            }
            for log in logs
        ]
        return to_csv(rows, ADMIN_LOG_COLUMNS)

    @staticmethod
    def analytics_csv(overview: dict) -> str:
        chart = overview["chart_data"]
        rows = analytics_rows(chart["revenue"], chart["user_growth"], overview["metrics"]["churn_rate"])
        return to_csv(rows, ANALYTICS_COLUMNS)
