"""Site-wide key/value settings edited from the admin back-office.

Values are stored as text together with their type and parsed on read.
"""

import json
import uuid
from typing import Any

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from duely.models.admin import AdminSettingDB, SettingCategory, SettingType

logger = structlog.get_logger(__name__)

SETTING_TYPES = [t.value for t in SettingType]
SETTING_CATEGORIES = [c.value for c in SettingCategory]

DEFAULT_SETTINGS: list[dict] = [
    {"key": "site_name", "value": "Duely Admin", "type": "string", "category": "general", "description": "Application name"},
    {"key": "contact_email", "value": "admin@duely.com", "type": "string", "category": "general", "description": "Contact email address"},
    {"key": "timezone", "value": "Asia/Jakarta", "type": "string", "category": "general", "description": "Default timezone"},
    {"key": "date_format", "value": "DD/MM/YYYY", "type": "string", "category": "general", "description": "Date format"},
    {"key": "currency", "value": "IDR", "type": "string", "category": "general", "description": "Default currency"},
    {"key": "session_timeout", "value": 3600, "type": "number", "category": "security", "description": "Session timeout in seconds"},
    {"key": "max_login_attempts", "value": 5, "type": "number", "category": "security", "description": "Maximum login attempts before lockout"},
    {"key": "require_2fa", "value": False, "type": "boolean", "category": "security", "description": "Require two-factor authentication for all admins"},
    {"key": "password_min_length", "value": 8, "type": "number", "category": "security", "description": "Minimum password length"},
    {"key": "email_notifications", "value": True, "type": "boolean", "category": "notifications", "description": "Enable email notifications"},
    {"key": "webhook_notifications", "value": False, "type": "boolean", "category": "notifications", "description": "Enable webhook notifications"},
    {"key": "notification_recipients", "value": ["admin@duely.com"], "type": "json", "category": "notifications", "description": "Email addresses for system notifications"},
    {"key": "data_retention_days", "value": 90, "type": "number", "category": "analytics", "description": "Number of days to retain analytics data"},
    {"key": "auto_refresh_interval", "value": 30, "type": "number", "category": "analytics", "description": "Dashboard auto-refresh interval in seconds"},
    {"key": "export_limit", "value": 10000, "type": "number", "category": "analytics", "description": "Maximum number of records per export"},
]


def parse_setting_value(value: str, setting_type: str) -> Any:
    """Convert a stored string back to its typed value.

    Values that fail to parse are returned unchanged.
    """
    try:
        if setting_type == "number":
            return float(value)
        if setting_type == "boolean":
            return value in ("true", "1")
        if setting_type == "json":
            return json.loads(value)
    except (ValueError, TypeError) as e:
        logger.warning("setting_parse_failed", type=setting_type, error=str(e))
    return value


def stringify_setting_value(value: Any, setting_type: str) -> str:
    if setting_type == "json":
        return json.dumps(value)
    if setting_type == "boolean":
        return "true" if value else "false"
    if setting_type == "number":
        # 3600 rather than 3600.0 for integral numbers
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)
    return str(value)


def serialize_setting(setting: AdminSettingDB) -> dict:
    return {
        "key": setting.key,
        "value": parse_setting_value(setting.value, setting.type),
        "type": setting.type,
        "category": setting.category,
        "description": setting.description,
    }


class AdminSettingsService:
    """Read and write rows of the admin_settings table."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def _get_row(self, key: str) -> AdminSettingDB | None:
        result = await self.db_session.execute(select(AdminSettingDB).where(AdminSettingDB.key == key))
        return result.scalar_one_or_none()

    async def get(self, key: str) -> Any:
        """Typed value of ``key``, or None when it is not set."""
        setting = await self._get_row(key)
        if setting is None:
            return None
        return parse_setting_value(setting.value, setting.type)

    async def list_settings(self, category: str | None = None) -> list[dict]:
        query = select(AdminSettingDB)
        if category:
            query = query.where(AdminSettingDB.category == category)
        query = query.order_by(AdminSettingDB.category, AdminSettingDB.key)

        result = await self.db_session.execute(query)
        return [serialize_setting(s) for s in result.scalars().all()]

    async def grouped(self) -> dict[str, list[dict]]:
        grouped: dict[str, list[dict]] = {category: [] for category in SETTING_CATEGORIES}
        for setting in await self.list_settings():
            if setting["category"] in grouped:
                grouped[setting["category"]].append(setting)
        return grouped

    async def _upsert(
        self,
        key: str,
        value: Any,
        setting_type: str,
        category: str,
        description: str | None,
        updated_by: uuid.UUID | None,
    ) -> None:
        setting = await self._get_row(key)
        if setting is None:
            setting = AdminSettingDB(key=key)
            self.db_session.add(setting)

        setting.value = stringify_setting_value(value, setting_type)
        setting.type = setting_type
        setting.category = category
        if description is not None:
            setting.description = description
        setting.updated_by = updated_by

    async def set(
        self,
        key: str,
        value: Any,
        setting_type: str,
        category: str,
        description: str | None = None,
        updated_by: uuid.UUID | None = None,
    ) -> None:
        await self._upsert(key, value, setting_type, category, description, updated_by)
        await self.db_session.commit()

    async def bulk_update(self, settings: list[dict], updated_by: uuid.UUID | None = None) -> int:
        """Upsert several settings in one transaction."""
        for item in settings:
            await self._upsert(
                item["key"],
                item["value"],
                item["type"],
                item["category"],
                item.get("description"),
                updated_by,
            )
        await self.db_session.commit()
        logger.info("admin_settings_updated", count=len(settings))
        return len(settings)

    async def delete(self, key: str) -> bool:
        result = await self.db_session.execute(delete(AdminSettingDB).where(AdminSettingDB.key == key))
        await self.db_session.commit()
        return result.rowcount > 0

    async def initialize_defaults(self) -> int:
        """Create any default setting that does not exist yet; existing values are kept."""
        created = 0
        for default in DEFAULT_SETTINGS:
            if await self._get_row(default["key"]) is None:
                await self._upsert(
                    default["key"],
                    default["value"],
                    default["type"],
                    default["category"],
                    default["description"],
                    None,
                )
                created += 1
        await self.db_session.commit()
        return created
