"""Business logic services for Duely."""

from duely.services.database import DatabaseManager, get_db_session

__all__ = [
    "DatabaseManager",
    "get_db_session",
]
