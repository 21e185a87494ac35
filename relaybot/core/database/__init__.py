"""
RelayBot - Database Module
==========================

SQLite store for settings, users, cached messages and admin capture state.
"""

from relaybot.core.database.manager import (
    DatabaseManager,
    get_db,
    DEFAULT_DB_PATH,
)
from relaybot.core.database.models import (
    AdminCaptureRecord,
    CachedMessageRecord,
    ProfileSnapshot,
    UserRecord,
)

__all__ = [
    "DatabaseManager",
    "get_db",
    "DEFAULT_DB_PATH",
    "AdminCaptureRecord",
    "CachedMessageRecord",
    "ProfileSnapshot",
    "UserRecord",
]
