"""
RelayBot - Admin State Mixin
============================

Pending input capture for the runtime settings menu.
"""

import time
from typing import TYPE_CHECKING, Optional

from relaybot.core.database.models import AdminCaptureRecord

if TYPE_CHECKING:
    from .manager import DatabaseManager


class AdminStateMixin:
    """Mixin for admin capture state operations."""

    def set_admin_capture(
        self: "DatabaseManager",
        admin_id: str,
        action: str,
        target_key: str,
    ) -> None:
        """Start capturing the admin's next text message for a setting."""
        self.execute(
            """
            INSERT OR REPLACE INTO admin_state (admin_id, action, target_key, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (str(admin_id), action, target_key, time.time())
        )

    def get_admin_capture(self: "DatabaseManager", admin_id: str) -> Optional[AdminCaptureRecord]:
        row = self.fetchone(
            "SELECT admin_id, action, target_key, created_at FROM admin_state WHERE admin_id = ?",
            (str(admin_id),)
        )
        return AdminCaptureRecord(**dict(row)) if row else None

    def clear_admin_capture(self: "DatabaseManager", admin_id: str) -> bool:
        cursor = self.execute("DELETE FROM admin_state WHERE admin_id = ?", (str(admin_id),))
        return cursor.rowcount > 0


__all__ = ["AdminStateMixin"]
