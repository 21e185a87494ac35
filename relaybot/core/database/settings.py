"""
RelayBot - Settings Mixin
=========================

Raw key-value access to the config table.
"""

from typing import TYPE_CHECKING, Dict, Optional

if TYPE_CHECKING:
    from .manager import DatabaseManager


class SettingsMixin:
    """Mixin for config table operations."""

    def get_setting_value(self: "DatabaseManager", key: str) -> Optional[str]:
        """
        Get a stored setting.

        Returns:
            Stored value, or None if the key was never written.
        """
        row = self.fetchone("SELECT value FROM config WHERE key = ?", (key,))
        return row["value"] if row else None

    def set_setting_value(self: "DatabaseManager", key: str, value: str) -> None:
        self.execute(
            "INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)",
            (key, value)
        )

    def delete_setting_value(self: "DatabaseManager", key: str) -> None:
        self.execute("DELETE FROM config WHERE key = ?", (key,))

    def get_all_settings(self: "DatabaseManager") -> Dict[str, str]:
        rows = self.fetchall("SELECT key, value FROM config")
        return {row["key"]: row["value"] for row in rows}


__all__ = ["SettingsMixin"]
