"""
RelayBot - Runtime Settings
===========================

Typed access to runtime settings: store value, then environment, then default.
"""

import json
import os
from typing import Any, List, Mapping, Optional

from relaybot.core.config import Config, resolve_setting
from relaybot.core.database import DatabaseManager
from relaybot.core.logger import logger


# Keys whose values are JSON arrays
LIST_SETTING_KEYS = ("authorized_admins", "block_keywords", "keyword_responses")


class Settings:
    """Resolves runtime settings for the services."""

    def __init__(
        self,
        db: DatabaseManager,
        config: Config,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._db = db
        self._config = config
        self._environ = environ if environ is not None else os.environ

    # =========================================================================
    # Read
    # =========================================================================

    def get(self, key: str) -> str:
        return resolve_setting(key, self._db.get_setting_value(key), self._environ)

    def get_bool(self, key: str) -> bool:
        return self.get(key).strip().lower() == "true"

    def get_int(self, key: str, default: int) -> int:
        """Integer setting; falls back to default when unparsable or not positive."""
        try:
            value = int(self.get(key).strip())
        except ValueError:
            return default
        return value if value > 0 else default

    def get_list(self, key: str) -> List[Any]:
        """JSON-array setting; a corrupt or non-list value reads as empty."""
        raw = self.get(key)
        try:
            value = json.loads(raw) if raw else []
        except (json.JSONDecodeError, ValueError):
            logger.warning("Corrupted List Setting", [("Key", key)])
            return []
        return value if isinstance(value, list) else []

    # =========================================================================
    # Write
    # =========================================================================

    def set(self, key: str, value: str) -> None:
        self._db.set_setting_value(key, value)
        logger.tree("Setting Updated", [
            ("Key", key),
            ("Value", value[:50]),
        ], emoji="⚙️")

    def set_list(self, key: str, values: List[Any]) -> None:
        self.set(key, json.dumps(values, ensure_ascii=False))

    # =========================================================================
    # Operators
    # =========================================================================

    def authorized_admins(self) -> List[str]:
        return [str(item).strip() for item in self.get_list("authorized_admins") if str(item).strip()]

    def is_primary(self, user_id: Any) -> bool:
        return self._config.is_primary_admin(user_id)

    def is_operator(self, user_id: Any) -> bool:
        """Primary operators plus delegated (authorized) admins."""
        if self.is_primary(user_id):
            return True
        return str(user_id) in self.authorized_admins()


__all__ = ["Settings", "LIST_SETTING_KEYS"]
