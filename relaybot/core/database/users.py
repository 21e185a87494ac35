"""
RelayBot - Users Mixin
======================

User record operations: verification state, block tracking, thread mapping.
"""

import json
import sqlite3
from typing import TYPE_CHECKING, Iterable, Optional

from relaybot.core.constants import STATE_NEW
from relaybot.core.database.models import ProfileSnapshot, UserRecord
from relaybot.core.logger import logger

if TYPE_CHECKING:
    from .manager import DatabaseManager


def _row_to_user(row: sqlite3.Row) -> UserRecord:
    """Convert a users row into a UserRecord."""
    profile = None
    if row["user_info_json"]:
        try:
            profile = json.loads(row["user_info_json"])
        except (json.JSONDecodeError, ValueError):
            logger.warning(f"Corrupted profile JSON for user {row['user_id']}")

    return UserRecord(
        user_id=row["user_id"],
        state=row["user_state"],
        is_blocked=bool(row["is_blocked"]),
        block_count=row["block_count"],
        first_message_sent=bool(row["first_message_sent"]),
        thread_id=row["topic_id"],
        profile=profile,
    )


class UsersMixin:
    """Mixin for user operations."""

    # =========================================================================
    # Lookup
    # =========================================================================

    def get_user(self: "DatabaseManager", user_id: str) -> Optional[UserRecord]:
        row = self.fetchone("SELECT * FROM users WHERE user_id = ?", (str(user_id),))
        return _row_to_user(row) if row else None

    def get_or_create_user(self: "DatabaseManager", user_id: str) -> UserRecord:
        """
        Get a user, creating a default record on first contact.

        DESIGN: INSERT OR IGNORE makes concurrent first contacts safe.
        """
        self.execute(
            "INSERT OR IGNORE INTO users (user_id, user_state) VALUES (?, ?)",
            (str(user_id), STATE_NEW)
        )
        return self.get_user(user_id)

    def get_user_id_by_thread(self: "DatabaseManager", thread_id: str) -> Optional[str]:
        row = self.fetchone("SELECT user_id FROM users WHERE topic_id = ?", (str(thread_id),))
        return row["user_id"] if row else None

    # =========================================================================
    # Verification State
    # =========================================================================

    def advance_user_state(
        self: "DatabaseManager",
        user_id: str,
        new_state: str,
        from_states: Iterable[str],
    ) -> bool:
        """
        Move a user to new_state only if they are currently in one of from_states.

        Returns:
            True if the row changed.
        """
        states = tuple(from_states)
        placeholders = ", ".join("?" for _ in states)
        cursor = self.execute(
            f"UPDATE users SET user_state = ? WHERE user_id = ? AND user_state IN ({placeholders})",
            (new_state, str(user_id), *states)
        )
        if cursor.rowcount > 0:
            logger.tree("User State Changed", [
                ("User ID", str(user_id)),
                ("State", new_state),
            ], emoji="🔐")
        return cursor.rowcount > 0

    def mark_first_message_sent(self: "DatabaseManager", user_id: str) -> None:
        self.execute(
            "UPDATE users SET first_message_sent = 1 WHERE user_id = ?",
            (str(user_id),)
        )

    # =========================================================================
    # Blocking
    # =========================================================================

    def increment_block_count(self: "DatabaseManager", user_id: str) -> int:
        """
        Add one blocklist strike and return the new count.

        Strikes only accrue while the user is unblocked.
        """
        with self.transaction() as tx:
            tx.execute(
                "UPDATE users SET block_count = block_count + 1 WHERE user_id = ? AND is_blocked = 0",
                (str(user_id),)
            )
            row = tx.execute(
                "SELECT block_count FROM users WHERE user_id = ?",
                (str(user_id),)
            ).fetchone()
        return row["block_count"] if row else 0

    def set_user_blocked(self: "DatabaseManager", user_id: str, blocked: bool) -> None:
        """
        Block or unblock a user.

        Unblocking is the only path that resets block_count.
        """
        if blocked:
            self.execute(
                "UPDATE users SET is_blocked = 1 WHERE user_id = ?",
                (str(user_id),)
            )
        else:
            self.execute(
                "UPDATE users SET is_blocked = 0, block_count = 0 WHERE user_id = ?",
                (str(user_id),)
            )

        logger.tree("User Blocked" if blocked else "User Unblocked", [
            ("User ID", str(user_id)),
        ], emoji="🚫" if blocked else "✅")

    # =========================================================================
    # Thread Mapping
    # =========================================================================

    def claim_thread(
        self: "DatabaseManager",
        user_id: str,
        thread_id: str,
        profile: Optional[ProfileSnapshot] = None,
    ) -> bool:
        """
        Attach a thread to a user only if they have none yet.

        DESIGN: Compare-and-swap on topic_id IS NULL. Two concurrent first
        messages can both create a topic; only one claim wins.

        Returns:
            True if this call attached the thread.
        """
        profile_json = json.dumps(profile, ensure_ascii=False) if profile else None
        cursor = self.execute(
            """
            UPDATE users SET topic_id = ?, user_info_json = COALESCE(?, user_info_json)
            WHERE user_id = ? AND topic_id IS NULL
            """,
            (str(thread_id), profile_json, str(user_id))
        )
        claimed = cursor.rowcount > 0
        if claimed:
            logger.tree("Thread Claimed", [
                ("User ID", str(user_id)),
                ("Thread ID", str(thread_id)),
            ], emoji="🧵")
        return claimed

    def clear_thread(self: "DatabaseManager", user_id: str, thread_id: Optional[str] = None) -> bool:
        """
        Detach a user's thread.

        Args:
            user_id: User to reset.
            thread_id: When given, only clear if it still matches.
        """
        if thread_id is None:
            cursor = self.execute(
                "UPDATE users SET topic_id = NULL WHERE user_id = ?",
                (str(user_id),)
            )
        else:
            cursor = self.execute(
                "UPDATE users SET topic_id = NULL WHERE user_id = ? AND topic_id = ?",
                (str(user_id), str(thread_id))
            )
        if cursor.rowcount > 0:
            logger.tree("Thread Cleared", [
                ("User ID", str(user_id)),
                ("Thread ID", str(thread_id) if thread_id else "Any"),
            ], emoji="🧹")
        return cursor.rowcount > 0


__all__ = ["UsersMixin"]
