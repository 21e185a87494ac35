"""
RelayBot - Message Cache Mixin
==============================

Last-known text of relayed messages, used to render edit diffs.
"""

from typing import TYPE_CHECKING, Optional

from relaybot.core.constants import MESSAGE_CACHE_PER_USER
from relaybot.core.database.models import CachedMessageRecord

if TYPE_CHECKING:
    from .manager import DatabaseManager


class MessagesMixin:
    """Mixin for message cache operations."""

    def cache_message(
        self: "DatabaseManager",
        user_id: str,
        message_id: str,
        text: Optional[str],
        date: Optional[int],
        keep: int = MESSAGE_CACHE_PER_USER,
    ) -> None:
        """
        Store (or overwrite) a message's text and prune the user's oldest rows.

        Args:
            user_id: Sender ID.
            message_id: Platform message ID in the user's chat.
            text: Message text.
            date: Unix timestamp of the original message.
            keep: Number of most recent rows retained for this user.
        """
        with self.transaction() as tx:
            tx.execute(
                "INSERT OR REPLACE INTO messages (user_id, message_id, text, date) VALUES (?, ?, ?, ?)",
                (str(user_id), str(message_id), text, date)
            )
            tx.execute(
                """
                DELETE FROM messages
                WHERE user_id = ? AND message_id NOT IN (
                    SELECT message_id FROM messages
                    WHERE user_id = ?
                    ORDER BY date DESC, CAST(message_id AS INTEGER) DESC
                    LIMIT ?
                )
                """,
                (str(user_id), str(user_id), keep)
            )

    def get_cached_message(
        self: "DatabaseManager",
        user_id: str,
        message_id: str,
    ) -> Optional[CachedMessageRecord]:
        row = self.fetchone(
            "SELECT user_id, message_id, text, date FROM messages WHERE user_id = ? AND message_id = ?",
            (str(user_id), str(message_id))
        )
        return CachedMessageRecord(**dict(row)) if row else None

    def count_cached_messages(self: "DatabaseManager", user_id: str) -> int:
        row = self.fetchone(
            "SELECT COUNT(*) AS total FROM messages WHERE user_id = ?",
            (str(user_id),)
        )
        return row["total"] if row else 0


__all__ = ["MessagesMixin"]
