"""
RelayBot - Database Schema
==========================

Table definitions.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from relaybot.core.database.manager import DatabaseManager


class SchemaMixin:
    """Mixin for database schema initialization."""

    def _init_tables(self: "DatabaseManager") -> None:
        """
        Initialize all database tables.

        DESIGN: Tables are created if not exist, allowing safe restarts.
        """
        conn = self._connection()
        cursor = conn.cursor()

        # -----------------------------------------------------------------
        # Config Table
        # DESIGN: Flat key-value store for runtime settings
        # -----------------------------------------------------------------
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS config (
                key TEXT PRIMARY KEY,
                value TEXT
            )
        """)

        # -----------------------------------------------------------------
        # Users Table
        # DESIGN: One row per user; topic_id is the staff-side thread
        # -----------------------------------------------------------------
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                user_id TEXT PRIMARY KEY NOT NULL,
                user_state TEXT NOT NULL DEFAULT 'new',
                is_blocked INTEGER NOT NULL DEFAULT 0,
                block_count INTEGER NOT NULL DEFAULT 0,
                first_message_sent INTEGER NOT NULL DEFAULT 0,
                topic_id TEXT,
                user_info_json TEXT
            )
        """)
        cursor.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_users_topic "
            "ON users(topic_id) WHERE topic_id IS NOT NULL"
        )

        # -----------------------------------------------------------------
        # Messages Table
        # DESIGN: Last-known text per relayed message, for edit diffs
        # -----------------------------------------------------------------
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS messages (
                user_id TEXT NOT NULL,
                message_id TEXT NOT NULL,
                text TEXT,
                date INTEGER,
                PRIMARY KEY (user_id, message_id)
            )
        """)
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_messages_user_date ON messages(user_id, date)"
        )

        # -----------------------------------------------------------------
        # Admin State Table
        # DESIGN: Pending input capture per primary operator
        # -----------------------------------------------------------------
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS admin_state (
                admin_id TEXT PRIMARY KEY,
                action TEXT NOT NULL,
                target_key TEXT NOT NULL,
                created_at REAL NOT NULL
            )
        """)

        conn.commit()
