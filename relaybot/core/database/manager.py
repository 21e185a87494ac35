"""
RelayBot - Database Manager
===========================

Single SQLite connection shared by the webhook tasks.

DESIGN:
    One process-wide DatabaseManager (singleton) guards one connection with
    a lock. Plain calls commit immediately; multi-statement updates that
    must not interleave (strike counting, cache pruning) run inside
    transaction(), which holds the lock and a write reservation
    (BEGIN IMMEDIATE) until the block exits.
    Every sqlite3 failure surfaces as StoreError.
"""

import sqlite3
import threading
from pathlib import Path
from typing import List, Optional, Tuple, Union

from relaybot.core.errors import StoreError
from relaybot.core.logger import logger

from relaybot.core.database.schema import SchemaMixin
from relaybot.core.database.settings import SettingsMixin
from relaybot.core.database.users import UsersMixin
from relaybot.core.database.messages import MessagesMixin
from relaybot.core.database.admin_state import AdminStateMixin


DEFAULT_DB_PATH = Path("data") / "relay.db"
BUSY_TIMEOUT_MS = 5000
CONNECT_TIMEOUT_S = 30.0

PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}",
)


def _open_connection(path: Path) -> sqlite3.Connection:
    try:
        conn = sqlite3.connect(str(path), check_same_thread=False, timeout=CONNECT_TIMEOUT_S)
        for pragma in PRAGMAS:
            conn.execute(pragma)
    except sqlite3.Error as e:
        logger.error("Database Connection Failed", [
            ("Path", str(path)),
            ("Error", str(e)),
        ])
        raise StoreError(f"Cannot open database {path}: {e}") from e
    conn.row_factory = sqlite3.Row
    return conn


class Transaction:
    """
    Atomic block over the manager's connection.

    Usage:
        with db.transaction() as tx:
            tx.execute("UPDATE users ...", (...))
            row = tx.execute("SELECT ...", (...)).fetchone()
    """

    def __init__(self, db: "DatabaseManager") -> None:
        self._db = db
        self._conn: Optional[sqlite3.Connection] = None

    def __enter__(self) -> "Transaction":
        self._db._db_lock.acquire()
        try:
            self._conn = self._db._connection()
            self._conn.execute("BEGIN IMMEDIATE")
        except (sqlite3.Error, StoreError) as e:
            self._db._db_lock.release()
            if isinstance(e, StoreError):
                raise
            raise StoreError(f"Cannot begin transaction: {e}") from e
        return self

    def execute(self, query: str, params: Tuple = ()) -> sqlite3.Cursor:
        return self._conn.execute(query, params)

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        try:
            if exc_type is None:
                self._conn.commit()
            else:
                self._conn.rollback()
                logger.warning("Transaction Rolled Back", [
                    ("Error Type", exc_type.__name__),
                    ("Error", str(exc_val)[:100]),
                ])
        except sqlite3.Error as e:
            raise StoreError(f"Cannot finish transaction: {e}") from e
        finally:
            self._db._db_lock.release()

        if isinstance(exc_val, sqlite3.Error):
            raise StoreError(str(exc_val)) from exc_val
        return False


class DatabaseManager(
    SchemaMixin,
    SettingsMixin,
    UsersMixin,
    MessagesMixin,
    AdminStateMixin,
):
    """Store for users, thread mappings, settings, cached texts and admin prompts."""

    _instance: Optional["DatabaseManager"] = None
    _lock: threading.Lock = threading.Lock()

    def __new__(cls, db_path: Optional[Union[str, Path]] = None) -> "DatabaseManager":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self, db_path: Optional[Union[str, Path]] = None) -> None:
        if self._initialized:
            return

        self.db_path = Path(db_path) if db_path else DEFAULT_DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db_lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = _open_connection(self.db_path)
        self._init_tables()
        self._initialized = True

        logger.tree("Database Ready", [
            ("Path", str(self.db_path)),
            ("Journal", "WAL"),
        ], emoji="🗄️")

    def _connection(self) -> sqlite3.Connection:
        """Current connection, reopened after close() or a dropped handle."""
        if self._conn is None:
            self._conn = _open_connection(self.db_path)
        return self._conn

    # =========================================================================
    # Queries
    # =========================================================================

    def execute(self, query: str, params: Tuple = (), commit: bool = True) -> sqlite3.Cursor:
        with self._db_lock:
            conn = self._connection()
            try:
                cursor = conn.execute(query, params)
                if commit:
                    conn.commit()
                return cursor
            except sqlite3.Error as e:
                conn.rollback()
                logger.debug("Query Failed", [
                    ("Query", query.strip().split("\n")[0][:60]),
                    ("Error", str(e)[:100]),
                ])
                raise StoreError(str(e)) from e

    def fetchone(self, query: str, params: Tuple = ()) -> Optional[sqlite3.Row]:
        return self.execute(query, params, commit=False).fetchone()

    def fetchall(self, query: str, params: Tuple = ()) -> List[sqlite3.Row]:
        return self.execute(query, params, commit=False).fetchall()

    def transaction(self) -> Transaction:
        return Transaction(self)

    def close(self) -> None:
        with self._db_lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.info("Database Connection Closed")


def get_db(db_path: Optional[Union[str, Path]] = None) -> DatabaseManager:
    """Process-wide store (the path only matters on first call)."""
    return DatabaseManager(db_path)


__all__ = ["DatabaseManager", "Transaction", "get_db", "DEFAULT_DB_PATH"]
