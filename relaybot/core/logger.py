"""
RelayBot - Logger Module
========================

Tree-style console and file logging with optional chat alerts.

DESIGN:
    Every entry is a headline plus optional (key, value) rows rendered as
    a tree, so one relay event reads as one block:

        [14:30:45] 🧵 Thread Claimed
          ├─ User ID: 12345
          └─ Thread ID: 678

    - One folder per day under LOGS_DIR, kept for LOG_RETENTION_DAYS
    - Errors are also copied to a separate error file
    - error() with details can be mirrored to a Telegram chat, with a
      per-headline cooldown so a failing dependency cannot flood it
"""

import asyncio
import os
import shutil
import time
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import aiohttp


LOGS_DIR = Path(os.getenv("LOGS_DIR", "logs"))
LOG_RETENTION_DAYS = 7
ALERT_COOLDOWN_SECONDS = 60
TELEGRAM_API_BASE = "https://api.telegram.org"

Details = List[Tuple[str, str]]


def _tree_rows(items: Details) -> List[str]:
    last = len(items) - 1
    return [f"  {'└─' if i == last else '├─'} {key}: {value}" for i, (key, value) in enumerate(items)]


class TreeLogger:
    """
    Process-wide logger.

    Attributes:
        run_id: Short random ID printed in the session header and alerts.
        log_file: Today's main log file.
        error_file: Today's error-only log file.
    """

    def __init__(self) -> None:
        self.run_id: str = uuid.uuid4().hex[:8]
        self._alert_token: Optional[str] = None
        self._alert_chat_id: Optional[str] = None
        self._last_alert: Dict[str, float] = {}
        self._alert_tasks: Set["asyncio.Task[None]"] = set()

        today = datetime.now().strftime("%Y-%m-%d")
        self.log_dir = LOGS_DIR / today
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.log_file = self.log_dir / f"RelayBot-{today}.log"
        self.error_file = self.log_dir / f"RelayBot-Errors-{today}.log"

        self._prune_old_days()
        self._append(self.log_file, [
            "",
            "=" * 60,
            f"SESSION {self.run_id} STARTED {datetime.now():%Y-%m-%d %H:%M:%S}",
            "=" * 60,
        ])

    def set_alert_target(self, token: Optional[str], chat_id: Optional[str]) -> None:
        """Mirror detailed errors to chat_id using the bot token (None disables)."""
        self._alert_token = token
        self._alert_chat_id = chat_id

    # =========================================================================
    # Files
    # =========================================================================

    def _prune_old_days(self) -> None:
        cutoff = datetime.now() - timedelta(days=LOG_RETENTION_DAYS)
        for folder in LOGS_DIR.iterdir():
            if not folder.is_dir():
                continue
            try:
                day = datetime.strptime(folder.name, "%Y-%m-%d")
            except ValueError:
                continue
            if day < cutoff:
                shutil.rmtree(folder, ignore_errors=True)

    @staticmethod
    def _append(path: Path, lines: List[str]) -> None:
        with open(path, "a", encoding="utf-8") as f:
            f.write("\n".join(lines) + "\n")

    def _emit(self, headline: str, emoji: str, details: Optional[Details] = None, is_error: bool = False) -> None:
        lines = [f"{datetime.now():[%H:%M:%S]} {emoji} {headline}"] + _tree_rows(details or [])
        print("\n".join(lines))
        self._append(self.log_file, lines)
        if is_error:
            self._append(self.error_file, lines)

    # =========================================================================
    # Public API
    # =========================================================================

    def tree(self, title: str, items: Details, emoji: str = "📦") -> None:
        """Log a titled block of (key, value) rows."""
        self._emit(title, emoji, items)

    def debug(self, msg: str, details: Optional[Details] = None) -> None:
        """Only written when the DEBUG environment variable is set."""
        if os.getenv("DEBUG"):
            self._emit(msg, "🔍", details)

    def info(self, msg: str) -> None:
        self._emit(msg, "ℹ️")

    def warning(self, msg: str, details: Optional[Details] = None) -> None:
        self._emit(msg, "⚠️", details)

    def error(self, msg: str, details: Optional[Details] = None) -> None:
        """
        Log an error; with details, also alert the configured chat.

        Alerts need a running event loop and are skipped during startup.
        """
        self._emit(msg, "❌", details, is_error=True)
        if details and self._should_alert(msg):
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                return
            task = loop.create_task(self._send_alert(msg, details))
            self._alert_tasks.add(task)
            task.add_done_callback(self._alert_tasks.discard)

    def critical(self, msg: str) -> None:
        self._emit(msg, "🚨", is_error=True)

    # =========================================================================
    # Alerts
    # =========================================================================

    def _should_alert(self, headline: str) -> bool:
        if not (self._alert_token and self._alert_chat_id):
            return False
        now = time.monotonic()
        if now - self._last_alert.get(headline, float("-inf")) < ALERT_COOLDOWN_SECONDS:
            return False
        self._last_alert[headline] = now
        return True

    async def _send_alert(self, title: str, details: Details) -> None:
        """Post the error to the alert chat; delivery problems are printed only."""
        text = "\n".join([f"❌ {title}", *(f"{k}: {v}" for k, v in details), f"Run ID: {self.run_id}"])
        url = f"{TELEGRAM_API_BASE}/bot{self._alert_token}/sendMessage"
        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=10)) as session:
                async with session.post(url, json={"chat_id": self._alert_chat_id, "text": text}) as resp:
                    if resp.status != 200:
                        print(f"[ALERT] delivery failed with HTTP {resp.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            print(f"[ALERT] delivery failed: {e}")


logger = TreeLogger()


__all__ = ["logger", "TreeLogger"]
