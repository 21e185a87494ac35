"""
RelayBot - Staff Reply Router
=============================

Routes operator messages posted inside a user thread back to that user.
"""

from typing import Any, Dict

from relaybot.core.config import Config
from relaybot.core.database import DatabaseManager
from relaybot.core.errors import ExternalApiError
from relaybot.core.logger import logger
from relaybot.services.settings import Settings
from relaybot.services.telegram_api import TelegramClient
from relaybot.utils.async_utils import safe_async_operation


MSG_REPLIED = "✅ Replied"
MSG_REPLY_FAILED = "❌ Delivery failed: {error} (the user may have blocked the bot)"


class StaffReplyService:
    """Copies staff thread messages to the thread's user."""

    def __init__(
        self,
        db: DatabaseManager,
        settings: Settings,
        telegram: TelegramClient,
        config: Config,
    ) -> None:
        self._db = db
        self._settings = settings
        self._telegram = telegram
        self._config = config

    async def handle_staff_message(self, message: Dict[str, Any]) -> bool:
        """
        Deliver a staff message to the thread's user.

        Ignores messages outside a thread, from bots, from non-operators,
        and in threads that belong to no user.

        Returns:
            True if the copy reached the user.
        """
        thread_id = message.get("message_thread_id")
        sender = message.get("from") or {}
        if not thread_id or sender.get("is_bot"):
            return False

        sender_id = str(sender.get("id", ""))
        if not self._settings.is_operator(sender_id):
            return False

        user_id = self._db.get_user_id_by_thread(str(thread_id))
        if not user_id:
            return False

        chat_id = message["chat"]["id"]

        try:
            await self._telegram.copy_message(user_id, chat_id, message["message_id"])
        except ExternalApiError as e:
            logger.warning("Staff Reply Failed", [
                ("Operator", sender_id),
                ("User ID", user_id),
                ("Error", e.description[:100]),
            ])
            await safe_async_operation(
                "Reply Failure Notice",
                self._telegram.send_message(
                    chat_id,
                    MSG_REPLY_FAILED.format(error=e.description),
                    thread_id=thread_id,
                ),
            )
            return False

        if self._settings.get_bool("enable_admin_receipt"):
            await safe_async_operation(
                "Reply Receipt",
                self._telegram.send_message(
                    chat_id,
                    MSG_REPLIED,
                    thread_id=thread_id,
                    reply_to_message_id=message["message_id"],
                    disable_notification=True,
                ),
                log_level="debug",
            )

        logger.debug("Staff Reply Delivered", [
            ("Operator", sender_id),
            ("User ID", user_id),
        ])
        return True


__all__ = ["StaffReplyService"]
