"""
RelayBot - Profile Card
=======================

Identity card posted at the top of each user thread, with staff controls.

DESIGN:
    Card controls carry "<action>:<user_id>" callback data:
    - block / unblock: toggle the user's block flag
    - pin_card: pin the card inside the thread
    Callbacks are honoured only inside the staff group and only from operators.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from relaybot.core.config import Config
from relaybot.core.constants import (
    CARD_BLOCK,
    CARD_PIN,
    CARD_UNBLOCK,
    THREAD_NAME_MAX_LENGTH,
)
from relaybot.core.database import DatabaseManager, ProfileSnapshot
from relaybot.core.errors import ExternalApiError
from relaybot.core.logger import logger
from relaybot.services.settings import Settings
from relaybot.services.telegram_api import TelegramClient
from relaybot.utils.async_utils import safe_async_operation
from relaybot.utils.text import display_name, escape_html, truncate


# =============================================================================
# Card Rendering
# =============================================================================

@dataclass
class UserInfo:
    """Rendered identity of a platform user."""

    user_id: str
    name: str
    username: Optional[str]
    thread_name: str
    card_html: str

    def snapshot(self, first_message_timestamp: Optional[int]) -> ProfileSnapshot:
        return ProfileSnapshot(
            name=self.name,
            username=self.username,
            first_message_timestamp=first_message_timestamp,
        )


def _format_timestamp(timestamp: Optional[int]) -> str:
    moment = datetime.fromtimestamp(timestamp) if timestamp else datetime.now()
    return moment.strftime("%Y-%m-%d %H:%M:%S")


def build_user_info(user: Dict[str, Any], timestamp: Optional[int] = None) -> UserInfo:
    """
    Render a user's thread title and profile card.

    Args:
        user: Telegram "from" object.
        timestamp: Unix time of first contact (now when omitted).
    """
    user_id = str(user["id"])
    name = display_name(user)
    username = f"@{user['username']}" if user.get("username") else None

    if username:
        username_display = f'<a href="tg://user?id={user_id}">{escape_html(username)}</a>'
    else:
        username_display = "<code>none</code>"

    card_html = (
        "<b>👤 User Profile</b>\n"
        "---\n"
        f"• Name: <code>{escape_html(name)}</code>\n"
        f"• Username: {username_display}\n"
        f"• ID: <code>{user_id}</code>\n"
        f"• First contact: <code>{_format_timestamp(timestamp)}</code>"
    )

    return UserInfo(
        user_id=user_id,
        name=name,
        username=username,
        thread_name=truncate(f"{name.strip()} | {user_id}", THREAD_NAME_MAX_LENGTH),
        card_html=card_html,
    )


def card_keyboard(user_id: str, is_blocked: bool) -> Dict[str, Any]:
    """Inline controls under the card; the block button reflects current state."""
    if is_blocked:
        block_button = {"text": "✅ Unblock user", "callback_data": f"{CARD_UNBLOCK}:{user_id}"}
    else:
        block_button = {"text": "🚫 Block user", "callback_data": f"{CARD_BLOCK}:{user_id}"}
    return {
        "inline_keyboard": [
            [block_button],
            [{"text": "📌 Pin this card", "callback_data": f"{CARD_PIN}:{user_id}"}],
        ]
    }


# =============================================================================
# Card Callbacks
# =============================================================================

class ProfileCardService:
    """Handles staff presses on profile card buttons."""

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

    async def post_card(self, thread_id: str, info: UserInfo, is_blocked: bool) -> Dict[str, Any]:
        return await self._telegram.send_message(
            self._config.admin_group_id,
            info.card_html,
            thread_id=thread_id,
            parse_mode="HTML",
            reply_markup=card_keyboard(info.user_id, is_blocked),
        )

    async def handle_callback(self, query: Dict[str, Any]) -> None:
        """
        Apply a card button press.

        Presses outside the staff group are ignored; presses from
        non-operators are answered with an alert.
        """
        message = query.get("message") or {}
        chat_id = str((message.get("chat") or {}).get("id", ""))
        if chat_id != str(self._config.admin_group_id):
            return

        sender_id = str(query["from"]["id"])
        if not self._settings.is_operator(sender_id):
            await self._telegram.answer_callback_query(query["id"], "Not allowed", show_alert=True)
            return

        action, _, target_id = (query.get("data") or "").partition(":")
        if action not in (CARD_BLOCK, CARD_UNBLOCK, CARD_PIN) or not target_id:
            logger.debug("Unknown Card Callback", [("Data", query.get("data") or "")])
            return

        await safe_async_operation(
            "Answer Card Callback",
            self._telegram.answer_callback_query(query["id"], "Processing..."),
            log_level="debug",
        )

        if action == CARD_PIN:
            await self._pin(chat_id, message["message_id"], target_id)
            return

        if self._db.get_user(target_id) is None:
            logger.warning("Card Callback For Unknown User", [("User ID", target_id)])
            return

        blocking = action == CARD_BLOCK
        self._db.set_user_blocked(target_id, blocking)

        await safe_async_operation(
            "Refresh Card Controls",
            self._telegram.edit_message_reply_markup(
                chat_id, message["message_id"], card_keyboard(target_id, blocking),
            ),
        )
        await safe_async_operation(
            "Post Block Notice",
            self._telegram.send_message(
                chat_id,
                "❌ User blocked" if blocking else "✅ User unblocked",
                thread_id=message.get("message_thread_id"),
            ),
        )

        logger.tree("Card Action", [
            ("Action", action),
            ("User ID", target_id),
            ("By", sender_id),
        ], emoji="🪪")

    async def _pin(self, chat_id: str, message_id: Any, target_id: str) -> None:
        try:
            await self._telegram.pin_chat_message(chat_id, message_id)
        except ExternalApiError as e:
            logger.warning("Pin Card Failed", [
                ("User ID", target_id),
                ("Error", e.description[:100]),
            ])


__all__ = ["UserInfo", "build_user_info", "card_keyboard", "ProfileCardService"]
