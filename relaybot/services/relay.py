"""
RelayBot - Relay Pipeline
=========================

Moves verified users' messages into their staff thread.

DESIGN:
    Guard chain (first rejection drops the message with a reason):
    1. First message must be plain text
    2. Blocklist patterns add strikes; reaching the threshold blocks
    3. Content category must be enabled
    4. Auto-reply rules answer instead of relaying

    Threads are created lazily and claimed with a compare-and-swap, so two
    concurrent first messages cannot leave a user with two threads. A copy
    that fails because the thread is gone clears the mapping; the next
    message opens a fresh thread.
"""

from typing import Any, Dict, Optional

from relaybot.core.config import Config
from relaybot.core.constants import (
    ATTACHMENT_FIELDS,
    CATEGORY_AUDIO,
    CATEGORY_CHANNEL,
    CATEGORY_FORWARD,
    CATEGORY_LABELS,
    CATEGORY_LINK,
    CATEGORY_MEDIA,
    CATEGORY_STICKER,
    CATEGORY_TEXT,
    CATEGORY_TOGGLE_KEYS,
    LINK_ENTITY_TYPES,
    STATE_VERIFIED,
)
from relaybot.core.database import DatabaseManager, UserRecord
from relaybot.core.errors import ExternalApiError
from relaybot.core.logger import logger
from relaybot.services.profile_card import ProfileCardService, build_user_info
from relaybot.services.settings import Settings
from relaybot.services.telegram_api import TelegramClient
from relaybot.utils.async_utils import safe_async_operation
from relaybot.utils.patterns import first_match, pattern_matches
from relaybot.utils.text import escape_html, message_text


# =============================================================================
# User-facing Texts
# =============================================================================

MSG_FIRST_MESSAGE_TEXT = "⚠️ Your first message must be plain text."
MSG_BLOCKED = "❌ You triggered the blocklist too many times and have been blocked."
MSG_BLOCK_WARNING = "⚠️ Your message contains a blocked keyword ({count}/{threshold}) and was not delivered."
MSG_CATEGORY_DISABLED = "⚠️ This kind of message ({label}) is not accepted."
MSG_AUTO_REPLY = "This is an automated reply\n\n"
MSG_SERVICE_BUSY = "The service is busy and could not open a conversation. Please try again later."
MSG_DELIVERED = "✅ Delivered"
MSG_SESSION_EXPIRED = "Your session has expired. Please send your message again to start a new one."
MSG_DELIVERY_FAILED = "❌ Your message could not be delivered. Please try again later."

UNKNOWN_OLD_TEXT = "[unknown/non-text]"
NON_TEXT = "[non-text]"
DEFAULT_BLOCK_THRESHOLD = 5


# =============================================================================
# Classification
# =============================================================================

def _forward_chat(message: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    if message.get("forward_from_chat"):
        return message["forward_from_chat"]
    origin = message.get("forward_origin") or {}
    return origin.get("chat") or origin.get("sender_chat")


def is_forwarded(message: Dict[str, Any]) -> bool:
    return any(
        message.get(field)
        for field in ("forward_origin", "forward_from", "forward_from_chat", "forward_sender_name")
    )


def has_link(message: Dict[str, Any]) -> bool:
    entities = (message.get("entities") or []) + (message.get("caption_entities") or [])
    return any(entity.get("type") in LINK_ENTITY_TYPES for entity in entities)


def is_plain_text(message: Dict[str, Any]) -> bool:
    """Text present and no media attachment."""
    if not message.get("text"):
        return False
    return not any(message.get(field) for field in ATTACHMENT_FIELDS)


def classify_message(message: Dict[str, Any]) -> str:
    """
    Classify a message into exactly one content category.

    Priority: forward > channel forward > audio > sticker > media > link > text.
    Channel forwards are reported as CATEGORY_CHANNEL.
    """
    if is_forwarded(message):
        chat = _forward_chat(message)
        if chat and chat.get("type") == "channel":
            return CATEGORY_CHANNEL
        return CATEGORY_FORWARD
    if message.get("audio") or message.get("voice"):
        return CATEGORY_AUDIO
    if message.get("sticker") or message.get("animation"):
        return CATEGORY_STICKER
    if message.get("photo") or message.get("video") or message.get("document") or message.get("video_note"):
        return CATEGORY_MEDIA
    if has_link(message):
        return CATEGORY_LINK
    return CATEGORY_TEXT


# =============================================================================
# Relay Service
# =============================================================================

class RelayService:
    """Guards, thread lifecycle and edit propagation for verified users."""

    def __init__(
        self,
        db: DatabaseManager,
        settings: Settings,
        telegram: TelegramClient,
        config: Config,
        cards: ProfileCardService,
    ) -> None:
        self._db = db
        self._settings = settings
        self._telegram = telegram
        self._config = config
        self._cards = cards

    # =========================================================================
    # Entry Point
    # =========================================================================

    async def handle_verified_message(self, message: Dict[str, Any], user: UserRecord) -> bool:
        """
        Run the guard chain and relay the message.

        Returns:
            True if the message was copied into the user's thread.
        """
        if user["is_blocked"] or user["state"] != STATE_VERIFIED:
            return False

        user_id = user["user_id"]

        if not user["first_message_sent"] and not is_plain_text(message):
            await self._telegram.send_message(user_id, MSG_FIRST_MESSAGE_TEXT)
            return False

        if await self._blocklist_rejects(user_id, message):
            return False

        rejected_category = self._disabled_category(message)
        if rejected_category:
            await self._telegram.send_message(
                user_id,
                MSG_CATEGORY_DISABLED.format(label=CATEGORY_LABELS[rejected_category]),
            )
            return False

        if await self._auto_reply(user_id, message):
            return False

        return await self.relay_message(message, user)

    # =========================================================================
    # Guards
    # =========================================================================

    async def _blocklist_rejects(self, user_id: str, message: Dict[str, Any]) -> bool:
        patterns = self._settings.get_list("block_keywords")
        text = message_text(message)
        if not patterns or not text:
            return False

        index = first_match([str(p) for p in patterns], text)
        if index is None:
            return False

        count = self._db.increment_block_count(user_id)
        threshold = self._settings.get_int("block_threshold", DEFAULT_BLOCK_THRESHOLD)

        logger.tree("Blocklist Hit", [
            ("User ID", user_id),
            ("Pattern", str(patterns[index])[:50]),
            ("Strikes", f"{count}/{threshold}"),
        ], emoji="🚫")

        if count >= threshold:
            self._db.set_user_blocked(user_id, True)
            await self._telegram.send_message(user_id, MSG_BLOCKED)
        else:
            await self._telegram.send_message(
                user_id, MSG_BLOCK_WARNING.format(count=count, threshold=threshold),
            )
        return True

    def _disabled_category(self, message: Dict[str, Any]) -> Optional[str]:
        """The category that blocks this message, or None if allowed."""
        category = classify_message(message)
        if category == CATEGORY_CHANNEL:
            if not self._settings.get_bool(CATEGORY_TOGGLE_KEYS[CATEGORY_FORWARD]):
                return CATEGORY_FORWARD
        if not self._settings.get_bool(CATEGORY_TOGGLE_KEYS[category]):
            return category
        return None

    async def _auto_reply(self, user_id: str, message: Dict[str, Any]) -> bool:
        text = message_text(message)
        if not text:
            return False

        for rule in self._settings.get_list("keyword_responses"):
            if not isinstance(rule, dict):
                continue
            if pattern_matches(str(rule.get("keywords", "")), text):
                await self._telegram.send_message(user_id, MSG_AUTO_REPLY + str(rule.get("response", "")))
                return True
        return False

    # =========================================================================
    # Thread Lifecycle
    # =========================================================================

    async def ensure_thread(self, message: Dict[str, Any], user: UserRecord) -> Optional[str]:
        """
        Return the user's thread, creating and claiming one if needed.

        Returns:
            Thread ID, or None if creation failed (the user is told).
        """
        if user["thread_id"]:
            return user["thread_id"]

        user_id = user["user_id"]
        info = build_user_info(message["from"], message.get("date"))

        try:
            thread_id = await self._telegram.create_forum_topic(
                self._config.admin_group_id, info.thread_name,
            )
        except ExternalApiError as e:
            logger.error("Create Thread Failed", [
                ("User ID", user_id),
                ("Error", e.description[:100]),
            ])
            await safe_async_operation(
                "Busy Notice", self._telegram.send_message(user_id, MSG_SERVICE_BUSY),
            )
            return None

        if not self._db.claim_thread(user_id, thread_id, info.snapshot(message.get("date"))):
            current = self._db.get_user(user_id)
            winner = current["thread_id"] if current else None
            logger.tree("Duplicate Thread Discarded", [
                ("User ID", user_id),
                ("Discarded", thread_id),
                ("Kept", str(winner)),
            ], emoji="♻️")
            await safe_async_operation(
                "Delete Duplicate Thread",
                self._telegram.delete_forum_topic(self._config.admin_group_id, thread_id),
            )
            if not winner:
                await safe_async_operation(
                    "Busy Notice", self._telegram.send_message(user_id, MSG_SERVICE_BUSY),
                )
            return winner

        await safe_async_operation(
            "Post Profile Card",
            self._cards.post_card(thread_id, info, user["is_blocked"]),
        )
        return thread_id

    # =========================================================================
    # Relay
    # =========================================================================

    async def relay_message(self, message: Dict[str, Any], user: UserRecord) -> bool:
        """Copy the message into the user's thread and run the follow-ups."""
        user_id = user["user_id"]
        thread_id = await self.ensure_thread(message, user)
        if not thread_id:
            return False

        try:
            await self._telegram.copy_message(
                self._config.admin_group_id,
                user_id,
                message["message_id"],
                thread_id=thread_id,
            )
        except ExternalApiError as e:
            if e.thread_missing:
                self._db.clear_thread(user_id, thread_id)
                await safe_async_operation(
                    "Session Expired Notice",
                    self._telegram.send_message(user_id, MSG_SESSION_EXPIRED),
                )
            else:
                logger.error("Relay Failed", [
                    ("User ID", user_id),
                    ("Thread ID", thread_id),
                    ("Error", e.description[:100]),
                ])
                await safe_async_operation(
                    "Delivery Failed Notice",
                    self._telegram.send_message(user_id, MSG_DELIVERY_FAILED),
                )
            return False

        await safe_async_operation(
            "Delivery Receipt",
            self._telegram.send_message(
                user_id,
                MSG_DELIVERED,
                reply_to_message_id=message["message_id"],
                disable_notification=True,
            ),
            log_level="debug",
        )

        if not user["first_message_sent"]:
            self._db.mark_first_message_sent(user_id)

        if message.get("text"):
            self._db.cache_message(user_id, message["message_id"], message["text"], message.get("date"))

        await self._backup(message)

        logger.debug("Message Relayed", [
            ("User ID", user_id),
            ("Thread ID", thread_id),
        ])
        return True

    async def _backup(self, message: Dict[str, Any]) -> None:
        """Mirror the message to the optional backup destination."""
        backup_id = self._settings.get("backup_group_id").strip()
        if not backup_id:
            return

        info = build_user_info(message["from"])
        header = (
            f'<b>📨 Backup</b> from <a href="tg://user?id={info.user_id}">{escape_html(info.name)}</a>'
            f" (ID: {info.user_id})\n\n"
        )

        if message.get("text"):
            await safe_async_operation(
                "Backup Text",
                self._telegram.send_message(backup_id, header + escape_html(message["text"]), parse_mode="HTML"),
            )
            return

        sent = await safe_async_operation(
            "Backup Header",
            self._telegram.send_message(backup_id, header, parse_mode="HTML"),
        )
        if sent is not None:
            await safe_async_operation(
                "Backup Copy",
                self._telegram.copy_message(backup_id, message["chat"]["id"], message["message_id"]),
            )

    # =========================================================================
    # Edits
    # =========================================================================

    async def handle_edit(self, edited: Dict[str, Any]) -> bool:
        """
        Post an old-vs-new notice for an edited message into the user's thread.

        Returns:
            True if a notice was posted.
        """
        user_id = str(edited["from"]["id"])
        user = self._db.get_user(user_id)
        if not user or user["is_blocked"] or user["state"] != STATE_VERIFIED or not user["thread_id"]:
            return False

        message_id = edited["message_id"]
        cached = self._db.get_cached_message(user_id, message_id)
        old_text = cached["text"] if cached and cached["text"] else UNKNOWN_OLD_TEXT
        new_text = message_text(edited)

        notice = (
            "✏️ <b>User edited a message</b>\n\n"
            f"<b>Before:</b>\n{escape_html(old_text)}\n\n"
            f"<b>After:</b>\n{escape_html(new_text or NON_TEXT)}"
        )

        try:
            await self._telegram.send_message(
                self._config.admin_group_id,
                notice,
                thread_id=user["thread_id"],
                parse_mode="HTML",
            )
        except ExternalApiError as e:
            if e.thread_missing:
                self._db.clear_thread(user_id, user["thread_id"])
            logger.warning("Edit Notice Failed", [
                ("User ID", user_id),
                ("Error", e.description[:100]),
            ])
            return False

        if new_text:
            date = cached["date"] if cached else edited.get("date")
            self._db.cache_message(user_id, message_id, new_text, date)
        return True


__all__ = [
    "RelayService",
    "classify_message",
    "is_plain_text",
    "is_forwarded",
    "has_link",
]
