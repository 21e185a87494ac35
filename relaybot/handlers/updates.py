"""
RelayBot - Update Dispatcher
============================

Classifies inbound Telegram updates and routes them to the services.

DESIGN:
    - message in a private chat      -> private flow (gate / settings / relay)
    - message in the staff group     -> staff reply router
    - edited_message in private chat -> edit propagation
    - callback_query                 -> settings menu or profile card
    Everything else is ignored.
"""

from typing import TYPE_CHECKING, Any, Dict, Optional

from relaybot.core.constants import (
    CONFIG_PREFIX,
    START_COMMANDS,
    STATE_NEW,
    STATE_PENDING_CHALLENGE,
    STATE_PENDING_QA,
    STATE_VERIFIED,
)
from relaybot.core.logger import logger

if TYPE_CHECKING:
    from relaybot.bot import RelayBot


def _command(text: Optional[str]) -> Optional[str]:
    """Leading command of a message, without a @botname suffix."""
    if not text or not text.startswith("/"):
        return None
    return text.split()[0].split("@")[0].lower()


class UpdateDispatcher:
    """Routes one update at a time; every call re-reads state from the store."""

    def __init__(self, bot: "RelayBot") -> None:
        self.bot = bot

    async def dispatch(self, update: Dict[str, Any]) -> None:
        if "message" in update:
            message = update["message"]
            chat = message.get("chat") or {}
            if chat.get("type") == "private":
                await self.handle_private_message(message)
            elif str(chat.get("id")) == str(self.bot.config.admin_group_id):
                await self.bot.staff_reply.handle_staff_message(message)

        elif "edited_message" in update:
            edited = update["edited_message"]
            if (edited.get("chat") or {}).get("type") == "private":
                await self.bot.relay.handle_edit(edited)

        elif "callback_query" in update:
            query = update["callback_query"]
            if (query.get("data") or "").startswith(f"{CONFIG_PREFIX}:"):
                await self.bot.admin_config.handle_callback(query)
            else:
                await self.bot.profile_cards.handle_callback(query)

        else:
            logger.debug("Update Ignored", [("Keys", ", ".join(sorted(update.keys())))])

    async def handle_private_message(self, message: Dict[str, Any]) -> None:
        """
        Private chat flow.

        Order: primary operator's start command, blocked check, operator
        promotion, start command, settings capture, then routing by
        verification state.
        """
        user_id = str(message["chat"]["id"])
        text = message.get("text")
        settings = self.bot.settings
        is_primary = settings.is_primary(user_id)

        if is_primary and _command(text) in START_COMMANDS:
            await self.bot.admin_config.open_root(user_id)
            return

        user = self.bot.db.get_or_create_user(user_id)
        if user["is_blocked"]:
            logger.debug("Blocked User Ignored", [("User ID", user_id)])
            return

        if settings.is_operator(user_id):
            user = self.bot.verification.promote_operator(user)

        if _command(text) in START_COMMANDS:
            await self.bot.verification.send_start_prompt(user_id)
            return

        if is_primary and text:
            capture = self.bot.db.get_admin_capture(user_id)
            if capture:
                await self.bot.admin_config.handle_capture_input(user_id, text, capture)
                return

        state = user["state"]
        if state in (STATE_NEW, STATE_PENDING_CHALLENGE):
            await self.bot.verification.send_start_prompt(user_id)
        elif state == STATE_PENDING_QA:
            await self.bot.verification.handle_answer(user_id, text or "")
        elif state == STATE_VERIFIED:
            await self.bot.relay.handle_verified_message(message, user)


__all__ = ["UpdateDispatcher"]
