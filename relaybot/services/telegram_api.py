"""
RelayBot - Telegram Bot API Client
==================================

Thin async wrapper around the Telegram Bot API.

DESIGN:
    One persistent aiohttp session, created lazily and closed on shutdown.
    Every call posts JSON to /bot<token>/<method> and returns "result".
    A response with ok=false, or any transport failure, raises
    ExternalApiError so callers decide between reporting and swallowing.
"""

import asyncio
from typing import Any, Dict, Optional

import aiohttp

from relaybot.core.constants import API_TIMEOUT
from relaybot.core.errors import ExternalApiError
from relaybot.core.logger import logger


# =============================================================================
# Constants
# =============================================================================

TELEGRAM_API_BASE = "https://api.telegram.org"


# =============================================================================
# Telegram Client
# =============================================================================

class TelegramClient:
    """Outbound Telegram Bot API operations."""

    def __init__(self, token: str, base_url: str = TELEGRAM_API_BASE) -> None:
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create persistent HTTP session."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=20,
                limit_per_host=10,
                ttl_dns_cache=300,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=API_TIMEOUT),
            )
        return self._session

    async def close(self) -> None:
        """Close HTTP session on shutdown."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    # =========================================================================
    # Core Request
    # =========================================================================

    async def call(self, method: str, **params: Any) -> Any:
        """
        Invoke a Bot API method.

        Args:
            method: Bot API method name (e.g. "sendMessage").
            **params: Method parameters; None values are dropped.

        Returns:
            The "result" field of the response.

        Raises:
            ExternalApiError: If the API rejects the call or the request fails.
        """
        payload = {k: v for k, v in params.items() if v is not None}
        url = f"{self._base_url}/bot{self._token}/{method}"

        try:
            session = await self._get_session()
            async with session.post(url, json=payload) as response:
                data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.debug("Telegram Request Failed", [
                ("Method", method),
                ("Error Type", type(e).__name__),
            ])
            raise ExternalApiError(method, str(e) or type(e).__name__) from e

        if not isinstance(data, dict) or not data.get("ok"):
            description = "Unknown error"
            error_code = None
            if isinstance(data, dict):
                description = data.get("description") or description
                error_code = data.get("error_code")
            raise ExternalApiError(method, description, error_code)

        return data.get("result")

    # =========================================================================
    # Convenience Methods
    # =========================================================================

    async def send_message(
        self,
        chat_id: Any,
        text: str,
        *,
        thread_id: Optional[Any] = None,
        parse_mode: Optional[str] = None,
        reply_markup: Optional[Dict[str, Any]] = None,
        reply_to_message_id: Optional[Any] = None,
        disable_notification: Optional[bool] = None,
    ) -> Dict[str, Any]:
        return await self.call(
            "sendMessage",
            chat_id=chat_id,
            text=text,
            message_thread_id=thread_id,
            parse_mode=parse_mode,
            reply_markup=reply_markup,
            reply_to_message_id=reply_to_message_id,
            disable_notification=disable_notification,
        )

    async def copy_message(
        self,
        chat_id: Any,
        from_chat_id: Any,
        message_id: Any,
        *,
        thread_id: Optional[Any] = None,
    ) -> Dict[str, Any]:
        """Copy a message verbatim (no "forwarded from" header)."""
        return await self.call(
            "copyMessage",
            chat_id=chat_id,
            from_chat_id=from_chat_id,
            message_id=message_id,
            message_thread_id=thread_id,
        )

    async def create_forum_topic(self, chat_id: Any, name: str) -> str:
        """
        Create a forum topic.

        Returns:
            The new topic's message_thread_id as a string.
        """
        result = await self.call("createForumTopic", chat_id=chat_id, name=name)
        return str(result["message_thread_id"])

    async def delete_forum_topic(self, chat_id: Any, thread_id: Any) -> bool:
        return await self.call(
            "deleteForumTopic",
            chat_id=chat_id,
            message_thread_id=thread_id,
        )

    async def edit_message_text(
        self,
        chat_id: Any,
        message_id: Any,
        text: str,
        *,
        parse_mode: Optional[str] = None,
        reply_markup: Optional[Dict[str, Any]] = None,
    ) -> Any:
        return await self.call(
            "editMessageText",
            chat_id=chat_id,
            message_id=message_id,
            text=text,
            parse_mode=parse_mode,
            reply_markup=reply_markup,
        )

    async def edit_message_reply_markup(
        self,
        chat_id: Any,
        message_id: Any,
        reply_markup: Dict[str, Any],
    ) -> Any:
        return await self.call(
            "editMessageReplyMarkup",
            chat_id=chat_id,
            message_id=message_id,
            reply_markup=reply_markup,
        )

    async def pin_chat_message(self, chat_id: Any, message_id: Any) -> bool:
        return await self.call(
            "pinChatMessage",
            chat_id=chat_id,
            message_id=message_id,
            disable_notification=True,
        )

    async def answer_callback_query(
        self,
        callback_query_id: str,
        text: Optional[str] = None,
        show_alert: Optional[bool] = None,
    ) -> bool:
        return await self.call(
            "answerCallbackQuery",
            callback_query_id=callback_query_id,
            text=text,
            show_alert=show_alert,
        )


__all__ = ["TelegramClient", "TELEGRAM_API_BASE"]
