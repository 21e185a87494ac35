"""
RelayBot - API Dependencies
===========================

FastAPI dependency injection utilities.
"""

from typing import TYPE_CHECKING, Optional

from relaybot.api.errors import APIError, ErrorCode

if TYPE_CHECKING:
    from relaybot.bot import RelayBot


# =============================================================================
# Bot Reference
# =============================================================================

_bot_instance: Optional["RelayBot"] = None


def set_bot(bot: Optional["RelayBot"]) -> None:
    """Set the bot instance for dependency injection."""
    global _bot_instance
    _bot_instance = bot


def get_bot() -> "RelayBot":
    """Get the bot instance."""
    if _bot_instance is None:
        raise APIError(ErrorCode.BOT_NOT_INITIALIZED)
    return _bot_instance


__all__ = ["set_bot", "get_bot"]
