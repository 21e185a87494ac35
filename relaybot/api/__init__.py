"""
RelayBot - API Package
======================

FastAPI-based HTTP surface: Telegram webhook, challenge page, token submission.

Usage:
    from relaybot.api import APIService

    api_service = APIService(bot)
    await api_service.serve()
"""

from typing import TYPE_CHECKING, Optional

import uvicorn

if TYPE_CHECKING:
    from relaybot.bot import RelayBot

from relaybot.core.logger import logger
from relaybot.api.config import get_api_config, APIConfig
from relaybot.api.app import create_app
from relaybot.api.dependencies import set_bot, get_bot


# =============================================================================
# API Service
# =============================================================================

class APIService:
    """
    Manages the uvicorn server for the bot's FastAPI app.

    The app's lifespan closes the bot when the server shuts down.
    """

    def __init__(self, bot: "RelayBot", config: Optional[APIConfig] = None) -> None:
        """
        Initialize the API service.

        Args:
            bot: The RelayBot instance
            config: Server settings (environment when omitted)
        """
        self._bot = bot
        self._config = config or get_api_config()
        self._app = create_app(bot)

    async def serve(self) -> None:
        """Run the server until uvicorn receives a shutdown signal."""
        config = uvicorn.Config(
            app=self._app,
            host=self._config.host,
            port=self._config.port,
            log_level="warning",
            access_log=False,
        )
        server = uvicorn.Server(config)

        logger.tree("API Service Started", [
            ("Host", self._config.host),
            ("Port", str(self._config.port)),
            ("Debug", str(self._config.debug)),
        ], emoji="🌐")

        await server.serve()


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    "APIService",
    "get_api_config",
    "APIConfig",
    "create_app",
    "set_bot",
    "get_bot",
]
