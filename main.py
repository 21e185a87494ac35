#!/usr/bin/env python3
"""
RelayBot Entry Point
====================

Telegram bot that verifies users through an external challenge plus a
question, then relays their messages into per-user staff threads.

Features:
- Webhook receiver, challenge page and token submission over FastAPI
- Two-stage verification gate
- Per-user forum topics with profile cards
- Staff replies routed back to users
- Runtime settings menu for primary operators
"""

import asyncio
import sys

from dotenv import load_dotenv

load_dotenv()

from relaybot.core.config import ConfigValidationError, validate_and_log_config
from relaybot.core.logger import logger
from relaybot.bot import RelayBot
from relaybot.api import APIService


async def main() -> None:
    """
    Main entry point for RelayBot.

    Handles the complete lifecycle:
    1. Validates environment configuration
    2. Builds the bot (store, clients, services)
    3. Serves the HTTP API until interrupted

    Raises:
        SystemExit: If required configuration is missing
    """
    logger.tree("RELAYBOT STARTING", [
        ("Run ID", logger.run_id),
    ], emoji="🔥")

    try:
        config = validate_and_log_config()
    except ConfigValidationError as e:
        logger.error("Configuration Invalid", [("Error", str(e))])
        sys.exit(1)

    logger.set_alert_target(config.bot_token, config.alert_chat_id)

    bot = RelayBot(config)
    await APIService(bot).serve()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("🛑 Bot stopped by user (Ctrl+C)")
    except Exception as e:
        logger.critical(f"Fatal error: {type(e).__name__}: {e}")
        sys.exit(1)
