"""
RelayBot - Main Bot Class
=========================

Central orchestrator holding the store, the outbound clients and every
service.

DESIGN:
    Routes inbound updates to the dispatcher and owns startup/shutdown.
    Services receive their collaborators explicitly so tests can build
    the bot with a temporary store and a mocked Telegram client.

SERVICE INITIALIZATION ORDER:
    1. Settings (store + environment + defaults)
    2. Profile cards (used by the relay when a thread is created)
    3. Verification, relay, staff reply, admin settings menu
    4. Update dispatcher
"""

from typing import Any, Dict, Optional

from relaybot.core.config import Config
from relaybot.core.database import DatabaseManager, get_db
from relaybot.core.logger import logger
from relaybot.handlers.updates import UpdateDispatcher
from relaybot.services.admin_config import AdminConfigService
from relaybot.services.profile_card import ProfileCardService
from relaybot.services.relay import RelayService
from relaybot.services.settings import Settings
from relaybot.services.staff_reply import StaffReplyService
from relaybot.services.telegram_api import TelegramClient
from relaybot.services.turnstile import TurnstileVerifier
from relaybot.services.verification import VerificationService


# =============================================================================
# RelayBot Class
# =============================================================================

class RelayBot:
    """
    Verified relay bot between private users and a staff forum group.

    Attributes:
        config: Process configuration.
        db: SQLite store.
        telegram: Outbound Bot API client.
        verifier: Challenge token verifier.
    """

    def __init__(
        self,
        config: Config,
        db: Optional[DatabaseManager] = None,
        telegram: Optional[TelegramClient] = None,
        verifier: Optional[TurnstileVerifier] = None,
    ) -> None:
        self.config = config
        self.db = db or get_db(config.db_path)
        self.telegram = telegram or TelegramClient(config.bot_token)
        self.verifier = verifier or TurnstileVerifier(config.turnstile_secret_key)

        self.settings = Settings(self.db, config)
        self.profile_cards = ProfileCardService(self.db, self.settings, self.telegram, config)
        self.verification = VerificationService(self.db, self.settings, self.telegram, config)
        self.relay = RelayService(self.db, self.settings, self.telegram, config, self.profile_cards)
        self.staff_reply = StaffReplyService(self.db, self.settings, self.telegram, config)
        self.admin_config = AdminConfigService(self.db, self.settings, self.telegram, config)
        self.dispatcher = UpdateDispatcher(self)

        logger.tree("RelayBot Initialized", [
            ("Staff Group", config.admin_group_id),
            ("Verification", "Ready" if config.verification_ready else "Not configured"),
        ], emoji="🤖")

    async def handle_update(self, update: Dict[str, Any]) -> None:
        """Process one inbound update."""
        await self.dispatcher.dispatch(update)

    async def close(self) -> None:
        """Release network sessions and the database connection."""
        logger.tree("RelayBot Shutting Down", [], emoji="🛑")
        await self.telegram.close()
        await self.verifier.close()
        self.db.close()


__all__ = ["RelayBot"]
