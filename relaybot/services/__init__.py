"""
RelayBot - Services
===================

Platform clients and the verification, relay, reply and settings services.
"""

from relaybot.services.telegram_api import TelegramClient
from relaybot.services.turnstile import TurnstileVerifier
from relaybot.services.settings import Settings
from relaybot.services.verification import VerificationService
from relaybot.services.profile_card import ProfileCardService
from relaybot.services.relay import RelayService
from relaybot.services.staff_reply import StaffReplyService
from relaybot.services.admin_config import AdminConfigService

__all__ = [
    "TelegramClient",
    "TurnstileVerifier",
    "Settings",
    "VerificationService",
    "ProfileCardService",
    "RelayService",
    "StaffReplyService",
    "AdminConfigService",
]
