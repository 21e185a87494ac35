"""
RelayBot - Verification Gate
============================

Per-user two-stage verification: external challenge, then a Q&A answer.

DESIGN:
    new -> pending_challenge -> pending_qa -> verified
    - /start moves new users to pending_challenge and sends the page link
    - POST /submit_token moves pending_challenge users to pending_qa
    - a correct answer moves pending_qa users to verified
    - operators jump straight to verified on first contact
    Every transition is a conditional update, so a user never moves back.
"""

from typing import Any, Dict

from relaybot.core.config import Config, DEFAULT_SETTINGS
from relaybot.core.constants import (
    STATE_NEW,
    STATE_PENDING_CHALLENGE,
    STATE_PENDING_QA,
    STATE_VERIFIED,
)
from relaybot.core.database import DatabaseManager, UserRecord
from relaybot.core.errors import NotFoundError
from relaybot.core.logger import logger
from relaybot.services.settings import Settings
from relaybot.services.telegram_api import TelegramClient
from relaybot.utils.async_utils import gather_with_logging


# =============================================================================
# User-facing Texts
# =============================================================================

MSG_MISCONFIGURED = "⚠️ Verification is not configured (PUBLIC_URL / TURNSTILE_SITE_KEY)."
MSG_CHALLENGE_PROMPT = "Please tap the button below to complete the security check:"
MSG_CHALLENGE_BUTTON = "🛡️ Verify I'm human"
MSG_CONTINUE_QA = "Please finish the verification question:\n\n"
MSG_ALREADY_VERIFIED = "You are verified. Just send your message."
MSG_CHALLENGE_PASSED = "✅ Security check passed!"
MSG_QA_PROMPT = "Please answer the verification question (the answer is in the bot's bio):\n\n"
MSG_QA_PASSED = "✅ Verification passed!\n<b>Note: your first message must be plain text.</b>"
MSG_QA_FAILED = "❌ Wrong answer. Check the bio and try again."


class VerificationService:
    """Drives users through the verification gate."""

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

    def verification_url(self, user_id: str) -> str:
        return f"{self._config.public_url}/verify?user_id={user_id}"

    # =========================================================================
    # Start Prompt
    # =========================================================================

    async def send_start_prompt(self, user_id: str) -> None:
        """
        Render the prompt for the user's current stage.

        New users are advanced to pending_challenge once the link is sent.
        """
        user = self._db.get_or_create_user(user_id)
        state = user["state"]

        if state in (STATE_NEW, STATE_PENDING_CHALLENGE):
            if not self._config.verification_ready:
                await self._telegram.send_message(user_id, MSG_MISCONFIGURED)
                return

            welcome = self._settings.get("welcome_msg")
            await self._telegram.send_message(
                user_id,
                f"{welcome}\n\n{MSG_CHALLENGE_PROMPT}",
                reply_markup={
                    "inline_keyboard": [[{
                        "text": MSG_CHALLENGE_BUTTON,
                        "web_app": {"url": self.verification_url(user_id)},
                    }]]
                },
            )
            if state == STATE_NEW:
                self._db.advance_user_state(user_id, STATE_PENDING_CHALLENGE, (STATE_NEW,))

        elif state == STATE_PENDING_QA:
            await self._telegram.send_message(user_id, MSG_CONTINUE_QA + self._settings.get("verif_q"))

        else:
            await self._telegram.send_message(user_id, MSG_ALREADY_VERIFIED)

    # =========================================================================
    # Challenge
    # =========================================================================

    async def complete_challenge(self, user_id: str) -> bool:
        """
        Record a passed external challenge and push the Q&A prompt.

        Returns:
            True if the user advanced to pending_qa.

        Raises:
            NotFoundError: If the user has never contacted the bot.
        """
        user = self._db.get_user(user_id)
        if user is None:
            raise NotFoundError(f"Unknown user {user_id}")

        advanced = self._db.advance_user_state(
            user_id, STATE_PENDING_QA, (STATE_NEW, STATE_PENDING_CHALLENGE),
        )
        if not advanced:
            logger.debug("Challenge Completed Without Transition", [
                ("User ID", str(user_id)),
                ("State", user["state"]),
            ])
            return False

        await gather_with_logging(
            ("Challenge Notice", self._telegram.send_message(user_id, MSG_CHALLENGE_PASSED)),
            ("QA Prompt", self._telegram.send_message(user_id, MSG_QA_PROMPT + self._settings.get("verif_q"))),
            context="Challenge Passed",
        )
        return True

    # =========================================================================
    # Q&A
    # =========================================================================

    def answer_is_correct(self, answer: str) -> bool:
        expected = self._settings.get("verif_a") or DEFAULT_SETTINGS["verif_a"]
        return answer.strip() == expected.strip()

    async def handle_answer(self, user_id: str, answer: str) -> bool:
        """
        Check a pending_qa user's answer.

        Returns:
            True if the user is now verified.
        """
        if not self.answer_is_correct(answer or ""):
            await self._telegram.send_message(user_id, MSG_QA_FAILED)
            return False

        self._db.advance_user_state(user_id, STATE_VERIFIED, (STATE_PENDING_QA,))
        await self._telegram.send_message(user_id, MSG_QA_PASSED, parse_mode="HTML")
        return True

    # =========================================================================
    # Operators
    # =========================================================================

    def promote_operator(self, user: UserRecord) -> UserRecord:
        """Force a recognized operator to verified, bypassing the gate."""
        if user["state"] == STATE_VERIFIED:
            return user
        self._db.advance_user_state(
            user["user_id"],
            STATE_VERIFIED,
            (STATE_NEW, STATE_PENDING_CHALLENGE, STATE_PENDING_QA),
        )
        promoted: Dict[str, Any] = dict(user)
        promoted["state"] = STATE_VERIFIED
        return promoted


__all__ = ["VerificationService"]
