"""
RelayBot - Test Fixtures
========================

Shared fixtures for all tests.
"""

import os
import sys
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set up test environment before importing modules
os.environ["TESTING"] = "1"
os.environ["LOGS_DIR"] = tempfile.mkdtemp(prefix="relaybot-logs-")

from relaybot.core.config import Config
from relaybot.services.telegram_api import TelegramClient
from relaybot.services.turnstile import TurnstileVerifier


GROUP_ID = "-1001234567890"
PRIMARY_ADMIN_ID = "1000"
USER_ID = "42"
THREAD_ID = "501"


@pytest.fixture
def temp_db_path(tmp_path):
    """Create a temporary database path for testing."""
    return tmp_path / "test_relay.db"


@pytest.fixture
def test_db(temp_db_path):
    """Create a fresh test database instance."""
    from relaybot.core.database import manager as db_module

    # Reset singleton
    db_module.DatabaseManager._instance = None

    db = db_module.DatabaseManager(temp_db_path)

    yield db

    # Cleanup
    db.close()
    db_module.DatabaseManager._instance = None


@pytest.fixture
def mock_config(temp_db_path):
    """Create a config with every optional value set."""
    return Config(
        bot_token="123456:TEST",
        admin_group_id=GROUP_ID,
        admin_ids={PRIMARY_ADMIN_ID},
        public_url="https://relay.example.com",
        turnstile_site_key="site-key",
        turnstile_secret_key="secret-key",
        db_path=str(temp_db_path),
    )


@pytest.fixture
def mock_telegram():
    """AsyncMock Telegram client with realistic return values."""
    telegram = AsyncMock(spec=TelegramClient)
    telegram.send_message.return_value = {"message_id": 900}
    telegram.copy_message.return_value = {"message_id": 901}
    telegram.create_forum_topic.return_value = THREAD_ID
    telegram.delete_forum_topic.return_value = True
    telegram.edit_message_text.return_value = True
    telegram.edit_message_reply_markup.return_value = True
    telegram.pin_chat_message.return_value = True
    telegram.answer_callback_query.return_value = True
    return telegram


@pytest.fixture
def mock_verifier():
    """Verifier that accepts every token."""
    verifier = AsyncMock(spec=TurnstileVerifier)
    verifier.verify.return_value = True
    return verifier


@pytest.fixture
def bot(mock_config, test_db, mock_telegram, mock_verifier):
    """RelayBot wired to the temp store and mocked clients."""
    from relaybot.bot import RelayBot

    return RelayBot(mock_config, db=test_db, telegram=mock_telegram, verifier=mock_verifier)


@pytest.fixture
def make_message():
    """Factory for private chat messages."""

    def _make(user_id=USER_ID, text="hello", message_id=10, first_name="Alice", **extra):
        message = {
            "message_id": message_id,
            "date": 1700000000 + message_id,
            "chat": {"id": int(user_id), "type": "private"},
            "from": {"id": int(user_id), "is_bot": False, "first_name": first_name},
        }
        if text is not None:
            message["text"] = text
        message.update(extra)
        return message

    return _make


@pytest.fixture
def make_staff_message():
    """Factory for messages posted in the staff group."""

    def _make(sender_id=PRIMARY_ADMIN_ID, thread_id=THREAD_ID, text="reply", message_id=77, is_bot=False):
        message = {
            "message_id": message_id,
            "date": 1700000100,
            "chat": {"id": int(GROUP_ID), "type": "supergroup", "is_forum": True},
            "from": {"id": int(sender_id), "is_bot": is_bot, "first_name": "Staff"},
            "text": text,
        }
        if thread_id is not None:
            message["message_thread_id"] = int(thread_id)
            message["is_topic_message"] = True
        return message

    return _make


@pytest.fixture
def make_callback():
    """Factory for callback queries."""

    def _make(data, sender_id=PRIMARY_ADMIN_ID, chat_id=None, message_id=55, thread_id=None):
        message = {
            "message_id": message_id,
            "chat": {"id": int(chat_id if chat_id is not None else sender_id)},
        }
        if thread_id is not None:
            message["message_thread_id"] = int(thread_id)
        return {
            "id": "cbq-1",
            "from": {"id": int(sender_id), "is_bot": False, "first_name": "Admin"},
            "message": message,
            "data": data,
        }

    return _make


@pytest.fixture
def verified_user(test_db):
    """A verified user who has not sent anything yet."""
    from relaybot.core.constants import STATE_NEW, STATE_VERIFIED

    test_db.get_or_create_user(USER_ID)
    test_db.advance_user_state(USER_ID, STATE_VERIFIED, (STATE_NEW,))
    return test_db.get_user(USER_ID)
