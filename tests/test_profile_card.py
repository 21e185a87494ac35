"""
RelayBot - Profile Card Tests
=============================

Tests for card rendering and the block / unblock / pin controls.
"""

import pytest

from relaybot.core.errors import ExternalApiError
from relaybot.services.profile_card import build_user_info, card_keyboard

USER_ID = "42"
GROUP_ID = "-1001234567890"
THREAD_ID = "501"


class TestCardRendering:
    """Tests for build_user_info and card_keyboard."""

    def test_thread_name(self):
        info = build_user_info({"id": 42, "first_name": "Alice", "last_name": "Smith"}, 1700000000)
        assert info.thread_name == "Alice Smith | 42"
        assert info.username is None
        assert "<code>none</code>" in info.card_html

    def test_thread_name_truncated(self):
        info = build_user_info({"id": 42, "first_name": "A" * 300})
        assert len(info.thread_name) == 128

    def test_name_is_escaped(self):
        info = build_user_info({"id": 42, "first_name": "<script>", "username": "bob"})
        assert "&lt;script&gt;" in info.card_html
        assert "<script>" not in info.card_html
        assert info.username == "@bob"
        assert 'href="tg://user?id=42"' in info.card_html

    def test_snapshot(self):
        info = build_user_info({"id": 42, "first_name": "Alice", "username": "alice"})
        assert info.snapshot(1700000000) == {
            "name": "Alice",
            "username": "@alice",
            "first_message_timestamp": 1700000000,
        }

    def test_keyboard_reflects_block_state(self):
        assert card_keyboard("42", False)["inline_keyboard"][0][0]["callback_data"] == "block:42"
        assert card_keyboard("42", True)["inline_keyboard"][0][0]["callback_data"] == "unblock:42"
        assert card_keyboard("42", True)["inline_keyboard"][1][0]["callback_data"] == "pin_card:42"


class TestCardCallbacks:
    """Tests for staff presses on card buttons."""

    @pytest.fixture
    def card_press(self, make_callback):
        def _press(data, sender_id="1000"):
            return make_callback(data, sender_id=sender_id, chat_id=GROUP_ID, message_id=600, thread_id=THREAD_ID)
        return _press

    @pytest.mark.asyncio
    async def test_block(self, bot, mock_telegram, verified_user, card_press):
        """Block sets the flag, flips the button and posts a notice."""
        await bot.handle_update({"callback_query": card_press("block:42")})

        assert bot.db.get_user(USER_ID)["is_blocked"] is True
        markup_call = mock_telegram.edit_message_reply_markup.call_args
        assert markup_call.args[0] == GROUP_ID
        assert markup_call.args[1] == 600
        assert markup_call.args[2]["inline_keyboard"][0][0]["callback_data"] == "unblock:42"

        notice = mock_telegram.send_message.call_args
        assert notice.args[1] == "❌ User blocked"
        assert notice.kwargs["thread_id"] == int(THREAD_ID)

    @pytest.mark.asyncio
    async def test_unblock_resets_strikes(self, bot, mock_telegram, verified_user, card_press):
        bot.db.increment_block_count(USER_ID)
        bot.db.set_user_blocked(USER_ID, True)

        await bot.handle_update({"callback_query": card_press("unblock:42")})

        user = bot.db.get_user(USER_ID)
        assert user["is_blocked"] is False
        assert user["block_count"] == 0
        assert mock_telegram.send_message.call_args.args[1] == "✅ User unblocked"

    @pytest.mark.asyncio
    async def test_blocked_user_cannot_relay(self, bot, mock_telegram, verified_user, card_press, make_message):
        await bot.handle_update({"callback_query": card_press("block:42")})
        mock_telegram.reset_mock()

        await bot.handle_update({"message": make_message(text="hello")})
        mock_telegram.copy_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_pin(self, bot, mock_telegram, verified_user, card_press):
        await bot.handle_update({"callback_query": card_press("pin_card:42")})
        mock_telegram.pin_chat_message.assert_awaited_once_with(GROUP_ID, 600)

    @pytest.mark.asyncio
    async def test_pin_failure_is_logged(self, bot, mock_telegram, verified_user, card_press):
        mock_telegram.pin_chat_message.side_effect = ExternalApiError("pinChatMessage", "Bad Request: not enough rights")
        await bot.handle_update({"callback_query": card_press("pin_card:42")})
        assert bot.db.get_user(USER_ID)["is_blocked"] is False

    @pytest.mark.asyncio
    async def test_non_operator_gets_alert(self, bot, mock_telegram, verified_user, card_press):
        await bot.handle_update({"callback_query": card_press("block:42", sender_id="3000")})

        mock_telegram.answer_callback_query.assert_awaited_once_with("cbq-1", "Not allowed", show_alert=True)
        assert bot.db.get_user(USER_ID)["is_blocked"] is False

    @pytest.mark.asyncio
    async def test_delegated_operator_allowed(self, bot, verified_user, card_press):
        bot.settings.set_list("authorized_admins", ["2000"])
        await bot.handle_update({"callback_query": card_press("block:42", sender_id="2000")})
        assert bot.db.get_user(USER_ID)["is_blocked"] is True

    @pytest.mark.asyncio
    async def test_outside_staff_group_ignored(self, bot, mock_telegram, verified_user, make_callback):
        query = make_callback("block:42", sender_id="1000", chat_id="1000")
        await bot.handle_update({"callback_query": query})

        mock_telegram.answer_callback_query.assert_not_awaited()
        assert bot.db.get_user(USER_ID)["is_blocked"] is False

    @pytest.mark.asyncio
    async def test_unknown_user(self, bot, mock_telegram, card_press):
        await bot.handle_update({"callback_query": card_press("block:555")})
        assert bot.db.get_user("555") is None
        mock_telegram.edit_message_reply_markup.assert_not_awaited()
