"""
RelayBot - Relay Pipeline Tests
===============================

Tests for message classification, the guard chain, thread lifecycle,
and edit propagation.
"""

import time

import pytest

from relaybot.core.constants import (
    CATEGORY_AUDIO,
    CATEGORY_CHANNEL,
    CATEGORY_FORWARD,
    CATEGORY_LINK,
    CATEGORY_MEDIA,
    CATEGORY_STICKER,
    CATEGORY_TEXT,
)
from relaybot.core.errors import ExternalApiError
from relaybot.services.relay import (
    MSG_BLOCKED,
    MSG_DELIVERED,
    MSG_DELIVERY_FAILED,
    MSG_FIRST_MESSAGE_TEXT,
    MSG_SERVICE_BUSY,
    MSG_SESSION_EXPIRED,
    classify_message,
    is_plain_text,
)

USER_ID = "42"
GROUP_ID = "-1001234567890"
THREAD_ID = "501"


def _sent_texts(mock_telegram):
    return [c.args[1] for c in mock_telegram.send_message.call_args_list]


def _texts_to(mock_telegram, chat_id):
    return [c.args[1] for c in mock_telegram.send_message.call_args_list if c.args[0] == chat_id]


class TestClassification:
    """Tests for classify_message priority."""

    def test_plain_text(self):
        assert classify_message({"text": "hello"}) == CATEGORY_TEXT

    def test_url_entity_is_link(self):
        message = {"text": "see example.com", "entities": [{"type": "url", "offset": 4, "length": 11}]}
        assert classify_message(message) == CATEGORY_LINK

    def test_text_link_entity_is_link(self):
        message = {"text": "click", "entities": [{"type": "text_link", "offset": 0, "length": 5, "url": "https://x"}]}
        assert classify_message(message) == CATEGORY_LINK

    def test_media_beats_link(self):
        message = {
            "photo": [{"file_id": "p"}],
            "caption": "https://x.example",
            "caption_entities": [{"type": "url", "offset": 0, "length": 17}],
        }
        assert classify_message(message) == CATEGORY_MEDIA

    def test_document_is_media(self):
        assert classify_message({"document": {"file_id": "d"}}) == CATEGORY_MEDIA

    def test_voice_is_audio(self):
        assert classify_message({"voice": {"file_id": "v"}}) == CATEGORY_AUDIO

    def test_animation_is_sticker(self):
        """GIFs carry both animation and document; they count as stickers."""
        message = {"animation": {"file_id": "a"}, "document": {"file_id": "a"}}
        assert classify_message(message) == CATEGORY_STICKER

    def test_forward_from_user(self):
        message = {"text": "fwd", "forward_from": {"id": 5, "first_name": "Bob"}}
        assert classify_message(message) == CATEGORY_FORWARD

    def test_forward_beats_media(self):
        message = {"photo": [{"file_id": "p"}], "forward_sender_name": "Hidden"}
        assert classify_message(message) == CATEGORY_FORWARD

    def test_channel_forward_legacy_field(self):
        message = {"text": "news", "forward_from_chat": {"id": -100, "type": "channel"}}
        assert classify_message(message) == CATEGORY_CHANNEL

    def test_channel_forward_origin(self):
        message = {"text": "news", "forward_origin": {"type": "channel", "chat": {"id": -100, "type": "channel"}}}
        assert classify_message(message) == CATEGORY_CHANNEL

    def test_group_forward_is_plain_forward(self):
        message = {"text": "x", "forward_from_chat": {"id": -200, "type": "supergroup"}}
        assert classify_message(message) == CATEGORY_FORWARD

    def test_plain_text_check(self):
        assert is_plain_text({"text": "hi"}) is True
        assert is_plain_text({"caption": "hi", "photo": [{}]}) is False
        assert is_plain_text({"sticker": {"file_id": "s"}}) is False


class TestFirstMessage:
    """Tests for the plain-text first message rule."""

    @pytest.mark.asyncio
    async def test_media_first_message_rejected(self, bot, mock_telegram, verified_user, make_message):
        """A photo as the first message is refused."""
        await bot.handle_update({"message": make_message(text=None, photo=[{"file_id": "p"}])})

        mock_telegram.copy_message.assert_not_awaited()
        mock_telegram.create_forum_topic.assert_not_awaited()
        assert _sent_texts(mock_telegram) == [MSG_FIRST_MESSAGE_TEXT]
        assert bot.db.get_user(USER_ID)["first_message_sent"] is False

    @pytest.mark.asyncio
    async def test_media_allowed_after_first_text(self, bot, mock_telegram, verified_user, make_message):
        """Once a text went through, media is relayed."""
        await bot.handle_update({"message": make_message(text="hello")})
        await bot.handle_update({"message": make_message(text=None, message_id=11, photo=[{"file_id": "p"}])})
        assert mock_telegram.copy_message.await_count == 2


class TestBlocklist:
    """Tests for blocked keywords and the block threshold."""

    @pytest.mark.asyncio
    async def test_threshold_blocks_user(self, bot, mock_telegram, verified_user, make_message):
        """Five strikes block the user; nothing is ever relayed."""
        bot.settings.set_list("block_keywords", ["spam"])
        bot.settings.set("block_threshold", "5")

        for i in range(5):
            await bot.handle_update({"message": make_message(text="SPAM offer", message_id=10 + i)})

        user = bot.db.get_user(USER_ID)
        assert user["is_blocked"] is True
        assert user["block_count"] == 5
        mock_telegram.copy_message.assert_not_awaited()

        texts = _sent_texts(mock_telegram)
        assert "(1/5)" in texts[0]
        assert "(4/5)" in texts[3]
        assert texts[4] == MSG_BLOCKED

    @pytest.mark.asyncio
    async def test_blocked_user_silently_dropped(self, bot, mock_telegram, verified_user, make_message):
        """Messages after the block get no reply."""
        bot.settings.set_list("block_keywords", ["spam"])
        bot.settings.set("block_threshold", "1")
        await bot.handle_update({"message": make_message(text="spam")})
        mock_telegram.send_message.reset_mock()

        await bot.handle_update({"message": make_message(text="clean text", message_id=11)})
        mock_telegram.send_message.assert_not_awaited()
        mock_telegram.copy_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_pattern_skipped(self, bot, mock_telegram, verified_user, make_message):
        """A broken regex is ignored; later patterns still apply."""
        bot.settings.set_list("block_keywords", ["(unclosed", "casino"])
        await bot.handle_update({"message": make_message(text="best casino")})

        assert bot.db.get_user(USER_ID)["block_count"] == 1
        mock_telegram.copy_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_caption_is_checked(self, bot, mock_telegram, verified_user, make_message):
        """Captions are scanned like text."""
        bot.db.mark_first_message_sent(USER_ID)
        bot.settings.set_list("block_keywords", ["casino"])
        await bot.handle_update({
            "message": make_message(text=None, photo=[{"file_id": "p"}], caption="casino night"),
        })
        assert bot.db.get_user(USER_ID)["block_count"] == 1

    @pytest.mark.asyncio
    async def test_unparsable_threshold_uses_default(self, bot, verified_user, make_message):
        """A bad stored threshold falls back to 5."""
        bot.settings.set_list("block_keywords", ["spam"])
        bot.settings.set("block_threshold", "abc")
        for i in range(4):
            await bot.handle_update({"message": make_message(text="spam", message_id=10 + i)})
        assert bot.db.get_user(USER_ID)["is_blocked"] is False

    @pytest.mark.asyncio
    async def test_backtracking_pattern_does_not_stall(self, bot, mock_telegram, verified_user, make_message):
        """A catastrophic pattern times out as no match and the message is relayed."""
        bot.settings.set_list("block_keywords", ["(a+)+$"])

        started = time.perf_counter()
        await bot.handle_update({"message": make_message(text="a" * 30 + "!")})
        elapsed = time.perf_counter() - started

        assert elapsed < 1.0
        assert bot.db.get_user(USER_ID)["block_count"] == 0
        mock_telegram.copy_message.assert_awaited_once()


class TestCategoryFilters:
    """Tests for the per-category toggles."""

    @pytest.mark.asyncio
    async def test_disabled_links_rejected(self, bot, mock_telegram, verified_user, make_message):
        """A link is refused with the category named."""
        bot.settings.set("enable_link_forwarding", "false")
        message = make_message(text="go to example.com", entities=[{"type": "url", "offset": 6, "length": 11}])
        await bot.handle_update({"message": message})

        mock_telegram.copy_message.assert_not_awaited()
        assert "links" in _sent_texts(mock_telegram)[0]

    @pytest.mark.asyncio
    async def test_channel_forward_needs_forward_toggle(self, bot, mock_telegram, verified_user, make_message):
        """Channel forwards are refused when forwards in general are off."""
        bot.db.mark_first_message_sent(USER_ID)
        bot.settings.set("enable_forward_forwarding", "false")
        message = make_message(text="news", forward_from_chat={"id": -100, "type": "channel"})
        await bot.handle_update({"message": message})

        mock_telegram.copy_message.assert_not_awaited()
        assert "forwarded messages" in _sent_texts(mock_telegram)[0]

    @pytest.mark.asyncio
    async def test_channel_forward_toggle(self, bot, mock_telegram, verified_user, make_message):
        """The channel toggle alone can refuse channel forwards."""
        bot.db.mark_first_message_sent(USER_ID)
        bot.settings.set("enable_channel_forwarding", "false")
        message = make_message(text="news", forward_from_chat={"id": -100, "type": "channel"})
        await bot.handle_update({"message": message})

        assert "channel forwards" in _sent_texts(mock_telegram)[0]

    @pytest.mark.asyncio
    async def test_disabled_text_rejects_first_message(self, bot, mock_telegram, verified_user, make_message):
        """Plain text can be switched off too."""
        bot.settings.set("enable_text_forwarding", "false")
        await bot.handle_update({"message": make_message(text="hello")})
        assert "plain text" in _sent_texts(mock_telegram)[0]


class TestAutoReply:
    """Tests for keyword auto-replies."""

    @pytest.mark.asyncio
    async def test_matching_rule_answers_instead_of_relaying(self, bot, mock_telegram, verified_user, make_message):
        bot.settings.set_list("keyword_responses", [{"keywords": "price|cost", "response": "See the pinned post."}])
        await bot.handle_update({"message": make_message(text="What is the PRICE?")})

        mock_telegram.copy_message.assert_not_awaited()
        assert _sent_texts(mock_telegram) == ["This is an automated reply\n\nSee the pinned post."]

    @pytest.mark.asyncio
    async def test_blocklist_runs_before_auto_reply(self, bot, mock_telegram, verified_user, make_message):
        bot.settings.set_list("block_keywords", ["price"])
        bot.settings.set_list("keyword_responses", [{"keywords": "price", "response": "x"}])
        await bot.handle_update({"message": make_message(text="price?")})
        assert bot.db.get_user(USER_ID)["block_count"] == 1


class TestRelay:
    """Tests for thread creation and message copying."""

    @pytest.mark.asyncio
    async def test_first_message_creates_thread(self, bot, mock_telegram, verified_user, make_message):
        """A thread is opened, claimed, carded, and the message copied."""
        message = make_message(text="hello")
        message["from"]["username"] = "alice"
        await bot.handle_update({"message": message})

        mock_telegram.create_forum_topic.assert_awaited_once_with(GROUP_ID, "Alice | 42")
        mock_telegram.copy_message.assert_awaited_once_with(GROUP_ID, USER_ID, 10, thread_id=THREAD_ID)

        card_call = mock_telegram.send_message.call_args_list[0]
        assert card_call.args[0] == GROUP_ID
        assert card_call.kwargs["thread_id"] == THREAD_ID
        assert "User Profile" in card_call.args[1]

        assert MSG_DELIVERED in _texts_to(mock_telegram, USER_ID)

        user = bot.db.get_user(USER_ID)
        assert user["thread_id"] == THREAD_ID
        assert user["first_message_sent"] is True
        assert user["profile"]["name"] == "Alice"
        assert user["profile"]["username"] == "@alice"
        assert bot.db.get_cached_message(USER_ID, 10)["text"] == "hello"

    @pytest.mark.asyncio
    async def test_existing_thread_reused(self, bot, mock_telegram, verified_user, make_message):
        await bot.handle_update({"message": make_message(text="one")})
        await bot.handle_update({"message": make_message(text="two", message_id=11)})

        mock_telegram.create_forum_topic.assert_awaited_once()
        assert mock_telegram.copy_message.await_count == 2

    @pytest.mark.asyncio
    async def test_lost_claim_discards_duplicate_thread(self, bot, mock_telegram, verified_user, make_message):
        """When a concurrent message already claimed a thread, the new one is deleted."""
        stale_user = bot.db.get_user(USER_ID)
        bot.db.claim_thread(USER_ID, THREAD_ID)
        mock_telegram.create_forum_topic.return_value = "777"

        assert await bot.relay.relay_message(make_message(text="hello"), stale_user) is True

        mock_telegram.delete_forum_topic.assert_awaited_once_with(GROUP_ID, "777")
        mock_telegram.copy_message.assert_awaited_once_with(GROUP_ID, USER_ID, 10, thread_id=THREAD_ID)
        assert bot.db.get_user(USER_ID)["thread_id"] == THREAD_ID

    @pytest.mark.asyncio
    async def test_thread_creation_failure(self, bot, mock_telegram, verified_user, make_message):
        """The user is told when no thread can be opened."""
        mock_telegram.create_forum_topic.side_effect = ExternalApiError("createForumTopic", "Forbidden")
        await bot.handle_update({"message": make_message(text="hello")})

        mock_telegram.copy_message.assert_not_awaited()
        assert _sent_texts(mock_telegram) == [MSG_SERVICE_BUSY]
        assert bot.db.get_user(USER_ID)["first_message_sent"] is False

    @pytest.mark.asyncio
    async def test_card_failure_does_not_stop_relay(self, bot, mock_telegram, verified_user, make_message):
        """A card that cannot be posted does not block the message."""
        mock_telegram.send_message.side_effect = [
            ExternalApiError("sendMessage", "Bad Request: can't parse entities"),
            {"message_id": 902},
        ]
        await bot.handle_update({"message": make_message(text="hello")})
        mock_telegram.copy_message.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_thread_self_heals(self, bot, mock_telegram, verified_user, make_message):
        """A deleted thread clears the mapping; the next message opens a new one."""
        bot.db.claim_thread(USER_ID, "400")
        bot.db.mark_first_message_sent(USER_ID)
        mock_telegram.copy_message.side_effect = ExternalApiError(
            "copyMessage", "Bad Request: message thread not found", 400,
        )

        await bot.handle_update({"message": make_message(text="hello")})
        assert bot.db.get_user(USER_ID)["thread_id"] is None
        assert MSG_SESSION_EXPIRED in _sent_texts(mock_telegram)

        mock_telegram.copy_message.side_effect = None
        await bot.handle_update({"message": make_message(text="again", message_id=11)})
        mock_telegram.create_forum_topic.assert_awaited_once()
        assert bot.db.get_user(USER_ID)["thread_id"] == THREAD_ID

    @pytest.mark.asyncio
    async def test_other_copy_failure_keeps_thread(self, bot, mock_telegram, verified_user, make_message):
        bot.db.claim_thread(USER_ID, "400")
        mock_telegram.copy_message.side_effect = ExternalApiError("copyMessage", "Too Many Requests", 429)

        await bot.handle_update({"message": make_message(text="hello")})

        assert bot.db.get_user(USER_ID)["thread_id"] == "400"
        assert MSG_DELIVERY_FAILED in _sent_texts(mock_telegram)
        assert bot.db.get_user(USER_ID)["first_message_sent"] is False

    @pytest.mark.asyncio
    async def test_backup_copy(self, bot, mock_telegram, verified_user, make_message):
        """Relayed text is mirrored to the backup destination."""
        bot.settings.set("backup_group_id", "-100777")
        await bot.handle_update({"message": make_message(text="a <b> c")})

        backup = _texts_to(mock_telegram, "-100777")
        assert len(backup) == 1
        assert backup[0].endswith("a &lt;b&gt; c")

    @pytest.mark.asyncio
    async def test_backup_media_sends_header_then_copy(self, bot, mock_telegram, verified_user, make_message):
        """Non-text messages get a header and a verbatim copy in the backup chat."""
        bot.db.mark_first_message_sent(USER_ID)
        bot.settings.set("backup_group_id", "-100777")
        await bot.handle_update({
            "message": make_message(text=None, photo=[{"file_id": "p"}], caption="look"),
        })

        headers = _texts_to(mock_telegram, "-100777")
        assert len(headers) == 1
        assert "Backup" in headers[0]
        backup_copies = [c for c in mock_telegram.copy_message.call_args_list if c.args[0] == "-100777"]
        assert len(backup_copies) == 1
        assert backup_copies[0].args[2] == 10

    @pytest.mark.asyncio
    async def test_backup_copy_failure_does_not_fail_relay(self, bot, mock_telegram, verified_user, make_message):
        """A failed backup copy is logged and the relay still succeeds."""
        bot.db.claim_thread(USER_ID, THREAD_ID)
        bot.db.mark_first_message_sent(USER_ID)
        bot.settings.set("backup_group_id", "-100777")

        async def copy(chat_id, from_chat_id, message_id, **kwargs):
            if chat_id == "-100777":
                raise ExternalApiError("copyMessage", "Bad Request: chat not found", 400)
            return {"message_id": 901}

        mock_telegram.copy_message.side_effect = copy
        message = make_message(text=None, photo=[{"file_id": "p"}])

        assert await bot.relay.relay_message(message, bot.db.get_user(USER_ID)) is True
        assert mock_telegram.copy_message.await_count == 2
        assert MSG_DELIVERED in _texts_to(mock_telegram, USER_ID)


class TestEdits:
    """Tests for edit notices."""

    @pytest.fixture
    def relayed(self, bot, verified_user):
        bot.db.claim_thread(USER_ID, THREAD_ID)
        bot.db.mark_first_message_sent(USER_ID)
        bot.db.cache_message(USER_ID, 10, "old <text>", 1700000010)

    @pytest.mark.asyncio
    async def test_edit_notice_shows_before_and_after(self, bot, mock_telegram, relayed, make_message):
        await bot.handle_update({"edited_message": make_message(text="new text")})

        call = mock_telegram.send_message.call_args
        assert call.args[0] == GROUP_ID
        assert call.kwargs["thread_id"] == THREAD_ID
        assert "old &lt;text&gt;" in call.args[1]
        assert "new text" in call.args[1]
        assert bot.db.get_cached_message(USER_ID, 10)["text"] == "new text"

    @pytest.mark.asyncio
    async def test_unknown_original(self, bot, mock_telegram, relayed, make_message):
        await bot.handle_update({"edited_message": make_message(text="changed", message_id=99)})
        assert "[unknown/non-text]" in mock_telegram.send_message.call_args.args[1]

    @pytest.mark.asyncio
    async def test_no_thread_no_notice(self, bot, mock_telegram, verified_user, make_message):
        await bot.handle_update({"edited_message": make_message(text="changed")})
        mock_telegram.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_notice_into_deleted_thread_clears_mapping(self, bot, mock_telegram, relayed, make_message):
        mock_telegram.send_message.side_effect = ExternalApiError("sendMessage", "Bad Request: message thread not found")
        assert await bot.relay.handle_edit(make_message(text="changed")) is False
        assert bot.db.get_user(USER_ID)["thread_id"] is None
