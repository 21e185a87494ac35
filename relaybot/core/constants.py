"""
RelayBot - Centralized Constants
================================

All magic numbers and fixed identifiers are defined here.
Import from this module instead of hardcoding values.
"""

# =============================================================================
# User States
# =============================================================================

STATE_NEW = "new"
STATE_PENDING_CHALLENGE = "pending_challenge"
STATE_PENDING_QA = "pending_qa"
STATE_VERIFIED = "verified"

# =============================================================================
# Commands
# =============================================================================

START_COMMANDS = ("/start", "/help")
CANCEL_COMMAND = "/cancel"

# =============================================================================
# Content Categories (priority order)
# =============================================================================

CATEGORY_FORWARD = "forward"
CATEGORY_CHANNEL = "channel"
CATEGORY_AUDIO = "audio"
CATEGORY_STICKER = "sticker"
CATEGORY_MEDIA = "media"
CATEGORY_LINK = "link"
CATEGORY_TEXT = "text"

CONTENT_CATEGORIES = (
    CATEGORY_FORWARD,
    CATEGORY_CHANNEL,
    CATEGORY_AUDIO,
    CATEGORY_STICKER,
    CATEGORY_MEDIA,
    CATEGORY_LINK,
    CATEGORY_TEXT,
)

CATEGORY_TOGGLE_KEYS = {
    CATEGORY_FORWARD: "enable_forward_forwarding",
    CATEGORY_CHANNEL: "enable_channel_forwarding",
    CATEGORY_AUDIO: "enable_audio_forwarding",
    CATEGORY_STICKER: "enable_sticker_forwarding",
    CATEGORY_MEDIA: "enable_image_forwarding",
    CATEGORY_LINK: "enable_link_forwarding",
    CATEGORY_TEXT: "enable_text_forwarding",
}

CATEGORY_LABELS = {
    CATEGORY_FORWARD: "forwarded messages",
    CATEGORY_CHANNEL: "channel forwards",
    CATEGORY_AUDIO: "voice/audio",
    CATEGORY_STICKER: "stickers/GIFs",
    CATEGORY_MEDIA: "media files",
    CATEGORY_LINK: "links",
    CATEGORY_TEXT: "plain text",
}

# Message fields that count as an attachment for the first-message check
ATTACHMENT_FIELDS = (
    "photo", "video", "document", "sticker", "animation",
    "audio", "voice", "video_note",
)

LINK_ENTITY_TYPES = ("url", "text_link")

# =============================================================================
# Limits
# =============================================================================

THREAD_NAME_MAX_LENGTH = 128
"""Telegram caps forum topic names at 128 characters."""

MESSAGE_CACHE_PER_USER = 20
"""Cached message texts retained per user for edit diffs."""

PATTERN_MAX_LENGTH = 512
"""Admin regex patterns longer than this are skipped."""

PATTERN_SCAN_LIMIT = 4096
"""Characters of user text scanned by admin patterns."""

PATTERN_TIMEOUT_SECONDS = 0.1
"""Run-time budget for one admin pattern search; exceeding it counts as no match."""

API_TIMEOUT = 10
"""Outbound HTTP request timeout in seconds."""

# =============================================================================
# Callback Data Prefixes
# =============================================================================

CONFIG_PREFIX = "config"
CARD_BLOCK = "block"
CARD_UNBLOCK = "unblock"
CARD_PIN = "pin_card"

AUTO_REPLY_SEPARATOR = "==="
