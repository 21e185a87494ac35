"""
RelayBot - Admin Settings Menu
==============================

Inline-keyboard menu through which primary operators edit runtime settings.

DESIGN:
    Callback data: config:<action>[:<key>[:<value>]]
    - menu    navigate (no key = root menu)
    - toggle  write "true"/"false" to a toggle key
    - edit    prompt for a replacement value
    - add     prompt for entries appended to a list key
    - delete  remove a list entry by index
    - clear   empty a list key or the backup destination

    "edit" and "add" store a capture record; the admin's next plain-text
    private message is consumed as the value. Opening the root menu
    always drops a pending capture.
"""

import re
from typing import Any, Dict, List, Optional, Tuple

from relaybot.core.config import Config
from relaybot.core.constants import (
    AUTO_REPLY_SEPARATOR,
    CANCEL_COMMAND,
    CATEGORY_LABELS,
    CATEGORY_TOGGLE_KEYS,
    CONFIG_PREFIX,
    CONTENT_CATEGORIES,
)
from relaybot.core.database import AdminCaptureRecord, DatabaseManager
from relaybot.core.errors import ExternalApiError, ValidationError
from relaybot.core.logger import logger
from relaybot.services.settings import LIST_SETTING_KEYS, Settings
from relaybot.services.telegram_api import TelegramClient
from relaybot.utils.async_utils import safe_async_operation
from relaybot.utils.text import escape_html


# =============================================================================
# Constants
# =============================================================================

MENU_ROOT = "root"
MENU_BASE = "base"
MENU_AUTOREPLY = "autoreply"
MENU_KEYWORD = "keyword"
MENU_FILTER = "filter"
MENU_AUTHORIZED = "authorized"
MENU_BACKUP = "backup"

ACTION_MENU = "menu"
ACTION_TOGGLE = "toggle"
ACTION_EDIT = "edit"
ACTION_ADD = "add"
ACTION_DELETE = "delete"
ACTION_CLEAR = "clear"

BASE_KEYS = ("welcome_msg", "verif_q", "verif_a", "block_threshold")
SCALAR_KEYS = BASE_KEYS + ("backup_group_id",)
CLEARABLE_KEYS = LIST_SETTING_KEYS + ("backup_group_id",)
TOGGLE_KEYS = tuple(CATEGORY_TOGGLE_KEYS[c] for c in CONTENT_CATEGORIES) + ("enable_admin_receipt",)

KEY_MENUS = {
    "welcome_msg": MENU_BASE,
    "verif_q": MENU_BASE,
    "verif_a": MENU_BASE,
    "block_threshold": MENU_BASE,
    "keyword_responses": MENU_AUTOREPLY,
    "block_keywords": MENU_KEYWORD,
    "authorized_admins": MENU_AUTHORIZED,
    "backup_group_id": MENU_BACKUP,
}

KEY_LABELS = {
    "welcome_msg": "Welcome message",
    "verif_q": "Verification question",
    "verif_a": "Verification answer",
    "block_threshold": "Block threshold",
    "keyword_responses": "Auto-reply rules",
    "block_keywords": "Blocked keywords",
    "authorized_admins": "Delegated operators",
    "backup_group_id": "Backup destination",
}

TOGGLE_LABELS = {
    **{CATEGORY_TOGGLE_KEYS[c]: CATEGORY_LABELS[c].capitalize() for c in CONTENT_CATEGORIES},
    "enable_admin_receipt": "Staff reply receipts",
}

VALUE_PREVIEW_LENGTH = 300
DELETE_BUTTONS_PER_ROW = 4
NOT_MODIFIED = "message is not modified"

MSG_NOT_ALLOWED = "Not allowed"
MSG_SAVED = "✅ Settings saved"
MSG_CANCELLED = "Cancelled."
MSG_CANCEL_HINT = "\n\nSend /cancel to abort."

Keyboard = Dict[str, Any]


def _button(text: str, *parts: Any) -> Dict[str, str]:
    return {"text": text, "callback_data": ":".join([CONFIG_PREFIX, *map(str, parts)])}


def _back_row() -> List[Dict[str, str]]:
    return [_button("⬅️ Back", ACTION_MENU)]


def _preview(value: str) -> str:
    if len(value) > VALUE_PREVIEW_LENGTH:
        value = value[:VALUE_PREVIEW_LENGTH] + "…"
    return escape_html(value) if value else "<i>empty</i>"


# =============================================================================
# Admin Config Service
# =============================================================================

class AdminConfigService:
    """Renders the settings menu and applies admin edits."""

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

    # =========================================================================
    # Rendering
    # =========================================================================

    def render_menu(self, menu: str) -> Tuple[str, Keyboard]:
        """
        Render a menu from the current settings.

        Returns:
            (HTML text, inline keyboard). Identical settings give identical output.
        """
        renderer = {
            MENU_BASE: self._render_base,
            MENU_AUTOREPLY: lambda: self._render_list(MENU_AUTOREPLY, "keyword_responses"),
            MENU_KEYWORD: lambda: self._render_list(MENU_KEYWORD, "block_keywords"),
            MENU_AUTHORIZED: lambda: self._render_list(MENU_AUTHORIZED, "authorized_admins"),
            MENU_FILTER: self._render_filter,
            MENU_BACKUP: self._render_backup,
        }.get(menu, self._render_root)
        return renderer()

    def _render_root(self) -> Tuple[str, Keyboard]:
        keyboard = {"inline_keyboard": [
            [_button("📝 Basic settings", ACTION_MENU, MENU_BASE),
             _button("🤖 Auto-reply", ACTION_MENU, MENU_AUTOREPLY)],
            [_button("🚫 Keyword blocklist", ACTION_MENU, MENU_KEYWORD),
             _button("🛠 Filters", ACTION_MENU, MENU_FILTER)],
            [_button("🧑‍💻 Operators", ACTION_MENU, MENU_AUTHORIZED),
             _button("💾 Backup", ACTION_MENU, MENU_BACKUP)],
        ]}
        return "⚙️ <b>Bot Settings</b>", keyboard

    def _render_base(self) -> Tuple[str, Keyboard]:
        lines = ["📝 <b>Basic Settings</b>"]
        for key in BASE_KEYS:
            lines.append(f"\n<b>{KEY_LABELS[key]}:</b>\n{_preview(self._settings.get(key))}")

        keyboard = {"inline_keyboard": [
            [_button(f"✏️ {KEY_LABELS[key]}", ACTION_EDIT, key)] for key in BASE_KEYS
        ] + [_back_row()]}
        return "\n".join(lines), keyboard

    def _format_entry(self, key: str, entry: Any) -> str:
        if key == "keyword_responses" and isinstance(entry, dict):
            return (
                f"<code>{_preview(str(entry.get('keywords', '')))}</code>"
                f" → {_preview(str(entry.get('response', '')))}"
            )
        return f"<code>{_preview(str(entry))}</code>"

    def _render_list(self, menu: str, key: str) -> Tuple[str, Keyboard]:
        entries = self._settings.get_list(key)
        lines = [f"<b>{KEY_LABELS[key]}</b>"]

        if key == "block_keywords":
            lines.append(f"Block threshold: <code>{self._settings.get_int('block_threshold', 5)}</code>")
        if key == "keyword_responses":
            lines.append(f"Format: <code>pattern{AUTO_REPLY_SEPARATOR}response</code>")

        lines.append("")
        if entries:
            lines.extend(f"{i + 1}. {self._format_entry(key, entry)}" for i, entry in enumerate(entries))
        else:
            lines.append("<i>No entries</i>")

        delete_buttons = [_button(f"🗑 {i + 1}", ACTION_DELETE, key, i) for i in range(len(entries))]
        rows = [
            delete_buttons[i:i + DELETE_BUTTONS_PER_ROW]
            for i in range(0, len(delete_buttons), DELETE_BUTTONS_PER_ROW)
        ]
        rows.append([_button("➕ Add", ACTION_ADD, key), _button("✏️ Replace all", ACTION_EDIT, key)])
        rows.append([_button("🧹 Clear", ACTION_CLEAR, key)])
        rows.append(_back_row())
        return "\n".join(lines), {"inline_keyboard": rows}

    def _render_filter(self) -> Tuple[str, Keyboard]:
        rows = []
        for key in TOGGLE_KEYS:
            enabled = self._settings.get_bool(key)
            rows.append([_button(
                f"{'✅' if enabled else '❌'} {TOGGLE_LABELS[key]}",
                ACTION_TOGGLE, key, "false" if enabled else "true",
            )])
        rows.append(_back_row())
        return "🛠 <b>Filter Settings</b>\n\nTap an entry to switch it on or off.", {"inline_keyboard": rows}

    def _render_backup(self) -> Tuple[str, Keyboard]:
        current = self._settings.get("backup_group_id").strip()
        text = (
            "💾 <b>Backup Destination</b>\n\n"
            f"Current: {f'<code>{escape_html(current)}</code>' if current else '<i>not set</i>'}"
        )
        keyboard = {"inline_keyboard": [
            [_button("✏️ Set destination", ACTION_EDIT, "backup_group_id")],
            [_button("🧹 Clear", ACTION_CLEAR, "backup_group_id")],
            _back_row(),
        ]}
        return text, keyboard

    def prompt_for(self, action: str, key: str) -> str:
        """Input prompt shown while a capture is pending."""
        if key == "block_threshold":
            prompt = "Send a positive whole number for the block threshold."
        elif key == "keyword_responses":
            prompt = f"Send one rule per line as <code>pattern{AUTO_REPLY_SEPARATOR}response</code>."
        elif key == "block_keywords":
            prompt = "Send one pattern per line (case-insensitive regular expressions)."
        elif key == "authorized_admins":
            prompt = "Send user IDs separated by commas."
        else:
            prompt = f"Send the new value for <b>{KEY_LABELS.get(key, key)}</b>."

        if key in LIST_SETTING_KEYS:
            prompt += " They will be added to the list." if action == ACTION_ADD else " This replaces the whole list."
        return prompt + MSG_CANCEL_HINT

    # =========================================================================
    # Menu Output
    # =========================================================================

    async def open_root(self, admin_id: str) -> None:
        """Clear any pending capture and send the root menu as a new message."""
        self._db.clear_admin_capture(admin_id)
        text, keyboard = self.render_menu(MENU_ROOT)
        await self._telegram.send_message(admin_id, text, parse_mode="HTML", reply_markup=keyboard)

    async def _show(self, chat_id: Any, message_id: Any, menu: str) -> None:
        text, keyboard = self.render_menu(menu)
        await self._edit(chat_id, message_id, text, keyboard)

    async def _edit(self, chat_id: Any, message_id: Any, text: str, keyboard: Optional[Keyboard] = None) -> None:
        try:
            await self._telegram.edit_message_text(
                chat_id, message_id, text, parse_mode="HTML", reply_markup=keyboard,
            )
        except ExternalApiError as e:
            if NOT_MODIFIED in e.description.lower():
                return
            logger.warning("Menu Update Failed", [
                ("Chat ID", str(chat_id)),
                ("Error", e.description[:100]),
            ])

    # =========================================================================
    # Callbacks
    # =========================================================================

    async def handle_callback(self, query: Dict[str, Any]) -> None:
        """Apply a config:<action>[:<key>[:<value>]] button press."""
        sender_id = str(query["from"]["id"])
        if not self._settings.is_primary(sender_id):
            await self._telegram.answer_callback_query(query["id"], MSG_NOT_ALLOWED, show_alert=True)
            return

        await safe_async_operation(
            "Answer Config Callback",
            self._telegram.answer_callback_query(query["id"]),
            log_level="debug",
        )

        message = query.get("message") or {}
        chat_id = message.get("chat", {}).get("id", sender_id)
        message_id = message.get("message_id")

        parts = (query.get("data") or "").split(":", 3)
        action = parts[1] if len(parts) > 1 else ACTION_MENU
        key = parts[2] if len(parts) > 2 else ""
        value = parts[3] if len(parts) > 3 else ""

        if action == ACTION_MENU:
            if not key or key == MENU_ROOT:
                self._db.clear_admin_capture(sender_id)
            await self._show(chat_id, message_id, key or MENU_ROOT)

        elif action == ACTION_TOGGLE and key in TOGGLE_KEYS and value in ("true", "false"):
            self._settings.set(key, value)
            await self._show(chat_id, message_id, MENU_FILTER)

        elif action in (ACTION_EDIT, ACTION_ADD) and self._accepts(action, key):
            self._db.set_admin_capture(sender_id, action, key)
            await self._edit(chat_id, message_id, self.prompt_for(action, key))

        elif action == ACTION_DELETE and key in LIST_SETTING_KEYS:
            self._delete_entry(key, value)
            await self._show(chat_id, message_id, KEY_MENUS[key])

        elif action == ACTION_CLEAR and key in CLEARABLE_KEYS:
            if key in LIST_SETTING_KEYS:
                self._settings.set_list(key, [])
            else:
                self._settings.set(key, "")
            await self._show(chat_id, message_id, KEY_MENUS[key])

        else:
            logger.debug("Unknown Config Callback", [("Data", query.get("data") or "")])

    @staticmethod
    def _accepts(action: str, key: str) -> bool:
        if action == ACTION_ADD:
            return key in LIST_SETTING_KEYS
        return key in SCALAR_KEYS or key in LIST_SETTING_KEYS

    def _delete_entry(self, key: str, raw_index: str) -> None:
        try:
            index = int(raw_index)
        except ValueError:
            return
        entries = self._settings.get_list(key)
        if 0 <= index < len(entries):
            entries.pop(index)
            self._settings.set_list(key, entries)

    # =========================================================================
    # Captured Input
    # =========================================================================

    async def handle_capture_input(self, admin_id: str, text: str, capture: AdminCaptureRecord) -> None:
        """
        Consume the admin's reply to a pending prompt.

        Invalid input keeps the capture and repeats the prompt.
        """
        if text.strip() == CANCEL_COMMAND:
            await self._telegram.send_message(admin_id, MSG_CANCELLED)
            await self.open_root(admin_id)
            return

        action, key = capture["action"], capture["target_key"]
        if not self._accepts(action, key):
            logger.warning("Stale Admin Capture", [("Action", action), ("Key", key)])
            await self.open_root(admin_id)
            return

        try:
            parsed = self.parse_input(key, text)
        except ValidationError as e:
            await self._telegram.send_message(
                admin_id, f"⚠️ {escape_html(str(e))}\n\n{self.prompt_for(action, key)}", parse_mode="HTML",
            )
            return

        if key in LIST_SETTING_KEYS:
            entries = self._settings.get_list(key) + parsed if action == ACTION_ADD else parsed
            self._settings.set_list(key, entries)
        else:
            self._settings.set(key, parsed)

        self._db.clear_admin_capture(admin_id)
        await self._telegram.send_message(admin_id, MSG_SAVED)
        await self.open_root(admin_id)

    @staticmethod
    def parse_input(key: str, text: str) -> Any:
        """
        Validate and convert captured text for a setting.

        Returns:
            A string for scalar keys, a list of entries for list keys.

        Raises:
            ValidationError: If the text is not acceptable for the key.
        """
        if not text.strip():
            raise ValidationError("Send a non-empty value.")

        if key == "block_threshold":
            try:
                threshold = int(text.strip())
            except ValueError:
                raise ValidationError("The block threshold must be a positive whole number.")
            if threshold <= 0:
                raise ValidationError("The block threshold must be a positive whole number.")
            return str(threshold)

        if key == "backup_group_id":
            return text.strip()

        if key == "keyword_responses":
            rules = []
            for line in filter(None, (line.strip() for line in text.splitlines())):
                pattern, separator, response = line.partition(AUTO_REPLY_SEPARATOR)
                if not separator or not pattern.strip() or not response.strip():
                    raise ValidationError(f"Rules must look like pattern{AUTO_REPLY_SEPARATOR}response.")
                rules.append({"keywords": pattern.strip(), "response": response.strip()})
            return rules

        if key == "block_keywords":
            return [line.strip() for line in text.splitlines() if line.strip()]

        if key == "authorized_admins":
            ids = [part for part in re.split(r"[,，\s]+", text.strip()) if part]
            invalid = [part for part in ids if not part.lstrip("-").isdigit()]
            if invalid:
                raise ValidationError(f"Not a user ID: {invalid[0]}")
            return ids

        return text


__all__ = ["AdminConfigService", "TOGGLE_KEYS", "KEY_MENUS"]
