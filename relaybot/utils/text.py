"""
RelayBot - Text Helpers
=======================

HTML escaping and message text extraction.
"""

import html
from typing import Any, Dict, Optional


def escape_html(text: Any) -> str:
    """Escape &, < and > for Telegram HTML parse mode."""
    if text is None or text == "":
        return ""
    return html.escape(str(text), quote=False)


def message_text(message: Dict[str, Any]) -> Optional[str]:
    """Text of a message, falling back to its caption."""
    return message.get("text") or message.get("caption")


def display_name(user: Dict[str, Any]) -> str:
    """First and last name joined, as Telegram shows it."""
    first = user.get("first_name") or ""
    last = user.get("last_name")
    return f"{first} {last}" if last else first


def truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit]


__all__ = ["escape_html", "message_text", "display_name", "truncate"]
