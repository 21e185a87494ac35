"""
RelayBot - Utilities
====================

Shared helpers for async error handling, pattern matching and text.
"""

from relaybot.utils.async_utils import (
    gather_with_logging,
    safe_async_operation,
)
from relaybot.utils.patterns import compile_pattern, first_match, pattern_matches
from relaybot.utils.text import display_name, escape_html, message_text, truncate

__all__ = [
    "gather_with_logging",
    "safe_async_operation",
    "compile_pattern",
    "first_match",
    "pattern_matches",
    "display_name",
    "escape_html",
    "message_text",
    "truncate",
]
