"""
RelayBot - Admin Pattern Matching
=================================

Case-insensitive matching of operator-supplied regular expressions.

DESIGN:
    Patterns come from the settings menu and cannot be trusted to be
    valid or cheap. Over-long or malformed patterns are skipped, only a
    bounded prefix of the text is scanned, and compiled patterns are cached.
    Searches run on the event loop, so each one gets a timeout; a search
    that runs out of time is logged and counts as no match.
"""

from functools import lru_cache
from typing import Iterable, Optional

import regex

from relaybot.core.constants import PATTERN_MAX_LENGTH, PATTERN_SCAN_LIMIT, PATTERN_TIMEOUT_SECONDS
from relaybot.core.logger import logger


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> Optional["regex.Pattern"]:
    """
    Compile an admin pattern.

    Returns:
        Compiled pattern, or None if it is empty, too long or malformed.
    """
    if not pattern or len(pattern) > PATTERN_MAX_LENGTH:
        return None
    try:
        return regex.compile(pattern, regex.IGNORECASE)
    except regex.error as e:
        logger.warning("Invalid Admin Pattern", [
            ("Pattern", pattern[:50]),
            ("Error", str(e)[:100]),
        ])
        return None


def pattern_matches(pattern: str, text: Optional[str]) -> bool:
    """True if the pattern matches anywhere in the scanned prefix of text."""
    if not text:
        return False
    compiled = compile_pattern(str(pattern))
    if compiled is None:
        return False
    try:
        return compiled.search(text[:PATTERN_SCAN_LIMIT], timeout=PATTERN_TIMEOUT_SECONDS) is not None
    except TimeoutError:
        logger.warning("Admin Pattern Timed Out", [
            ("Pattern", compiled.pattern[:50]),
            ("Text Length", str(len(text))),
            ("Budget", f"{PATTERN_TIMEOUT_SECONDS}s"),
        ])
        return False


def first_match(patterns: Iterable[str], text: Optional[str]) -> Optional[int]:
    """
    Index of the first pattern that matches text.

    Returns:
        The index, or None when nothing matches.
    """
    for index, pattern in enumerate(patterns):
        if pattern_matches(pattern, text):
            return index
    return None


__all__ = ["compile_pattern", "pattern_matches", "first_match"]
