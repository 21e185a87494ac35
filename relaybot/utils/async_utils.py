"""
RelayBot - Async Utilities
==========================

Best-effort wrappers for outbound calls whose failure must not abort the
update being processed (receipts, notices, card refreshes, backups).

Usage:
    from relaybot.utils.async_utils import safe_async_operation

    await safe_async_operation(
        "Delivery Receipt",
        telegram.send_message(user_id, "✅ Delivered"),
        log_level="debug",
    )
"""

import asyncio
from typing import Any, Coroutine, List, Optional, Tuple

from relaybot.core.errors import ExternalApiError
from relaybot.core.logger import logger


def _failure_details(name: str, error: BaseException) -> List[Tuple[str, str]]:
    """Log rows for a failed call; Bot API errors show method and description."""
    if isinstance(error, ExternalApiError):
        return [
            ("Operation", name),
            ("Method", error.method),
            ("Code", str(error.error_code or "-")),
            ("Description", error.description[:100]),
        ]
    return [
        ("Operation", name),
        ("Error Type", type(error).__name__),
        ("Error", str(error)[:100]),
    ]


def _log_failure(level: str, details: List[Tuple[str, str]]) -> None:
    log = {"debug": logger.debug, "error": logger.error}.get(level, logger.warning)
    log("Best-Effort Call Failed", details)


async def gather_with_logging(
    *operations: Tuple[str, Coroutine[Any, Any, Any]],
    context: Optional[str] = None,
) -> List[Any]:
    """
    Run named calls concurrently; failures are logged and returned as values.

    Args:
        *operations: (name, coroutine) pairs.
        context: Prefixed to every failure log (e.g. "Challenge Passed").
    """
    results = await asyncio.gather(*(coro for _, coro in operations), return_exceptions=True)

    for (name, _), result in zip(operations, results):
        if isinstance(result, Exception):
            details = _failure_details(name, result)
            if context:
                details.insert(0, ("Context", context))
            _log_failure("warning", details)

    return results


async def safe_async_operation(
    name: str,
    coro: Coroutine[Any, Any, Any],
    default: Any = None,
    log_level: str = "warning",
) -> Any:
    """
    Await one call, returning default instead of raising.

    log_level is "debug" for cosmetic calls (receipts), "error" for
    calls whose loss the operators should hear about.
    """
    try:
        return await coro
    except Exception as e:
        _log_failure(log_level, _failure_details(name, e))
        return default


__all__ = [
    "gather_with_logging",
    "safe_async_operation",
]
