"""
RelayBot - Webhook Router
=========================

Receives Telegram updates.

DESIGN:
    The update is acknowledged immediately and processed as a background
    task, so Telegram never waits on outbound API calls. Processing errors
    are logged, never returned to Telegram.
"""

import json
from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, Depends, Request

from relaybot.api.dependencies import get_bot
from relaybot.api.errors import ErrorCode, error_response
from relaybot.core.logger import logger
from relaybot.utils.async_utils import safe_async_operation


router = APIRouter(tags=["Webhook"])


async def process_update(bot: Any, update: Dict[str, Any]) -> None:
    """Run one update through the bot with error logging."""
    await safe_async_operation(
        f"Process Update {update.get('update_id', '?')}",
        bot.handle_update(update),
        log_level="error",
    )


@router.post("/")
async def receive_update(
    request: Request,
    background_tasks: BackgroundTasks,
    bot: Any = Depends(get_bot),
):
    """Accept an update and schedule its processing."""
    try:
        update = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("Webhook Body Not JSON", [
            ("Client", request.client.host if request.client else "unknown"),
        ])
        return error_response(ErrorCode.VALIDATION_INVALID_FORMAT)

    if not isinstance(update, dict):
        return error_response(ErrorCode.VALIDATION_INVALID_FORMAT)

    background_tasks.add_task(process_update, bot, update)
    return {"ok": True}


__all__ = ["router", "process_update"]
