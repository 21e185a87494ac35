"""
RelayBot - Verification Router
==============================

Public endpoints for the external challenge: the page and token submission.
"""

import json
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse
from pydantic import ValidationError as PydanticValidationError

from relaybot.api.dependencies import get_bot
from relaybot.api.models.verification import SubmitTokenRequest, SubmitTokenResponse
from relaybot.api.templates import render_challenge_page
from relaybot.core.errors import NotFoundError
from relaybot.core.logger import logger


router = APIRouter(tags=["Verification"])


def _submit_result(status_code: int, error: Optional[str] = None) -> JSONResponse:
    body = SubmitTokenResponse(success=error is None, error=error)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@router.get("/verify")
async def verification_page(
    user_id: Optional[str] = None,
    bot: Any = Depends(get_bot),
):
    """Serve the challenge page for a user."""
    site_key = bot.config.turnstile_site_key
    if not user_id or not site_key:
        return PlainTextResponse("Missing Config", status_code=400)
    return HTMLResponse(render_challenge_page(site_key, user_id))


@router.post("/submit_token")
async def submit_token(request: Request, bot: Any = Depends(get_bot)):
    """
    Validate a challenge token and advance the user to the Q&A stage.

    Returns {success, error?}: 400 on a bad body or rejected token,
    404 for a user who never contacted the bot.
    """
    try:
        payload = SubmitTokenRequest.model_validate(await request.json())
    except (json.JSONDecodeError, UnicodeDecodeError, PydanticValidationError):
        return _submit_result(400, "Invalid request")

    if not await bot.verifier.verify(payload.token):
        logger.tree("Challenge Rejected", [
            ("User ID", payload.user_id),
        ], emoji="⛔")
        return _submit_result(400, "Invalid Token")

    try:
        advanced = await bot.verification.complete_challenge(payload.user_id)
    except NotFoundError:
        return _submit_result(404, "Unknown user")

    logger.tree("Challenge Passed", [
        ("User ID", payload.user_id),
        ("Advanced", str(advanced)),
    ], emoji="🛡️")
    return _submit_result(200)


__all__ = ["router"]
