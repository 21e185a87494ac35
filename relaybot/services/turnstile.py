"""
RelayBot - Turnstile Verifier
=============================

Validates challenge tokens against Cloudflare Turnstile siteverify.
"""

import asyncio
from typing import Optional

import aiohttp

from relaybot.core.constants import API_TIMEOUT
from relaybot.core.logger import logger


# =============================================================================
# Constants
# =============================================================================

SITEVERIFY_URL = "https://challenges.cloudflare.com/turnstile/v0/siteverify"


# =============================================================================
# Verifier
# =============================================================================

class TurnstileVerifier:
    """
    Checks a challenge token with the external verification API.

    A missing token or secret, a rejected token and a failed request all
    count as "not verified".
    """

    def __init__(self, secret: Optional[str], url: str = SITEVERIFY_URL) -> None:
        self._secret = secret
        self._url = url
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def enabled(self) -> bool:
        return bool(self._secret)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create persistent HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=API_TIMEOUT),
            )
        return self._session

    async def close(self) -> None:
        """Close HTTP session on shutdown."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def verify(self, token: Optional[str]) -> bool:
        """
        Validate a challenge token.

        Args:
            token: Token produced by the challenge widget.

        Returns:
            True only if the verification API answered success=true.
        """
        if not token or not self._secret:
            return False

        try:
            session = await self._get_session()
            async with session.post(
                self._url,
                json={"secret": self._secret, "response": token},
            ) as response:
                data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning("Turnstile Request Failed", [
                ("Error Type", type(e).__name__),
                ("Error", str(e)[:100]),
            ])
            return False

        success = isinstance(data, dict) and data.get("success") is True
        if not success:
            codes = data.get("error-codes", []) if isinstance(data, dict) else []
            logger.debug("Turnstile Rejected Token", [
                ("Codes", ", ".join(codes) or "None"),
            ])
        return success


__all__ = ["TurnstileVerifier", "SITEVERIFY_URL"]
