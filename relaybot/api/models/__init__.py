"""
RelayBot - API Models
=====================

Pydantic models for request/response validation.
"""

from relaybot.api.models.verification import SubmitTokenRequest, SubmitTokenResponse

__all__ = ["SubmitTokenRequest", "SubmitTokenResponse"]
