"""
RelayBot - Verification API Models
==================================

Request and response models for challenge token submission.
"""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SubmitTokenRequest(BaseModel):
    """Token posted by the challenge page."""

    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(..., min_length=1, max_length=4096, description="Challenge widget token")
    user_id: str = Field(..., alias="userId", description="Telegram user ID from the page link")

    @field_validator("user_id", mode="before")
    @classmethod
    def coerce_user_id(cls, v: Union[str, int]) -> str:
        """Accept numeric or string IDs."""
        if isinstance(v, bool) or not isinstance(v, (str, int)):
            raise ValueError("userId must be a string or integer")
        value = str(v).strip()
        if not value:
            raise ValueError("userId is empty")
        return value


class SubmitTokenResponse(BaseModel):
    """Result of a token submission."""

    success: bool
    error: Optional[str] = None


__all__ = ["SubmitTokenRequest", "SubmitTokenResponse"]
