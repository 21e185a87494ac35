"""
RelayBot - API Error System
===========================

Error codes and the JSON envelope used by the HTTP surface.

Envelope:
    {"success": false, "error_code": "...", "message": "...", "details": null}

The challenge endpoints answer with their own {success, error} body, which
the challenge page reads; everything else uses this envelope.
"""

from enum import Enum
from typing import Any, Dict, NamedTuple, Optional

from fastapi import HTTPException
from fastapi.responses import JSONResponse
from fastapi import status

HTTP_400_BAD_REQUEST = status.HTTP_400_BAD_REQUEST
HTTP_500_INTERNAL_SERVER_ERROR = status.HTTP_500_INTERNAL_SERVER_ERROR
HTTP_503_SERVICE_UNAVAILABLE = status.HTTP_503_SERVICE_UNAVAILABLE


class ErrorCode(str, Enum):
    """Machine-readable error codes (CATEGORY_SPECIFIC_ERROR)."""

    BOT_NOT_INITIALIZED = "BOT_NOT_INITIALIZED"
    VALIDATION_INVALID_FORMAT = "VALIDATION_INVALID_FORMAT"
    SERVER_ERROR = "SERVER_ERROR"
    SERVER_DATABASE_ERROR = "SERVER_DATABASE_ERROR"


class _ErrorInfo(NamedTuple):
    status_code: int
    message: str


ERRORS: Dict[ErrorCode, _ErrorInfo] = {
    ErrorCode.BOT_NOT_INITIALIZED: _ErrorInfo(HTTP_503_SERVICE_UNAVAILABLE, "Bot is not initialized"),
    ErrorCode.VALIDATION_INVALID_FORMAT: _ErrorInfo(HTTP_400_BAD_REQUEST, "Invalid data format"),
    ErrorCode.SERVER_ERROR: _ErrorInfo(HTTP_500_INTERNAL_SERVER_ERROR, "An internal server error occurred"),
    ErrorCode.SERVER_DATABASE_ERROR: _ErrorInfo(HTTP_500_INTERNAL_SERVER_ERROR, "A database error occurred"),
}


def _envelope(code: ErrorCode, message: Optional[str], details: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "success": False,
        "error_code": code.value,
        "message": message or ERRORS[code].message,
        "details": details,
    }


class APIError(HTTPException):
    """
    HTTPException carrying an ErrorCode; rendered by the app's handler.

    Usage:
        raise APIError(ErrorCode.BOT_NOT_INITIALIZED)
    """

    def __init__(
        self,
        code: ErrorCode,
        status_code: Optional[int] = None,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.error_code = code
        self.error_message = message or ERRORS[code].message
        self.error_details = details
        super().__init__(
            status_code=status_code or ERRORS[code].status_code,
            detail=_envelope(code, message, details),
        )


def error_response(
    code: ErrorCode,
    status_code: Optional[int] = None,
    message: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """Build an error envelope response without raising."""
    return JSONResponse(
        status_code=status_code or ERRORS[code].status_code,
        content=_envelope(code, message, details),
    )


__all__ = [
    "ErrorCode",
    "ERRORS",
    "APIError",
    "error_response",
]
