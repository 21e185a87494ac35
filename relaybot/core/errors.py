"""
RelayBot - Error Types
======================

Domain exceptions shared by the store, the clients and the services.

DESIGN:
    Each kind maps to one failure family so callers can decide between
    self-healing, reporting to the affected party, or log-and-swallow.
"""

from typing import Optional


class RelayError(Exception):
    """Base class for all relay bot errors."""

    pass


class ExternalApiError(RelayError):
    """
    Raised when an outward platform or verification call is rejected.

    Attributes:
        method: API method that failed (e.g. "copyMessage").
        description: Error text returned by the platform.
        error_code: Numeric error code when the platform returned one.
    """

    # Substrings Telegram uses when a forum topic is gone
    THREAD_MISSING_MARKERS = (
        "message thread not found",
        "topic_deleted",
        "topic_id_invalid",
    )

    def __init__(
        self,
        method: str,
        description: str,
        error_code: Optional[int] = None,
    ) -> None:
        self.method = method
        self.description = description
        self.error_code = error_code
        super().__init__(f"{method} failed: {description}")

    @property
    def thread_missing(self) -> bool:
        """True when the failure means the destination thread no longer exists."""
        text = self.description.lower()
        return any(marker in text for marker in self.THREAD_MISSING_MARKERS)


class ValidationError(RelayError):
    """Raised for malformed input: bad tokens, unparsable bodies, bad values."""

    pass


class NotFoundError(RelayError):
    """Raised when a referenced user or thread does not exist."""

    pass


class StoreError(RelayError):
    """Raised when a persistence call fails."""

    pass


__all__ = [
    "RelayError",
    "ExternalApiError",
    "ValidationError",
    "NotFoundError",
    "StoreError",
]
