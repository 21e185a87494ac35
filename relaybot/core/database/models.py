"""
RelayBot - Database Type Definitions
====================================

TypedDict definitions for database records.
"""

from typing import Optional, TypedDict


class ProfileSnapshot(TypedDict, total=False):
    """Denormalized identity captured when the user's thread is created."""
    name: str
    username: Optional[str]
    first_message_timestamp: Optional[int]


class UserRecord(TypedDict):
    """Type for user records returned from database."""
    user_id: str
    state: str
    is_blocked: bool
    block_count: int
    first_message_sent: bool
    thread_id: Optional[str]
    profile: Optional[ProfileSnapshot]


class CachedMessageRecord(TypedDict):
    """Type for cached message text records."""
    user_id: str
    message_id: str
    text: Optional[str]
    date: Optional[int]


class AdminCaptureRecord(TypedDict):
    """Type for pending admin input capture."""
    admin_id: str
    action: str
    target_key: str
    created_at: float
