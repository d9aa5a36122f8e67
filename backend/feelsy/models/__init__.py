"""Pydantic models for Feelsy API."""

from feelsy.models.feel import (
    BackdatedCheckInError,
    CheckIn,
    CheckInCreate,
    CheckInNotFoundError,
    DuplicateCheckInError,
    FeelHistoryResponse,
    FeelServiceError,
    FeelStatsResponse,
    FeelStoreError,
    FeelValidationError,
    StreakLockTimeoutError,
    StreakState,
)
from feelsy.models.social import (
    FriendFeel,
    FriendFeelsResponse,
    GoodVibe,
    InvalidVibeTypeError,
    ReceivedVibe,
    ReceivedVibesResponse,
    ReceiverNotFoundError,
    SelfVibeError,
    SendVibeRequest,
    SocialError,
    VibeType,
)
from feelsy.models.user import PublicIdentity, UserIdentity

__all__ = [
    # User models
    "PublicIdentity",
    "UserIdentity",
    # Check-in & streak models
    "CheckIn",
    "CheckInCreate",
    "FeelHistoryResponse",
    "FeelStatsResponse",
    "StreakState",
    "BackdatedCheckInError",
    "CheckInNotFoundError",
    "DuplicateCheckInError",
    "FeelServiceError",
    "FeelStoreError",
    "FeelValidationError",
    "StreakLockTimeoutError",
    # Social models
    "FriendFeel",
    "FriendFeelsResponse",
    "GoodVibe",
    "ReceivedVibe",
    "ReceivedVibesResponse",
    "SendVibeRequest",
    "VibeType",
    "InvalidVibeTypeError",
    "ReceiverNotFoundError",
    "SelfVibeError",
    "SocialError",
]
