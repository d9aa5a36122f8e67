"""
Social models: good vibes and the friend feed.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from feelsy.core.constants import VIBE_MESSAGE_MAX_LENGTH
from feelsy.models.feel import FeelValidationError
from feelsy.models.user import PublicIdentity

# ===========================================
# Enums
# ===========================================


class VibeType(str, Enum):
    """Closed set of good-vibe kinds."""

    HUG = "hug"
    HIGH_FIVE = "high-five"
    SUNSHINE = "sunshine"
    HEART = "heart"
    STAR = "star"


# ===========================================
# Request Models
# ===========================================


class SendVibeRequest(BaseModel):
    """Send good vibes to another user."""

    receiver_id: UUID
    message: str = Field("", max_length=VIBE_MESSAGE_MAX_LENGTH)
    vibe_type: VibeType


# ===========================================
# Response Models
# ===========================================


class GoodVibe(BaseModel):
    """A stored good vibe."""

    id: str
    sender_id: str
    receiver_id: str
    message: str = ""
    vibe_type: VibeType
    created_at: datetime


class ReceivedVibe(GoodVibe):
    """A vibe in the receiver's inbox, with the sender's public identity."""

    sender: Optional[PublicIdentity] = None


class ReceivedVibesResponse(BaseModel):
    data: list[ReceivedVibe]


class FriendFeel(BaseModel):
    """A friend's check-in for today."""

    user_id: str
    email: str
    feel_score: int
    mood_emoji: str = ""
    color_hex: str
    check_date: date


class FriendFeelsResponse(BaseModel):
    data: list[FriendFeel]


# ===========================================
# Exception Classes
# ===========================================


class SocialError(Exception):
    """Base exception for social errors."""

    pass


class SelfVibeError(SocialError):
    """Cannot send vibes to yourself."""

    pass


class ReceiverNotFoundError(SocialError):
    """Vibe receiver does not exist or has been deleted."""

    pass


class InvalidVibeTypeError(FeelValidationError):
    """Vibe type outside the closed set."""

    def __init__(self, vibe_type: str):
        self.vibe_type = vibe_type
        super().__init__(f"Invalid vibe type: {vibe_type!r}")
