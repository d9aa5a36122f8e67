"""
Daily check-in and streak models.

Covers:
- Check-in create request and stored check-in
- Streak state and the stats snapshot served to clients
- Paginated history
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from feelsy.core.constants import (
    MOOD_EMOJI_MAX_LENGTH,
    NOTE_MAX_LENGTH,
    SCORE_MAX,
    SCORE_MIN,
)

# =============================================================================
# Request Models
# =============================================================================


class CheckInCreate(BaseModel):
    """Create today's check-in. Derived fields are never accepted from clients."""

    model_config = ConfigDict(extra="ignore")

    mood_score: int = Field(..., ge=SCORE_MIN, le=SCORE_MAX)
    energy_score: int = Field(..., ge=SCORE_MIN, le=SCORE_MAX)
    mood_emoji: str = Field("", max_length=MOOD_EMOJI_MAX_LENGTH)
    note: str = Field("", max_length=NOTE_MAX_LENGTH)


# =============================================================================
# Response Models
# =============================================================================


class CheckIn(BaseModel):
    """A stored daily check-in."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    mood_score: int
    energy_score: int
    feel_score: int
    mood_emoji: str = ""
    note: str = ""
    color_hex: str
    check_date: date
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class FeelHistoryResponse(BaseModel):
    """Paginated check-in history, newest check_date first."""

    data: list[CheckIn]
    total: int
    limit: int
    offset: int


class StreakState(BaseModel):
    """Per-user streak counters (one row per user in feel_streaks)."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    current_streak: int = 0
    longest_streak: int = 0
    total_check_ins: int = 0
    last_check_date: Optional[date] = None
    average_score: float = 0.0
    unlocked_badges: list[str] = Field(default_factory=list)


class FeelStatsResponse(BaseModel):
    """Streak snapshot for GET /feels/stats."""

    current_streak: int = 0
    longest_streak: int = 0
    total_check_ins: int = 0
    average_score: float = 0.0
    unlocked_badges: list[str] = Field(default_factory=list)


# =============================================================================
# Exceptions
# =============================================================================


class FeelServiceError(Exception):
    """Base exception for check-in and streak errors."""

    pass


class FeelValidationError(FeelServiceError):
    """Malformed or out-of-range input."""

    pass


class DuplicateCheckInError(FeelServiceError):
    """User already checked in on this calendar date."""

    def __init__(self, user_id: str, check_date: date):
        self.user_id = user_id
        self.check_date = check_date
        super().__init__(f"User {user_id} already checked in on {check_date.isoformat()}")


class CheckInNotFoundError(FeelServiceError):
    """No check-in for the requested day."""

    pass


class BackdatedCheckInError(FeelServiceError):
    """Check-in date precedes the streak's last check-in date."""

    def __init__(self, check_date: date, last_check_date: date):
        self.check_date = check_date
        self.last_check_date = last_check_date
        super().__init__(
            f"Check-in date {check_date.isoformat()} is before last check-in "
            f"{last_check_date.isoformat()}"
        )


class StreakLockTimeoutError(FeelServiceError):
    """Could not acquire the per-user streak lock in time."""

    pass


class FeelStoreError(FeelServiceError):
    """Underlying persistence failure."""

    pass
