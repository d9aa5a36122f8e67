"""Business logic services for Feelsy API."""

from feelsy.services.checkin_service import CheckInService
from feelsy.services.social_service import SocialService
from feelsy.services.streak_service import StreakService
from feelsy.services.user_service import UserNotFoundError, UserService, UserServiceError

__all__ = [
    "CheckInService",
    "SocialService",
    "StreakService",
    "UserService",
    "UserServiceError",
    "UserNotFoundError",
]
