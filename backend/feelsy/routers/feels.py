"""
Feels API endpoints.

Handles:
- POST "" - Create today's check-in
- GET /today - Today's check-in
- GET /history - Paginated check-in history
- GET /stats - Streak and badge snapshot
- POST /vibe - Send good vibes
- GET /vibes - Received good vibes
- GET /friends - Friends' check-ins for today
"""

import logging

from fastapi import APIRouter, Depends, Query, Request

from feelsy.core.auth import AuthUser, require_auth_from_state
from feelsy.core.constants import HISTORY_DEFAULT_LIMIT, VIBES_DEFAULT_LIMIT
from feelsy.core.rate_limit import limiter
from feelsy.models.feel import CheckIn, CheckInCreate, FeelHistoryResponse, FeelStatsResponse
from feelsy.models.social import (
    FriendFeelsResponse,
    GoodVibe,
    ReceivedVibesResponse,
    SendVibeRequest,
)
from feelsy.models.user import UserIdentity
from feelsy.services.checkin_service import CheckInService
from feelsy.services.social_service import SocialService
from feelsy.services.streak_service import StreakService
from feelsy.services.user_service import UserNotFoundError, UserService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_checkin_service() -> CheckInService:
    return CheckInService()


def get_streak_service() -> StreakService:
    return StreakService()


def get_social_service() -> SocialService:
    return SocialService()


def get_user_service() -> UserService:
    return UserService()


def _resolve_user(user_service: UserService, auth_user: AuthUser) -> UserIdentity:
    profile = user_service.get_user_by_auth_id(auth_user.auth_id)
    if profile is None:
        raise UserNotFoundError(f"No user for auth_id {auth_user.auth_id}")
    return profile


# =============================================================================
# Check-ins
# =============================================================================


@router.post("", response_model=CheckIn, status_code=201)
@limiter.limit("10/minute")
async def create_check_in(
    request: Request,
    check_in: CheckInCreate,
    auth_user: AuthUser = Depends(require_auth_from_state),
    user_service: UserService = Depends(get_user_service),
    checkin_service: CheckInService = Depends(get_checkin_service),
) -> CheckIn:
    """Record today's mood/energy check-in. One per calendar day."""
    profile = _resolve_user(user_service, auth_user)
    return checkin_service.create_check_in(profile.id, check_in)


@router.get("/today", response_model=CheckIn)
@limiter.limit("60/minute")
async def get_today_check_in(
    request: Request,
    auth_user: AuthUser = Depends(require_auth_from_state),
    user_service: UserService = Depends(get_user_service),
    checkin_service: CheckInService = Depends(get_checkin_service),
) -> CheckIn:
    """Get the current user's check-in for today (404 if none yet)."""
    profile = _resolve_user(user_service, auth_user)
    return checkin_service.get_today_check_in(profile.id)


@router.get("/history", response_model=FeelHistoryResponse)
@limiter.limit("60/minute")
async def get_feel_history(
    request: Request,
    # Out-of-range limits are clamped by the service rather than rejected
    limit: int = Query(HISTORY_DEFAULT_LIMIT),
    offset: int = Query(0),
    auth_user: AuthUser = Depends(require_auth_from_state),
    user_service: UserService = Depends(get_user_service),
    checkin_service: CheckInService = Depends(get_checkin_service),
) -> FeelHistoryResponse:
    """Paginated check-in history, newest first."""
    profile = _resolve_user(user_service, auth_user)
    check_ins, total, limit, offset = checkin_service.get_feel_history(profile.id, limit, offset)
    return FeelHistoryResponse(data=check_ins, total=total, limit=limit, offset=offset)


@router.get("/stats", response_model=FeelStatsResponse)
@limiter.limit("60/minute")
async def get_feel_stats(
    request: Request,
    auth_user: AuthUser = Depends(require_auth_from_state),
    user_service: UserService = Depends(get_user_service),
    streak_service: StreakService = Depends(get_streak_service),
) -> FeelStatsResponse:
    """Current streak, longest streak, totals and unlocked badges."""
    profile = _resolve_user(user_service, auth_user)
    return streak_service.get_stats(profile.id)


# =============================================================================
# Social
# =============================================================================


@router.post("/vibe", response_model=GoodVibe, status_code=201)
@limiter.limit("30/minute")
async def send_good_vibe(
    request: Request,
    body: SendVibeRequest,
    auth_user: AuthUser = Depends(require_auth_from_state),
    user_service: UserService = Depends(get_user_service),
    social_service: SocialService = Depends(get_social_service),
) -> GoodVibe:
    """Send good vibes to another user."""
    profile = _resolve_user(user_service, auth_user)
    return social_service.send_good_vibe(
        profile.id, str(body.receiver_id), body.message, body.vibe_type.value
    )


@router.get("/vibes", response_model=ReceivedVibesResponse)
@limiter.limit("60/minute")
async def get_received_vibes(
    request: Request,
    limit: int = Query(VIBES_DEFAULT_LIMIT),
    auth_user: AuthUser = Depends(require_auth_from_state),
    user_service: UserService = Depends(get_user_service),
    social_service: SocialService = Depends(get_social_service),
) -> ReceivedVibesResponse:
    """Good vibes received by the current user, newest first."""
    profile = _resolve_user(user_service, auth_user)
    return ReceivedVibesResponse(data=social_service.get_received_vibes(profile.id, limit))


@router.get("/friends", response_model=FriendFeelsResponse)
@limiter.limit("60/minute")
async def get_friend_feels(
    request: Request,
    auth_user: AuthUser = Depends(require_auth_from_state),
    user_service: UserService = Depends(get_user_service),
    social_service: SocialService = Depends(get_social_service),
) -> FriendFeelsResponse:
    """Today's check-ins from accepted friends."""
    profile = _resolve_user(user_service, auth_user)
    return FriendFeelsResponse(data=social_service.get_friend_feels(profile.id))
