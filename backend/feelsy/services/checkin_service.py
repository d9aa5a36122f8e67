"""
Daily check-in service.

Handles:
- Creating the caller's check-in for today (one per calendar day)
- Today's check-in lookup
- Paginated history

The HTTP request only writes the check-in row. Streak and badge updates run
in the streak_tasks worker, queued after the insert succeeds.
"""

import logging
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from postgrest.exceptions import APIError
from supabase import Client

from feelsy.core.config import get_settings
from feelsy.core.constants import (
    HISTORY_DEFAULT_LIMIT,
    HISTORY_MAX_LIMIT,
    MOOD_EMOJI_MAX_LENGTH,
    NOTE_MAX_LENGTH,
)
from feelsy.core.database import get_supabase
from feelsy.core.posthog import capture
from feelsy.models.feel import (
    CheckIn,
    CheckInCreate,
    CheckInNotFoundError,
    DuplicateCheckInError,
    FeelStoreError,
    FeelValidationError,
)
from feelsy.services.score_service import calculate_feel_score, get_color_hex

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


def today_in_timezone(tz_name: str, now: Optional[datetime] = None) -> date:
    """Calendar date of `now` (default: current UTC instant) in the given IANA zone."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(ZoneInfo(tz_name)).date()


def current_check_date(now: Optional[datetime] = None) -> date:
    """Today's date in the configured check-in timezone."""
    return today_in_timezone(get_settings().checkin_timezone, now)


def _schedule_streak_update(user_id: str, check_date: date) -> None:
    """Queue the streak recomputation. Never fails the calling request."""
    try:
        from feelsy.tasks.streak_tasks import recompute_user_streak

        recompute_user_streak.apply_async(
            args=[user_id, check_date.isoformat()],
            task_id=f"streak-{user_id}-{check_date.isoformat()}",
        )
        logger.info("Queued streak update for user %s on %s", user_id, check_date)
    except Exception as e:
        # The reconcile sweep picks up check-ins whose update was never queued
        logger.warning("Failed to queue streak update for user %s: %s", user_id, e)


class CheckInService:
    """Service for daily check-ins."""

    def __init__(self, supabase: Optional[Client] = None):
        self._supabase = supabase

    @property
    def supabase(self) -> Client:
        if self._supabase is None:
            self._supabase = get_supabase()
        return self._supabase

    def create_check_in(self, user_id: str, request: CheckInCreate) -> CheckIn:
        """
        Record today's check-in for the user.

        Derives feel_score and color_hex, inserts the row, then queues the
        streak update.

        Raises:
            FeelValidationError: Scores or text fields out of range
            DuplicateCheckInError: User already checked in today
            FeelStoreError: Insert failed for any other reason
        """
        feel_score = calculate_feel_score(request.mood_score, request.energy_score)
        if len(request.mood_emoji) > MOOD_EMOJI_MAX_LENGTH:
            raise FeelValidationError(
                f"mood_emoji must be at most {MOOD_EMOJI_MAX_LENGTH} characters"
            )
        if len(request.note) > NOTE_MAX_LENGTH:
            raise FeelValidationError(f"note must be at most {NOTE_MAX_LENGTH} characters")

        check_date = current_check_date()

        if self._find_check_in(user_id, check_date) is not None:
            raise DuplicateCheckInError(user_id, check_date)

        row = {
            "user_id": user_id,
            "mood_score": request.mood_score,
            "energy_score": request.energy_score,
            "feel_score": feel_score,
            "mood_emoji": request.mood_emoji,
            "note": request.note,
            "color_hex": get_color_hex(feel_score),
            "check_date": check_date.isoformat(),
        }

        try:
            result = self.supabase.table("feel_checks").insert(row).execute()
        except APIError as e:
            # The partial unique index catches a concurrent insert that passed the pre-check
            if e.code == UNIQUE_VIOLATION:
                raise DuplicateCheckInError(user_id, check_date) from e
            raise FeelStoreError(f"Failed to store check-in: {e.message}") from e

        if not result.data:
            raise FeelStoreError("Check-in insert returned no row")

        check_in = CheckIn(**result.data[0])
        logger.info("Check-in %s created for user %s on %s", check_in.id, user_id, check_date)

        _schedule_streak_update(user_id, check_date)
        capture(
            user_id,
            "feel_check_created",
            {"feel_score": feel_score, "check_date": check_date.isoformat()},
        )

        return check_in

    def get_today_check_in(self, user_id: str) -> CheckIn:
        """
        Get the caller's check-in for today.

        Raises:
            CheckInNotFoundError: No check-in yet today
        """
        check_date = current_check_date()
        check_in = self._find_check_in(user_id, check_date)
        if check_in is None:
            raise CheckInNotFoundError(f"No check-in for {check_date.isoformat()}")
        return check_in

    def get_feel_history(
        self, user_id: str, limit: int = HISTORY_DEFAULT_LIMIT, offset: int = 0
    ) -> tuple[list[CheckIn], int, int, int]:
        """
        Page through the user's check-ins, newest check_date first.

        limit is clamped to [1, HISTORY_MAX_LIMIT] and offset to >= 0.

        Returns:
            (check_ins, total, limit, offset) with the effective limit and offset
        """
        limit = max(1, min(limit, HISTORY_MAX_LIMIT))
        offset = max(0, offset)

        result = (
            self.supabase.table("feel_checks")
            .select("*", count="exact")
            .eq("user_id", user_id)
            .is_("deleted_at", "null")
            .order("check_date", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )

        check_ins = [CheckIn(**row) for row in result.data or []]
        total = result.count if result.count is not None else len(check_ins)
        return check_ins, total, limit, offset

    def _find_check_in(self, user_id: str, check_date: date) -> Optional[CheckIn]:
        result = (
            self.supabase.table("feel_checks")
            .select("*")
            .eq("user_id", user_id)
            .eq("check_date", check_date.isoformat())
            .is_("deleted_at", "null")
            .execute()
        )
        if not result.data:
            return None
        return CheckIn(**result.data[0])
