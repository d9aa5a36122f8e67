"""
Daily check-in streak service.

Maintains one StreakState row per user (feel_streaks): current and longest
streak, lifetime check-in count, average feel score and unlocked badges.

advance_streak() is the pure per-check-in transition; rebuild_streak() folds
it over a full history. StreakService persists the result while holding a
per-user Redis lock, so concurrent recomputations for one user are applied
one at a time while different users never wait on each other.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Iterable, Iterator, Optional

from redis import Redis
from redis.exceptions import LockError
from supabase import Client

from feelsy.core.constants import STREAK_LOCK_TTL_SECONDS, STREAK_LOCK_WAIT_SECONDS
from feelsy.core.database import get_supabase
from feelsy.core.redis import FeelKeys, get_sync_redis
from feelsy.models.feel import (
    BackdatedCheckInError,
    FeelStatsResponse,
    StreakLockTimeoutError,
    StreakState,
)
from feelsy.services.badge_service import evaluate_badges

logger = logging.getLogger(__name__)

HISTORY_PAGE_SIZE = 1000  # PostgREST default max rows per request


def mean_feel_score(scores: list[int]) -> float:
    """Exact arithmetic mean of stored feel scores (0.0 for no history)."""
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


def advance_streak(
    state: Optional[StreakState],
    user_id: str,
    check_date: date,
    average_score: float,
) -> StreakState:
    """
    Apply one check-in to a streak state and return the new state.

    - No prior state: streak of 1.
    - Same day as last check-in: counters unchanged, average refreshed.
    - Next day: streak continues.
    - Gap of two or more days: streak resets to 1.
    - Earlier than last check-in: rejected, state untouched.

    Badges are re-evaluated on every call and only ever grow.

    Raises:
        BackdatedCheckInError: check_date is before state.last_check_date
    """
    if state is None or state.last_check_date is None:
        total = 1 if state is None else state.total_check_ins + 1
        longest = 1 if state is None else max(state.longest_streak, 1)
        existing = [] if state is None else state.unlocked_badges
        return StreakState(
            user_id=user_id,
            current_streak=1,
            longest_streak=longest,
            total_check_ins=total,
            last_check_date=check_date,
            average_score=average_score,
            unlocked_badges=evaluate_badges(1, total, existing),
        )

    days_since = (check_date - state.last_check_date).days
    if days_since < 0:
        raise BackdatedCheckInError(check_date, state.last_check_date)

    current = state.current_streak
    total = state.total_check_ins
    if days_since == 1:
        current += 1
    elif days_since > 1:
        current = 1
    if days_since >= 1:
        total += 1

    return state.model_copy(
        update={
            "current_streak": current,
            "longest_streak": max(state.longest_streak, current),
            "total_check_ins": total,
            "last_check_date": check_date,
            "average_score": average_score,
            "unlocked_badges": evaluate_badges(current, total, state.unlocked_badges),
        }
    )


def rebuild_streak(
    user_id: str,
    check_dates: Iterable[date],
    average_score: float,
    previous: Optional[StreakState] = None,
) -> Optional[StreakState]:
    """
    Recompute a streak from a user's full check-in history.

    Badges and longest streak from the previous state are kept, since neither
    may ever shrink. Returns None for an empty history.
    """
    state: Optional[StreakState] = None
    for check_date in sorted(set(check_dates)):
        state = advance_streak(state, user_id, check_date, average_score)

    if state is None or previous is None:
        return state

    return state.model_copy(
        update={
            "longest_streak": max(state.longest_streak, previous.longest_streak),
            "unlocked_badges": sorted(set(state.unlocked_badges) | set(previous.unlocked_badges)),
        }
    )


class StreakService:
    """Service for daily streaks, badge unlocks and the stats snapshot."""

    def __init__(self, supabase: Optional[Client] = None, redis: Optional[Redis] = None):
        self._supabase = supabase
        self._redis = redis

    @property
    def supabase(self) -> Client:
        if self._supabase is None:
            self._supabase = get_supabase()
        return self._supabase

    @property
    def redis(self) -> Redis:
        if self._redis is None:
            self._redis = get_sync_redis()
        return self._redis

    # =========================================================================
    # Reads
    # =========================================================================

    def get_streak_state(self, user_id: str) -> Optional[StreakState]:
        """Fetch the stored streak row, or None before the first check-in."""
        result = self.supabase.table("feel_streaks").select("*").eq("user_id", user_id).execute()

        if not result.data:
            return None

        row = result.data[0]
        return StreakState(
            user_id=row["user_id"],
            current_streak=row.get("current_streak") or 0,
            longest_streak=row.get("longest_streak") or 0,
            total_check_ins=row.get("total_check_ins") or 0,
            last_check_date=row.get("last_check_date"),
            average_score=row.get("average_score") or 0.0,
            unlocked_badges=row.get("unlocked_badges") or [],
        )

    def get_stats(self, user_id: str) -> FeelStatsResponse:
        """Streak snapshot; zeros and no badges before the first check-in."""
        state = self.get_streak_state(user_id)
        if state is None:
            return FeelStatsResponse()

        return FeelStatsResponse(
            current_streak=state.current_streak,
            longest_streak=state.longest_streak,
            total_check_ins=state.total_check_ins,
            average_score=state.average_score,
            unlocked_badges=sorted(state.unlocked_badges),
        )

    # =========================================================================
    # Writes (serialized per user)
    # =========================================================================

    def recompute_for_check_in(self, user_id: str, check_date: date) -> StreakState:
        """
        Apply a new check-in to the user's streak.

        Safe to repeat for the same date: a replay lands on the same-day
        branch and only refreshes the average. When the stored history holds
        check-ins the state never counted (an earlier update was lost), the
        streak is folded again from that history instead.

        Raises:
            StreakLockTimeoutError: Another writer holds the user's lock
            BackdatedCheckInError: check_date precedes the stored last check-in
        """
        with self._user_lock(user_id):
            state = self.get_streak_state(user_id)
            history = self._load_history(user_id)
            average = mean_feel_score([row["feel_score"] for row in history])
            new_state = advance_streak(state, user_id, check_date, average)

            check_dates = {date.fromisoformat(row["check_date"]) for row in history}
            if new_state.total_check_ins < len(check_dates):
                logger.warning(
                    "Streak for user %s counted %d of %d check-ins; rebuilding from history",
                    user_id,
                    new_state.total_check_ins,
                    len(check_dates),
                )
                new_state = rebuild_streak(user_id, check_dates, average, state)

            self._save_streak_state(new_state)

        logger.info(
            "Streak updated for user %s: current=%d longest=%d total=%d",
            user_id,
            new_state.current_streak,
            new_state.longest_streak,
            new_state.total_check_ins,
        )
        return new_state

    def rebuild_from_history(self, user_id: str) -> Optional[StreakState]:
        """
        Recompute the user's streak from every stored check-in.

        Used to repair out-of-order or lost updates. Returns None (and writes
        nothing) when the user has no check-ins.
        """
        with self._user_lock(user_id):
            previous = self.get_streak_state(user_id)
            history = self._load_history(user_id)
            rebuilt = rebuild_streak(
                user_id,
                [date.fromisoformat(row["check_date"]) for row in history],
                mean_feel_score([row["feel_score"] for row in history]),
                previous,
            )
            if rebuilt is None:
                return None
            self._save_streak_state(rebuilt)

        logger.info(
            "Streak rebuilt for user %s from %d check-ins: current=%d total=%d",
            user_id,
            len(history),
            rebuilt.current_streak,
            rebuilt.total_check_ins,
        )
        return rebuilt

    # =========================================================================
    # Helpers
    # =========================================================================

    @contextmanager
    def _user_lock(self, user_id: str) -> Iterator[None]:
        """Hold the per-user streak lock for the duration of the block."""
        lock = self.redis.lock(
            FeelKeys.streak_lock(user_id),
            timeout=STREAK_LOCK_TTL_SECONDS,
            blocking_timeout=STREAK_LOCK_WAIT_SECONDS,
        )
        if not lock.acquire():
            raise StreakLockTimeoutError(f"Timed out waiting for streak lock of user {user_id}")
        try:
            yield
        finally:
            try:
                lock.release()
            except LockError:
                logger.warning("Streak lock for user %s expired before release", user_id)

    def _load_history(self, user_id: str) -> list[dict]:
        """All non-deleted check-ins (check_date, feel_score) for a user, paged."""
        rows: list[dict] = []
        offset = 0

        while True:
            result = (
                self.supabase.table("feel_checks")
                .select("check_date, feel_score")
                .eq("user_id", user_id)
                .is_("deleted_at", "null")
                .order("check_date")
                .range(offset, offset + HISTORY_PAGE_SIZE - 1)
                .execute()
            )
            page = result.data or []
            rows.extend(page)
            if len(page) < HISTORY_PAGE_SIZE:
                break
            offset += HISTORY_PAGE_SIZE

        return rows

    def _save_streak_state(self, state: StreakState) -> None:
        """Upsert the streak row (feel_streaks.user_id is unique)."""
        self.supabase.table("feel_streaks").upsert(
            {
                "user_id": state.user_id,
                "current_streak": state.current_streak,
                "longest_streak": state.longest_streak,
                "total_check_ins": state.total_check_ins,
                "last_check_date": (
                    state.last_check_date.isoformat() if state.last_check_date else None
                ),
                "average_score": state.average_score,
                "unlocked_badges": sorted(state.unlocked_badges),
                "updated_at": datetime.now(timezone.utc).isoformat(),
            },
            on_conflict="user_id",
        ).execute()
