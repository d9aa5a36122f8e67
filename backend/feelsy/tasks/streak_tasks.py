"""
Celery tasks for streak and badge maintenance.

Handles:
- Applying a single check-in to the user's streak (queued on check-in)
- Full streak rebuild from stored history (out-of-order or lost updates)
- Periodic reconciliation of streaks lagging behind stored check-ins
"""

import logging
from datetime import date, datetime, timedelta, timezone

from feelsy.core.celery_app import celery_app
from feelsy.core.constants import (
    RECONCILE_BATCH_SIZE,
    RECONCILE_LOOKBACK_DAYS,
    STREAK_LOCK_WAIT_SECONDS,
    STREAK_TASK_MAX_RETRIES,
    STREAK_TASK_RETRY_DELAY_SECONDS,
)
from feelsy.core.database import get_supabase
from feelsy.models.feel import BackdatedCheckInError, StreakLockTimeoutError
from feelsy.services.checkin_service import current_check_date
from feelsy.services.streak_service import StreakService

logger = logging.getLogger(__name__)

# Check-ins younger than this still have their own update in flight
RECONCILE_GRACE_MINUTES = 5


@celery_app.task(
    bind=True,
    max_retries=STREAK_TASK_MAX_RETRIES,
    default_retry_delay=STREAK_TASK_RETRY_DELAY_SECONDS,
    acks_late=True,
)
def recompute_user_streak(self, user_id: str, check_date: str) -> dict:
    """
    Apply one check-in to the user's streak and badges.

    Args:
        user_id: Internal user UUID
        check_date: ISO date of the check-in

    Returns:
        Dict with the outcome and the new counters
    """
    try:
        state = StreakService().recompute_for_check_in(user_id, date.fromisoformat(check_date))
    except BackdatedCheckInError as e:
        logger.warning(
            "Out-of-order streak update for user %s (%s); queueing full rebuild",
            user_id,
            e,
        )
        rebuild_user_streak.delay(user_id)
        return {"status": "rejected", "user_id": user_id, "check_date": check_date}
    except StreakLockTimeoutError as e:
        logger.info("Streak lock busy for user %s, retrying", user_id)
        raise self.retry(exc=e, countdown=STREAK_LOCK_WAIT_SECONDS)
    except Exception as e:
        logger.error("Failed to update streak for user %s on %s: %s", user_id, check_date, e)
        raise self.retry(exc=e)

    return {
        "status": "updated",
        "user_id": user_id,
        "check_date": check_date,
        "current_streak": state.current_streak,
        "total_check_ins": state.total_check_ins,
        "unlocked_badges": state.unlocked_badges,
    }


@celery_app.task(
    bind=True,
    max_retries=STREAK_TASK_MAX_RETRIES,
    default_retry_delay=STREAK_TASK_RETRY_DELAY_SECONDS,
    acks_late=True,
)
def rebuild_user_streak(self, user_id: str) -> dict:
    """Recompute the user's streak from their full check-in history."""
    try:
        state = StreakService().rebuild_from_history(user_id)
    except StreakLockTimeoutError as e:
        raise self.retry(exc=e, countdown=STREAK_LOCK_WAIT_SECONDS)
    except Exception as e:
        logger.error("Failed to rebuild streak for user %s: %s", user_id, e)
        raise self.retry(exc=e)

    if state is None:
        return {"status": "empty", "user_id": user_id}

    return {
        "status": "rebuilt",
        "user_id": user_id,
        "current_streak": state.current_streak,
        "total_check_ins": state.total_check_ins,
    }


@celery_app.task
def reconcile_streaks() -> dict:
    """
    Queue rebuilds for users whose streak does not account for their check-ins.

    Runs every RECONCILE_INTERVAL_SECONDS via Celery beat. Scans check-ins
    from the last RECONCILE_LOOKBACK_DAYS days in batches of
    RECONCILE_BATCH_SIZE. A user is rebuilt when their streak row is missing,
    lags their newest check-in, or counts fewer check-ins than are stored;
    covers updates lost before they reached the broker or after their retries.

    Returns:
        Dict with users scanned and rebuilds queued
    """
    supabase = get_supabase()
    since = (current_check_date() - timedelta(days=RECONCILE_LOOKBACK_DAYS)).isoformat()
    grace_cutoff = (
        datetime.now(timezone.utc) - timedelta(minutes=RECONCILE_GRACE_MINUTES)
    ).isoformat()

    newest: dict[str, str] = {}
    offset = 0

    while True:
        result = (
            supabase.table("feel_checks")
            .select("user_id, check_date")
            .gte("check_date", since)
            .lte("created_at", grace_cutoff)
            .is_("deleted_at", "null")
            .order("check_date")
            .range(offset, offset + RECONCILE_BATCH_SIZE - 1)
            .execute()
        )
        rows = result.data or []

        for row in rows:
            # ISO dates compare correctly as strings
            if row["check_date"] > newest.get(row["user_id"], ""):
                newest[row["user_id"]] = row["check_date"]

        if len(rows) < RECONCILE_BATCH_SIZE:
            break
        offset += RECONCILE_BATCH_SIZE

    user_ids = sorted(newest)
    queued = 0

    for start in range(0, len(user_ids), RECONCILE_BATCH_SIZE):
        batch = user_ids[start : start + RECONCILE_BATCH_SIZE]
        result = (
            supabase.table("feel_streaks")
            .select("user_id, last_check_date, total_check_ins")
            .in_("user_id", batch)
            .execute()
        )
        applied = {row["user_id"]: row for row in result.data or []}
        stored = _count_check_ins(supabase, batch, grace_cutoff)

        for user_id in batch:
            row = applied.get(user_id)
            if (
                row is None
                or (row.get("last_check_date") or "") < newest[user_id]
                or (row.get("total_check_ins") or 0) < stored.get(user_id, 0)
            ):
                rebuild_user_streak.delay(user_id)
                queued += 1

    logger.info(
        "Streak reconciliation complete. Scanned: %d users, rebuilds queued: %d",
        len(user_ids),
        queued,
    )
    return {"users_scanned": len(user_ids), "rebuilds_queued": queued}


def _count_check_ins(supabase, user_ids: list[str], created_before: str) -> dict[str, int]:
    """Lifetime non-deleted check-ins per user, ignoring rows inside the grace window."""
    counts: dict[str, int] = {}
    offset = 0

    while True:
        result = (
            supabase.table("feel_checks")
            .select("user_id")
            .in_("user_id", user_ids)
            .lte("created_at", created_before)
            .is_("deleted_at", "null")
            .order("user_id")
            .range(offset, offset + RECONCILE_BATCH_SIZE - 1)
            .execute()
        )
        rows = result.data or []

        for row in rows:
            counts[row["user_id"]] = counts.get(row["user_id"], 0) + 1

        if len(rows) < RECONCILE_BATCH_SIZE:
            break
        offset += RECONCILE_BATCH_SIZE

    return counts
