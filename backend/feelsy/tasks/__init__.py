"""Background tasks for Feelsy."""

from feelsy.tasks.streak_tasks import rebuild_user_streak, recompute_user_streak, reconcile_streaks

__all__ = ["recompute_user_streak", "rebuild_user_streak", "reconcile_streaks"]
