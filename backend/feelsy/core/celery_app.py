"""
Celery application configuration for Feelsy.

Handles background work for:
- Streak/badge recomputation after each check-in
- Full streak rebuilds from check-in history
- Periodic reconciliation of streaks that lag behind stored check-ins
"""

from celery import Celery
from celery.signals import setup_logging as celery_setup_logging

from feelsy.core.config import get_settings
from feelsy.core.constants import RECONCILE_INTERVAL_SECONDS

settings = get_settings()

celery_app = Celery(
    "feelsy",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "feelsy.tasks.streak_tasks",
    ],
)

celery_app.conf.update(
    # Task serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # Timezone
    timezone="UTC",
    enable_utc=True,
    # Task execution
    task_track_started=True,
    task_time_limit=120,
    task_soft_time_limit=90,
    # At-least-once delivery: ack after the task body runs, re-deliver if the worker dies
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # Fail fast when the broker is down so the API request is not held up
    task_publish_retry_policy={
        "max_retries": 2,
        "interval_start": 0,
        "interval_step": 0.5,
        "interval_max": 1,
    },
    # Result backend
    result_expires=3600,
    # Worker
    worker_prefetch_multiplier=1,
    worker_concurrency=4,
    # Beat schedule for periodic tasks
    beat_schedule={
        "reconcile-streaks": {
            "task": "feelsy.tasks.streak_tasks.reconcile_streaks",
            "schedule": float(RECONCILE_INTERVAL_SECONDS),
        },
    },
)


@celery_setup_logging.connect
def _configure_worker_logging(**kwargs) -> None:
    """Use the app's logging setup in workers instead of Celery's default."""
    from feelsy.core.logging_config import setup_logging

    setup_logging()
