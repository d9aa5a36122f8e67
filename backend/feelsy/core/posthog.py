"""Server-side product analytics via PostHog.

Events are keyed by the internal users.id. Capture is best effort: every call
is a no-op until init_posthog() enabled the client, and client errors are
logged and dropped.
"""

import logging
from typing import Optional

import posthog as _posthog

from feelsy.core.config import get_settings

logger = logging.getLogger(__name__)

_initialized = False


def init_posthog() -> None:
    """Configure the PostHog client from settings (API lifespan startup)."""
    global _initialized
    settings = get_settings()

    if not (settings.posthog_enabled and settings.posthog_api_key):
        logger.info("PostHog analytics off")
        return

    _posthog.api_key = settings.posthog_api_key
    _posthog.host = settings.posthog_host
    _posthog.debug = settings.debug
    _initialized = True
    logger.info("PostHog analytics on (host=%s)", settings.posthog_host)


def shutdown_posthog() -> None:
    """Flush queued events before the process exits."""
    global _initialized
    if not _initialized:
        return
    _posthog.flush()
    _posthog.shutdown()
    _initialized = False
    logger.info("PostHog flushed and shut down")


def capture(user_id: str, event: str, properties: Optional[dict] = None) -> None:
    """Record `event` (noun_verb, e.g. "good_vibe_sent") for `user_id`."""
    if not _initialized:
        return

    try:
        _posthog.capture(distinct_id=user_id, event=event, properties=dict(properties or {}))
    except Exception as e:
        logger.warning("PostHog capture of %s failed: %s", event, e)
