"""
Application constants for Feelsy.

Centralizes score bounds, color buckets, badge thresholds and limits used
across services, routers and tasks.
"""

# Check-in scores
SCORE_MIN = 1
SCORE_MAX = 100

# Feel score -> display color (inclusive lower bound, evaluated highest-first)
FEEL_COLOR_BUCKETS = [
    (90, "#22c55e"),  # Amazing
    (75, "#84cc16"),  # Great
    (60, "#eab308"),  # Good
    (45, "#f97316"),  # Okay
    (30, "#ef4444"),  # Not great
    (0, "#8b5cf6"),  # Low
]

# Content length limits
MOOD_EMOJI_MAX_LENGTH = 10
NOTE_MAX_LENGTH = 280
VIBE_MESSAGE_MAX_LENGTH = 100

# Pagination defaults
HISTORY_DEFAULT_LIMIT = 20
HISTORY_MAX_LIMIT = 100
VIBES_DEFAULT_LIMIT = 20
VIBES_MAX_LIMIT = 50

# Badges: unlocked once the counter reaches the threshold, never revoked
STREAK_BADGE_THRESHOLDS = [
    {"badge": "streak_3", "current_streak": 3},
    {"badge": "streak_7", "current_streak": 7},
    {"badge": "streak_14", "current_streak": 14},
    {"badge": "streak_30", "current_streak": 30},
]
TOTAL_BADGE_THRESHOLDS = [
    {"badge": "total_10", "total_check_ins": 10},
    {"badge": "total_50", "total_check_ins": 50},
    {"badge": "total_100", "total_check_ins": 100},
]


# Friendship edge statuses (friend-request workflow lives elsewhere)
FRIEND_STATUS_ACCEPTED = "accepted"
FRIEND_CACHE_TTL = 60  # seconds

# Streak recomputation
STREAK_LOCK_TTL_SECONDS = 30  # lock auto-expires if its holder dies
STREAK_LOCK_WAIT_SECONDS = 5
STREAK_TASK_MAX_RETRIES = 5
STREAK_TASK_RETRY_DELAY_SECONDS = 30

# Reconciliation sweep
RECONCILE_LOOKBACK_DAYS = 2
RECONCILE_BATCH_SIZE = 200
RECONCILE_INTERVAL_SECONDS = 15 * 60
