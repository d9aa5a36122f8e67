"""
Badge rule set.

Badges are unlocked when the current streak or lifetime check-in count
reaches a threshold (see STREAK_BADGE_THRESHOLDS / TOTAL_BADGE_THRESHOLDS)
and are never revoked.
"""

from typing import Iterable

from feelsy.core.constants import STREAK_BADGE_THRESHOLDS, TOTAL_BADGE_THRESHOLDS


def newly_unlocked_badges(
    current_streak: int, total_check_ins: int, existing: Iterable[str]
) -> list[str]:
    """Return badges whose thresholds are met but are not in existing, in rule order."""
    owned = set(existing)
    unlocked = []

    for threshold in STREAK_BADGE_THRESHOLDS:
        if current_streak >= threshold["current_streak"] and threshold["badge"] not in owned:
            unlocked.append(threshold["badge"])

    for threshold in TOTAL_BADGE_THRESHOLDS:
        if total_check_ins >= threshold["total_check_ins"] and threshold["badge"] not in owned:
            unlocked.append(threshold["badge"])

    return unlocked


def evaluate_badges(
    current_streak: int, total_check_ins: int, existing: Iterable[str]
) -> list[str]:
    """Union existing badges with every satisfied threshold (sorted, deduplicated)."""
    owned = set(existing)
    owned.update(newly_unlocked_badges(current_streak, total_check_ins, owned))
    return sorted(owned)
