"""
Feel score calculation.

Pure functions mapping (mood, energy) to the composite feel score and its
display color. No I/O.
"""

from feelsy.core.constants import FEEL_COLOR_BUCKETS, SCORE_MAX, SCORE_MIN
from feelsy.models.feel import FeelValidationError


def _validate_score(name: str, value: int) -> None:
    # bool is an int subclass; True/False are not scores
    if isinstance(value, bool) or not isinstance(value, int):
        raise FeelValidationError(f"{name} must be an integer")
    if not SCORE_MIN <= value <= SCORE_MAX:
        raise FeelValidationError(f"{name} must be between {SCORE_MIN} and {SCORE_MAX}")


def calculate_feel_score(mood_score: int, energy_score: int) -> int:
    """
    Combine mood and energy into a feel score.

    feel_score = floor((mood + energy) / 2), always within [1, 100].

    Raises:
        FeelValidationError: If either input is outside [1, 100]
    """
    _validate_score("mood_score", mood_score)
    _validate_score("energy_score", energy_score)
    return (mood_score + energy_score) // 2


def get_color_hex(feel_score: int) -> str:
    """Map a feel score to its display color (highest matching bucket wins)."""
    for lower_bound, color in FEEL_COLOR_BUCKETS:
        if feel_score >= lower_bound:
            return color
    return FEEL_COLOR_BUCKETS[-1][1]
