"""
Pathway Progression Formulas

Purpose
-------
Pure calculation functions behind the progression engine: point awards,
streak bonus, streak continuity, level resolution and the legacy points
config migration.

Design Notes
------------
- No I/O, no logging, no config lookups: every input is a parameter
- Level lists are plain mappings with ``level``, ``min_points`` and ``title``
  keys so they work on ORM rows converted by services as well as test data
- Level resolution never assumes the list is sorted or gap-free
"""

from __future__ import annotations

import math
from datetime import date, datetime, timezone
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from .constants import DIFFICULTIES, FALLBACK_LEVEL, PER_ANSWER_SOURCES

# ============================================================================
# ROUNDING
# ============================================================================


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer, halves away from zero for positive values.

    Python's round() uses banker's rounding (round(2.5) == 2); awards and
    percentages round 2.5 up to 3.
    """
    return int(math.floor(value + 0.5))


# ============================================================================
# POINT AWARDS
# ============================================================================


def calculate_award_points(source: str, rate: int, correct_answers: int = 0) -> int:
    """
    Base award before any bonus.

    Section reads are flat; quizzes pay ``rate`` per correct answer.

    Examples:
        >>> calculate_award_points("section_read", 3, correct_answers=10)
        3
        >>> calculate_award_points("module_quiz", 4, correct_answers=5)
        20
    """
    if source in PER_ANSWER_SOURCES:
        return correct_answers * rate
    return rate


def apply_streak_bonus(
    points: int,
    day_streak: int,
    streak_bonus: Optional[Mapping[str, Any]],
) -> Tuple[int, bool]:
    """
    Apply the streak multiplier when enabled and the streak is long enough.

    Returns:
        (points, applied)
    """
    if not streak_bonus or not streak_bonus.get("enabled"):
        return points, False

    streak_days = int(streak_bonus.get("streak_days", 0))
    multiplier = float(streak_bonus.get("multiplier", 1.0))

    if day_streak < streak_days:
        return points, False

    return round_half_up(points * multiplier), True


# ============================================================================
# STREAKS
# ============================================================================


def advance_streak(
    current_streak: int,
    last_active: Optional[datetime],
    now: datetime,
) -> Tuple[int, bool]:
    """
    Compute the next day streak from the last active timestamp (UTC dates).

    Returns:
        (new_streak, changed) where ``changed`` is False only for a repeat
        call on the same UTC day.

    Cases:
        - no prior date            -> 1
        - same UTC day             -> unchanged
        - exactly one day earlier  -> current + 1
        - anything else            -> 1 (gap, or a future date from clock skew)
    """
    today = _utc_date(now)

    if last_active is None:
        return 1, True

    last_day = _utc_date(last_active)
    if last_day == today:
        return current_streak, False

    if (today - last_day).days == 1:
        return max(current_streak, 0) + 1, True

    return 1, True


def _utc_date(value: datetime) -> date:
    if value.tzinfo is None:
        return value.date()
    return value.astimezone(timezone.utc).date()


# ============================================================================
# LEVELS
# ============================================================================


def _level_sort_key(level: Mapping[str, Any]) -> Tuple[int, int]:
    return (int(level["min_points"]), int(level["level"]))


def resolve_level(
    levels: Sequence[Mapping[str, Any]],
    points: int,
) -> Dict[str, Any]:
    """
    Highest threshold whose ``min_points`` is at or below ``points``.

    The comparison uses ``min_points`` (ties broken by level number), so an
    out-of-order or gapped list still resolves sensibly. When no threshold
    qualifies, the lowest one is used; with no thresholds at all the
    synthetic level 1 "Beginner" record is returned.
    """
    if not levels:
        return dict(FALLBACK_LEVEL)

    ordered = sorted(levels, key=_level_sort_key)
    current = ordered[0]
    for level in ordered:
        if int(level["min_points"]) <= points:
            current = level
        else:
            break

    return dict(current)


def resolve_next_level(
    levels: Sequence[Mapping[str, Any]],
    points: int,
) -> Optional[Dict[str, Any]]:
    """Lowest threshold strictly above ``points``, or None at the top."""
    above = [lvl for lvl in levels if int(lvl["min_points"]) > points]
    if not above:
        return None
    return dict(min(above, key=_level_sort_key))


def points_for_next_level(levels: Sequence[Mapping[str, Any]], points: int) -> int:
    """
    Points still missing for the next threshold (0 at the top).

    >>> lv = [{"level": 1, "min_points": 0}, {"level": 2, "min_points": 50},
    ...       {"level": 3, "min_points": 150}]
    >>> points_for_next_level(lv, 149)
    1
    >>> points_for_next_level(lv, 150)
    0
    """
    nxt = resolve_next_level(levels, points)
    if nxt is None:
        return 0
    return int(nxt["min_points"]) - points


# ============================================================================
# LEGACY CONFIG MIGRATION
# ============================================================================


def migrate_points_table(value: Any) -> Optional[Dict[str, int]]:
    """
    Expand a legacy scalar rate into the three-tier table.

    Returns None when ``value`` is already a table (no migration needed).

    >>> migrate_points_table(3)
    {'easy': 3, 'intermediate': 4, 'advanced': 5}
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None

    base = int(value)
    return {difficulty: base + offset for offset, difficulty in enumerate(DIFFICULTIES)}
