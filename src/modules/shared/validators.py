"""
Pathway Domain Validators

Purpose
-------
Business-rule validation for admin-edited progression configuration:
level thresholds and per-difficulty point tables. Validators raise
`ValidationError` and return None on success (raise-on-error pattern).

Usage
-----
    from src.modules.shared.validators import validate_points_table

    validate_points_table("quiz_points", {"easy": 1, "intermediate": -2})
    # Raises: ValidationError
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from .constants import DIFFICULTIES
from .exceptions import ValidationError


def validate_min_points(min_points: Any) -> None:
    """Minimum points must be a non-negative integer."""
    if isinstance(min_points, bool) or not isinstance(min_points, int):
        raise ValidationError("min_points", "Minimum points must be an integer")
    if min_points < 0:
        raise ValidationError("min_points", "Minimum points cannot be negative")


def validate_level_number(level: Any) -> None:
    if isinstance(level, bool) or not isinstance(level, int):
        raise ValidationError("level", "Level number must be an integer")
    if level < 1:
        raise ValidationError("level", "Level number must be at least 1")


def validate_level_title(title: Any) -> None:
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("title", "Level title is required")


def validate_unique_level_number(level: int, existing_levels: Iterable[int]) -> None:
    """Level numbers are unique among active thresholds."""
    if level in set(existing_levels):
        raise ValidationError("level", "Level number already exists")


def validate_points_table(field: str, table: Any, partial: bool = False) -> None:
    """
    Validate a per-difficulty points table.

    Args:
        field: Column name used in the error (e.g. "section_points")
        table: Mapping of difficulty -> non-negative int
        partial: Allow a subset of difficulties (admin partial update)
    """
    if not isinstance(table, Mapping):
        raise ValidationError(field, "Points table must be an object keyed by difficulty")

    unknown = set(table) - set(DIFFICULTIES)
    if unknown:
        raise ValidationError(
            field, f"Unknown difficulty keys: {', '.join(sorted(unknown))}"
        )

    if not partial:
        missing = set(DIFFICULTIES) - set(table)
        if missing:
            raise ValidationError(
                field, f"Missing difficulty keys: {', '.join(sorted(missing))}"
            )

    for difficulty, value in table.items():
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(field, f"{difficulty} points must be an integer")
        if value < 0:
            raise ValidationError(field, "Points values cannot be negative")


def validate_streak_bonus(streak_bonus: Any) -> None:
    if not isinstance(streak_bonus, Mapping):
        raise ValidationError("streak_bonus", "Streak bonus must be an object")

    if "enabled" in streak_bonus and not isinstance(streak_bonus["enabled"], bool):
        raise ValidationError("streak_bonus", "enabled must be a boolean")

    streak_days = streak_bonus.get("streak_days", 1)
    if isinstance(streak_days, bool) or not isinstance(streak_days, int) or streak_days < 1:
        raise ValidationError("streak_bonus", "streak_days must be a positive integer")

    multiplier = streak_bonus.get("multiplier", 1.0)
    if isinstance(multiplier, bool) or not isinstance(multiplier, (int, float)) or multiplier < 0:
        raise ValidationError("streak_bonus", "multiplier must be a non-negative number")
