"""
Pathway Shared Module

Purpose
-------
Domain-level foundations for the progression modules:
- Domain exceptions and error handling
- Base service and repository patterns
- Progression constants and pure formulas
- Admin-input validators

Services build on these; nothing here opens sessions or publishes events
on its own.

Usage
-----
    from src.modules.shared import (
        BaseService,
        BaseRepository,
        NotFoundError,
        resolve_level,
        validate_points_table,
    )
"""

from __future__ import annotations

# Base patterns
from .base_repository import BaseRepository
from .base_service import BaseService

# Domain exceptions
from .exceptions import (
    ErrorSeverity,
    InvalidOperationError,
    NotFoundError,
    PathwayDomainException,
    ValidationError,
    get_error_severity,
    is_transient_error,
    should_alert,
)

# Domain constants
from .constants import (
    AWARD_SOURCES,
    DEFAULT_FINAL_QUIZ_POINTS,
    DEFAULT_LEVELS,
    DEFAULT_QUIZ_POINTS,
    DEFAULT_SECTION_POINTS,
    DEFAULT_STREAK_BONUS,
    DIFFICULTIES,
    FALLBACK_LEVEL,
    SOURCE_FINAL_QUIZ,
    SOURCE_MODULE_QUIZ,
    SOURCE_SECTION_READ,
)

# Formulas
from .formulas import (
    advance_streak,
    apply_streak_bonus,
    calculate_award_points,
    migrate_points_table,
    points_for_next_level,
    resolve_level,
    resolve_next_level,
    round_half_up,
)

# Validators
from .validators import (
    validate_level_number,
    validate_level_title,
    validate_min_points,
    validate_points_table,
    validate_streak_bonus,
    validate_unique_level_number,
)

__all__ = [
    # Base patterns
    "BaseService",
    "BaseRepository",
    # Exceptions
    "PathwayDomainException",
    "ErrorSeverity",
    "NotFoundError",
    "ValidationError",
    "InvalidOperationError",
    "is_transient_error",
    "get_error_severity",
    "should_alert",
    # Constants
    "SOURCE_SECTION_READ",
    "SOURCE_MODULE_QUIZ",
    "SOURCE_FINAL_QUIZ",
    "AWARD_SOURCES",
    "DIFFICULTIES",
    "DEFAULT_SECTION_POINTS",
    "DEFAULT_QUIZ_POINTS",
    "DEFAULT_FINAL_QUIZ_POINTS",
    "DEFAULT_STREAK_BONUS",
    "DEFAULT_LEVELS",
    "FALLBACK_LEVEL",
    # Formulas
    "round_half_up",
    "calculate_award_points",
    "apply_streak_bonus",
    "advance_streak",
    "resolve_level",
    "resolve_next_level",
    "points_for_next_level",
    "migrate_points_table",
    # Validators
    "validate_min_points",
    "validate_level_number",
    "validate_level_title",
    "validate_unique_level_number",
    "validate_points_table",
    "validate_streak_bonus",
]
