"""
Pathway Progression Domain Constants

Purpose
-------
Provide the domain-level constants of the points/progression engine: award
sources, difficulty keys, the ten default level thresholds and the default
per-difficulty point tables.

IMPORTANT:
These values seed the database and act as the last-resort fallback when no
PointsConfig row exists. Runtime tuning belongs in the database (admin
updates) or in `config/*.yaml` (ConfigManager), not here.

Design Notes
------------
- Values are annotated with typing.Final to signal immutability
- Tables are tuples / read-only mappings; callers copy before mutating
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Final, Mapping, Tuple

# ============================================================================
# AWARD SOURCES
# ============================================================================

SOURCE_SECTION_READ: Final[str] = "section_read"
SOURCE_MODULE_QUIZ: Final[str] = "module_quiz"
SOURCE_FINAL_QUIZ: Final[str] = "final_quiz"

AWARD_SOURCES: Final[Tuple[str, ...]] = (
    SOURCE_SECTION_READ,
    SOURCE_MODULE_QUIZ,
    SOURCE_FINAL_QUIZ,
)

# Sources whose rate is multiplied by the number of correct answers
PER_ANSWER_SOURCES: Final[Tuple[str, ...]] = (SOURCE_MODULE_QUIZ, SOURCE_FINAL_QUIZ)

# Attempt keys are "<source>_<source_id>"
ATTEMPT_KEY_SEPARATOR: Final[str] = "_"

# ============================================================================
# DIFFICULTY
# ============================================================================

DIFFICULTY_EASY: Final[str] = "easy"
DIFFICULTY_INTERMEDIATE: Final[str] = "intermediate"
DIFFICULTY_ADVANCED: Final[str] = "advanced"

DIFFICULTIES: Final[Tuple[str, ...]] = (
    DIFFICULTY_EASY,
    DIFFICULTY_INTERMEDIATE,
    DIFFICULTY_ADVANCED,
)

DEFAULT_FINAL_QUIZ_DIFFICULTY: Final[str] = DIFFICULTY_INTERMEDIATE

# ============================================================================
# DEFAULT POINT TABLES
# ============================================================================

DEFAULT_SECTION_POINTS: Final[Mapping[str, int]] = MappingProxyType(
    {"easy": 2, "intermediate": 3, "advanced": 5}
)
DEFAULT_QUIZ_POINTS: Final[Mapping[str, int]] = MappingProxyType(
    {"easy": 1, "intermediate": 2, "advanced": 4}
)
DEFAULT_FINAL_QUIZ_POINTS: Final[Mapping[str, int]] = MappingProxyType(
    {"easy": 2, "intermediate": 3, "advanced": 5}
)

# PointsConfig column holding the rate table for each source
POINTS_TABLE_BY_SOURCE: Final[Mapping[str, str]] = MappingProxyType(
    {
        SOURCE_SECTION_READ: "section_points",
        SOURCE_MODULE_QUIZ: "quiz_points",
        SOURCE_FINAL_QUIZ: "final_quiz_points",
    }
)

DEFAULT_STREAK_BONUS: Final[Mapping[str, object]] = MappingProxyType(
    {"enabled": False, "streak_days": 7, "multiplier": 1.5}
)

# ============================================================================
# LEVELS
# ============================================================================

# (level, min_points, title, description)
DEFAULT_LEVELS: Final[Tuple[Tuple[int, int, str, str], ...]] = (
    (1, 0, "Beginner", "Just getting started"),
    (2, 50, "Student", "Learning the basics"),
    (3, 150, "Learner", "Making good progress"),
    (4, 300, "Scholar", "Showing dedication"),
    (5, 500, "Expert", "Mastering the content"),
    (6, 750, "Advanced", "Exceptional learner"),
    (7, 1050, "Master", "Expert knowledge"),
    (8, 1400, "Champion", "Outstanding achievement"),
    (9, 1800, "Legend", "Legendary dedication"),
    (10, 2250, "Grand Master", "The pinnacle of learning"),
)

# Used when no active level threshold exists at all
FALLBACK_LEVEL: Final[Mapping[str, object]] = MappingProxyType(
    {"level": 1, "title": "Beginner", "min_points": 0, "description": None}
)

# ============================================================================
# LEADERBOARD / QUIZ / READING STATE
# ============================================================================

DEFAULT_LEADERBOARD_LIMIT: Final[int] = 10
MAX_LEADERBOARD_LIMIT: Final[int] = 100
PLACEHOLDER_USERNAME: Final[str] = "No Username"

MAX_OPTION_INDEX: Final[int] = 3

MAX_RECENT_MODULES: Final[int] = 2

# ============================================================================
# EVENTS
# ============================================================================

EVENT_POINTS_AWARDED: Final[str] = "progression.points_awarded"
EVENT_LEVELED_UP: Final[str] = "progression.leveled_up"
EVENT_STREAK_UPDATED: Final[str] = "progression.streak_updated"
EVENT_LEVEL_CONFIG_UPDATED: Final[str] = "level_config.updated"
EVENT_SCORES_RESET: Final[str] = "score.reset_all"
