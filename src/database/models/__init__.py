"""
Database Models Package
========================

All SQLAlchemy ORM models for Pathway, organized by domain:

- core: the user directory (UserProfile)
- progression: levels, points tables, attempt ledger, scores
- learning: reading state

All models are schema-only, use Mapped[] with mapped_column(), and share
the declarative Base from src.core.database.base. Importing this package
registers every table on Base.metadata.
"""

from src.core.database.base import Base

from .core import UserProfile
from .learning import ReadingState
from .progression import (
    AttemptLedger,
    AttemptRecord,
    LevelThreshold,
    PointsConfig,
    UserScore,
)

__all__ = [
    "Base",
    "UserProfile",
    "LevelThreshold",
    "PointsConfig",
    "AttemptLedger",
    "AttemptRecord",
    "UserScore",
    "ReadingState",
]
