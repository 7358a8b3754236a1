"""
Progression domain ORM models.

Exports:
- LevelThreshold
- PointsConfig
- AttemptLedger
- AttemptRecord
- UserScore
"""

from .attempt_ledger import AttemptLedger, AttemptRecord
from .level_threshold import LevelThreshold
from .points_config import PointsConfig
from .user_score import UserScore

__all__ = [
    "LevelThreshold",
    "PointsConfig",
    "AttemptLedger",
    "AttemptRecord",
    "UserScore",
]
