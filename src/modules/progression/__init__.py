"""
Progression Module
==================

Domain: points awards, levels, attempt ledger and streaks

Services:
- ProgressionEngine: award orchestration and the progression view
- LevelConfigService: level thresholds and points tables
- AttemptLedgerService: first-attempt gate
- StreakService: consecutive-day counter
"""

from .attempt_ledger import AttemptLedgerService, attempt_key
from .engine import ProgressionEngine
from .level_config_service import LevelConfigService
from .streak_service import StreakService

__all__ = [
    "ProgressionEngine",
    "LevelConfigService",
    "AttemptLedgerService",
    "StreakService",
    "attempt_key",
]
