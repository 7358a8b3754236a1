"""
Score Module
============

Domain: per-user points totals

Services:
- ScoreService: score accumulator and score administration
"""

from .service import ScoreService, UserScoreRepository

__all__ = [
    "ScoreService",
    "UserScoreRepository",
]
