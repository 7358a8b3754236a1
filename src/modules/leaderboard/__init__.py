"""
Leaderboard Module
==================

Domain: ranked view over user scores

Services:
- LeaderboardService: top-N board and single-user rank
"""

from .service import LeaderboardService

__all__ = [
    "LeaderboardService",
]
