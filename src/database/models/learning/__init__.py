"""
Learning domain ORM models.

Exports:
- ReadingState
"""

from .reading_state import ReadingState

__all__ = ["ReadingState"]
