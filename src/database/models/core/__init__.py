"""
Core database models for Pathway.

- UserProfile: the user directory record (identity, streak, points history)
"""

from .user_profile import UserProfile

__all__ = ["UserProfile"]
