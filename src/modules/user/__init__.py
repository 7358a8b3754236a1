"""
User Module
===========

Domain: user directory (profile, streak fields, points history)

Services:
- UserService: create/read/update user profiles
"""

from .service import UserProfileRepository, UserService

__all__ = [
    "UserService",
    "UserProfileRepository",
]
