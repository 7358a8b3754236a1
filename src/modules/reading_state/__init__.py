"""
Reading State Module
====================

Domain: recently opened learning modules

Services:
- ReadingStateService: record and list recent module access
"""

from .service import ReadingStateService

__all__ = ["ReadingStateService"]
