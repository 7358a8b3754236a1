"""
Quiz Module
===========

Domain: quiz grading

Services:
- QuizGradingService: answer validation and scoring
"""

from .grading_service import QuizGradingService

__all__ = ["QuizGradingService"]
