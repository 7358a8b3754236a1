"""
Pathway Validation Package (2025)

Purpose
-------
Expose the core input validation primitives used by the progression
services.

Non-Responsibilities
--------------------
- Business rule enforcement (handled by src.modules.shared.validators)
- Persistence or transaction management (handled by src.core.database)
"""

from src.core.validation.input_validator import InputValidator

__all__ = ["InputValidator"]
