"""
Core infrastructure layer for Pathway (2025).

Purpose
-------
Provide a single import surface for the core infrastructure subsystems:

- Configuration (Config, ConfigManager)
- Database subsystem (DatabaseService)
- Event bus (EventBus)
- Logging (structured logging, logger factory)
- Validation utilities (InputValidator)
- Infrastructure exceptions

Non-Responsibilities
--------------------
- Implement infra logic (delegated to submodules)
- Progression rules (see src.modules)

This module is intentionally thin: no logic, no configuration, no I/O.
"""

from __future__ import annotations

from src.core.config import Config
from src.core.config.manager import ConfigManager
from src.core.database import DatabaseService
from src.core.event import EventBus
from src.core.exceptions import (
    ConfigurationError,
    DatabaseError,
    ErrorSeverity,
    EventBusError,
    PathwayInfrastructureException,
)
from src.core.logging import get_logger, setup_logging
from src.core.validation import InputValidator

__all__ = [
    # Config
    "Config",
    "ConfigManager",
    # Database
    "DatabaseService",
    # Events
    "EventBus",
    # Exceptions
    "PathwayInfrastructureException",
    "ConfigurationError",
    "DatabaseError",
    "EventBusError",
    "ErrorSeverity",
    # Logging
    "get_logger",
    "setup_logging",
    # Validation
    "InputValidator",
]
