"""
Base Service Foundation

Purpose
-------
Foundation class for all Pathway domain services. Services implement
business logic, open transactions through the injected DatabaseService,
enforce business rules and emit domain events after commit.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Safe config access (ConfigManager with in-code defaults)
- Event emission helpers
- Common validation helpers

What this class does NOT do:
- Manage sessions (DatabaseService.get_session / get_transaction do)
- Contain progression rules

Usage
-----
    class ScoreService(BaseService):
        def __init__(self, database, config_manager, event_bus, logger):
            super().__init__(database, config_manager, event_bus, logger)

        async def add_score(self, user_id: str, points: int):
            async with self.db.get_transaction() as session:
                ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from src.core.exceptions import ConfigurationError

from .exceptions import ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.database.service import DatabaseService
    from src.core.event.bus import EventBus


class BaseService:
    """
    Base class for all domain services.

    Args:
        database: DatabaseService used for sessions and transactions
        config_manager: Application configuration manager
        event_bus: Event bus for cross-module communication
        logger: Structured logger instance
    """

    def __init__(
        self,
        database: DatabaseService,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        self.db = database
        self._config = config_manager
        self._events = event_bus
        self.log = logger

    def get_config(
        self, key: str, default: Optional[Any] = None, required: bool = False
    ) -> Any:
        """
        Safely retrieve a configuration value.

        Raises:
            ConfigurationError: If required=True and key is missing
        """
        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(
                key, f"Required configuration key '{key}' is missing"
            )
        return value

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Emit a domain event. Call only after the producing transaction has
        committed so listeners never observe rolled-back state.
        """
        await self._events.publish(event_type, {**data, **(context or {})})

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(
        self,
        operation: str,
        error: Exception,
        **context: Any,
    ) -> None:
        """Log a service error with full context."""
        self.log.error(
            f"Service error during {operation}: {str(error)}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
        )

    def validate_non_negative_int(self, value: int, name: str) -> None:
        """
        Raises:
            ValidationError: If value is not an int >= 0
        """
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValidationError(
                name, f"{name} must be a non-negative integer, got {value}"
            )
