"""
Service Container
=================

Purpose
-------
Dependency injection container for the Pathway domain services. Every
service is constructed exactly once per container and receives the same
DatabaseService, ConfigManager and EventBus instances.

Responsibilities
----------------
- Build services in dependency order (leaves first, engine last)
- Own DatabaseService lifecycle (initialize, optional schema creation,
  shutdown)
- Expose services as properties; access before initialize() fails fast

Non-Responsibilities
--------------------
- Business logic
- HTTP routing or request handling

Usage
-----
    container = ServiceContainer(database, config_manager, event_bus)
    await container.initialize(create_schema=True)

    result = await container.progression.award_section_points("u-1", "s-1", "easy")
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, TypeVar

from src.core.logging.logger import get_logger
from src.modules.leaderboard import LeaderboardService
from src.modules.progression import (
    AttemptLedgerService,
    LevelConfigService,
    ProgressionEngine,
    StreakService,
)
from src.modules.quiz import QuizGradingService
from src.modules.reading_state import ReadingStateService
from src.modules.score import ScoreService
from src.modules.user import UserService

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.database.service import DatabaseService
    from src.core.event.bus import EventBus

S = TypeVar("S")


class ServiceContainer:
    """
    Dependency injection container for all domain services.

    Args:
        database: DatabaseService instance (initialized by the container)
        config_manager: Configuration manager
        event_bus: Event bus shared by all services
        logger: Optional container logger
    """

    def __init__(
        self,
        database: DatabaseService,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Optional[Logger] = None,
    ) -> None:
        self._database = database
        self._config_manager = config_manager
        self._event_bus = event_bus
        self._logger = logger or get_logger(__name__)

        self._services: Dict[str, Any] = {}
        self._initialized = False

        self._service_init_times: Dict[str, float] = {}
        self._init_start: Optional[float] = None
        self._init_end: Optional[float] = None

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def initialize(
        self, create_schema: bool = False, seed_defaults: bool = False
    ) -> None:
        """
        Initialize the database and construct all services.

        Args:
            create_schema: Run create_all() (tests, local development)
            seed_defaults: Run LevelConfigService.initialize_defaults()
        """
        if self._initialized:
            self._logger.warning("ServiceContainer already initialized")
            return

        self._init_start = time.perf_counter()
        self._logger.info("Service container initialization starting...")

        await self._database.initialize()
        if create_schema:
            await self._database.create_all()

        self._create_service("users", UserService)
        self._create_service("level_config", LevelConfigService)
        self._create_service("attempt_ledger", AttemptLedgerService)
        self._create_service("scores", ScoreService)
        self._create_service("streaks", StreakService)
        self._create_service("leaderboard", LeaderboardService)
        self._create_service("quiz_grading", QuizGradingService)
        self._create_service("reading_state", ReadingStateService)
        self._create_service(
            "progression",
            ProgressionEngine,
            level_config=self._services["level_config"],
            attempt_ledger=self._services["attempt_ledger"],
            scores=self._services["scores"],
            streaks=self._services["streaks"],
            leaderboard=self._services["leaderboard"],
            grading=self._services["quiz_grading"],
        )

        self._initialized = True
        self._init_end = time.perf_counter()

        if seed_defaults:
            await self.level_config.initialize_defaults()

        self._logger.info(
            "Service container initialized",
            extra={
                "service_count": len(self._services),
                "init_time_seconds": round(self._init_end - self._init_start, 3),
            },
        )

    def _create_service(
        self, name: str, cls: Callable[..., S], **collaborators: Any
    ) -> S:
        start = time.perf_counter()
        try:
            instance = cls(
                database=self._database,
                config_manager=self._config_manager,
                event_bus=self._event_bus,
                logger=get_logger(f"{cls.__module__}.{cls.__name__}"),  # type: ignore[attr-defined]
                **collaborators,
            )
        except Exception:
            self._logger.error(f"Failed to initialize {name}", exc_info=True)
            raise

        duration = time.perf_counter() - start
        self._services[name] = instance
        self._service_init_times[name] = duration
        self._logger.debug(f"Initialized {name} in {duration:.3f}s")
        return instance

    async def shutdown(self) -> None:
        """Drop services, clear listeners and dispose the engine."""
        if not self._initialized:
            return

        self._logger.info("Shutting down service container...")
        self._event_bus.clear()
        self._services.clear()
        self._initialized = False
        await self._database.shutdown()
        self._logger.info("Service container shut down")

    async def health_check(self) -> Dict[str, Any]:
        database_ok = await self._database.health_check() if self._initialized else False
        return {
            "initialized": self._initialized,
            "database": database_ok,
            "service_count": len(self._services),
            "total_init_time_seconds": (
                round(self._init_end - self._init_start, 3)
                if self._init_start and self._init_end
                else None
            ),
        }

    # ========================================================================
    # Services
    # ========================================================================

    def _require(self, name: str) -> Any:
        if not self._initialized or name not in self._services:
            raise RuntimeError("ServiceContainer not initialized. Call initialize() first.")
        return self._services[name]

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    @property
    def users(self) -> UserService:
        return self._require("users")

    @property
    def level_config(self) -> LevelConfigService:
        return self._require("level_config")

    @property
    def attempt_ledger(self) -> AttemptLedgerService:
        return self._require("attempt_ledger")

    @property
    def scores(self) -> ScoreService:
        return self._require("scores")

    @property
    def streaks(self) -> StreakService:
        return self._require("streaks")

    @property
    def leaderboard(self) -> LeaderboardService:
        return self._require("leaderboard")

    @property
    def quiz_grading(self) -> QuizGradingService:
        return self._require("quiz_grading")

    @property
    def reading_state(self) -> ReadingStateService:
        return self._require("reading_state")

    @property
    def progression(self) -> ProgressionEngine:
        return self._require("progression")
