"""
Pytest Configuration and Fixtures for Pathway Tests
===================================================

Purpose
-------
Centralized fixtures for the Pathway test suite: a real file-backed SQLite
database per test, the YAML-backed ConfigManager, an EventBus with an event
recorder, a fully wired ServiceContainer, and mocks for unit tests.

Architecture Notes
------------------
- Unit tests use mocks or pure functions (fast, isolated)
- Integration tests use aiosqlite against a temporary database file
  (NullPool, schema created per test, clean slate)
- Fixtures follow scope hierarchy: function scope everywhere, so no test
  observes another test's rows or listeners
"""

from __future__ import annotations

import os

os.environ.setdefault("TESTING", "true")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from collections import defaultdict
from typing import Any, AsyncGenerator, Dict, List

import pytest
import pytest_asyncio
from sqlalchemy.pool import NullPool

from src.core.config.config import Config
from src.core.config.manager import ConfigManager
from src.core.database.service import DatabaseService
from src.core.event import EventBus
from src.core.logging.logger import get_logger
from src.core.services.container import ServiceContainer
from src.modules.shared.constants import (
    EVENT_LEVEL_CONFIG_UPDATED,
    EVENT_LEVELED_UP,
    EVENT_POINTS_AWARDED,
    EVENT_SCORES_RESET,
    EVENT_STREAK_UPDATED,
)

logger = get_logger(__name__)

RECORDED_EVENTS = (
    EVENT_POINTS_AWARDED,
    EVENT_LEVELED_UP,
    EVENT_STREAK_UPDATED,
    EVENT_LEVEL_CONFIG_UPDATED,
    EVENT_SCORES_RESET,
)

# Three-level ladder used by the level lookup properties
SMALL_LADDER = (
    (1, 0, "Beginner"),
    (2, 50, "Student"),
    (3, 150, "Learner"),
)


# ============================================================================
# CONFIGURATION FIXTURES
# ============================================================================


@pytest.fixture
def config_manager() -> ConfigManager:
    """ConfigManager loaded from the repository's config/ directory."""
    return ConfigManager.from_directory(Config.CONFIG_DIR)


# ============================================================================
# EVENT FIXTURES
# ============================================================================


@pytest.fixture
def event_bus(config_manager: ConfigManager) -> EventBus:
    return EventBus(config_manager)


@pytest.fixture
def recorded_events(event_bus: EventBus) -> Dict[str, List[Dict[str, Any]]]:
    """
    Record every domain event payload by event name.

    Usage:
        await engine.award_section_points("u-1", "s-1", "easy")
        assert recorded_events["progression.points_awarded"][0]["points_gained"] == 2
    """
    recorded: Dict[str, List[Dict[str, Any]]] = defaultdict(list)

    def _recorder(event_name: str):
        async def _record(payload):
            recorded[event_name].append(dict(payload))

        return _record

    for event_name in RECORDED_EVENTS:
        event_bus.subscribe(
            event_name, _recorder(event_name), identifier=f"test-recorder@{event_name}"
        )

    return recorded


# ============================================================================
# DATABASE FIXTURES (Integration Tests)
# ============================================================================


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[DatabaseService, None]:
    """
    DatabaseService on a fresh SQLite file with the full schema.

    Scope: function (clean slate per test)
    """
    url = f"sqlite+aiosqlite:///{tmp_path / 'pathway-test.db'}"
    service = DatabaseService.from_url(url, pool_class=NullPool)

    await service.initialize()
    await service.create_all()

    yield service

    await service.shutdown()


@pytest_asyncio.fixture
async def container(
    database: DatabaseService,
    config_manager: ConfigManager,
    event_bus: EventBus,
) -> AsyncGenerator[ServiceContainer, None]:
    """Fully wired container without seeded defaults."""
    services = ServiceContainer(database, config_manager, event_bus)
    await services.initialize()

    yield services

    await services.shutdown()


@pytest_asyncio.fixture
async def seeded_container(container: ServiceContainer) -> ServiceContainer:
    """Container with the default ten-level ladder and PointsConfig row."""
    await container.level_config.initialize_defaults()
    return container


@pytest_asyncio.fixture
async def small_ladder(container: ServiceContainer) -> ServiceContainer:
    """Container with the three-level ladder and no PointsConfig row."""
    for level, min_points, title in SMALL_LADDER:
        await container.level_config.create_level(level, min_points, title)
    return container


@pytest_asyncio.fixture
async def user(container: ServiceContainer) -> Dict[str, Any]:
    return await container.users.create_user("u-1", username="ada")


# ============================================================================
# MOCK FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def mock_database_service(mocker):
    """
    Mock DatabaseService for unit tests.

    Scope: function
    Uses: Unit tests that need to mock database access
    """
    mock_service = mocker.MagicMock()
    mock_service.get_session = mocker.MagicMock()
    mock_service.get_transaction = mocker.MagicMock()
    return mock_service


@pytest.fixture
def mock_event_bus(mocker):
    """
    Mock EventBus for unit tests.

    Scope: function
    Uses: Unit tests that need to mock event publishing
    """
    mock_bus = mocker.MagicMock()
    mock_bus.publish = mocker.AsyncMock(return_value=[])
    mock_bus.subscribe = mocker.MagicMock()
    return mock_bus


@pytest.fixture
def defaults_config_manager() -> ConfigManager:
    """ConfigManager built from in-code defaults only (no YAML)."""
    return ConfigManager(
        defaults={
            "quiz": {"max_option_index": 3},
            "progression": {"leaderboard": {"default_limit": 10, "max_limit": 100}},
        }
    )
