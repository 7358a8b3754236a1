"""
Integration Tests for DatabaseService and ServiceContainer
==========================================================

Test Coverage
-------------
- Session and transaction management (commit, rollback)
- Conditional insert primitive
- Container lifecycle and health check
"""

import pytest
from sqlalchemy import select, text

from src.core.database.service import DatabaseNotInitializedError, DatabaseService
from src.core.logging.logger import get_logger
from src.core.services.container import ServiceContainer
from src.database.models import AttemptRecord, UserProfile
from src.modules.shared.base_repository import BaseRepository


@pytest.mark.integration
class TestDatabaseConnection:
    async def test_database_connection(self, database):
        # Act
        async with database.get_session() as session:
            result = await session.execute(text("SELECT 1 AS value"))
            row = result.fetchone()

        # Assert
        assert row.value == 1

    async def test_health_check(self, database):
        assert await database.health_check() is True

    async def test_uninitialized_service_fails_fast(self, tmp_path):
        service = DatabaseService.from_url(f"sqlite+aiosqlite:///{tmp_path / 'x.db'}")

        with pytest.raises(DatabaseNotInitializedError):
            async with service.get_session():
                pass


@pytest.mark.integration
class TestTransactions:
    async def test_commit_on_success(self, database):
        async with database.get_transaction() as session:
            session.add(UserProfile(id="u-1", username="ada"))

        async with database.get_session() as session:
            assert await session.get(UserProfile, "u-1") is not None

    async def test_rollback_on_error(self, database):
        # Act
        with pytest.raises(RuntimeError):
            async with database.get_transaction() as session:
                session.add(UserProfile(id="u-2", username="bob"))
                await session.flush()
                raise RuntimeError("abort")

        # Assert
        async with database.get_session() as session:
            assert await session.get(UserProfile, "u-2") is None


@pytest.mark.integration
class TestConditionalInsert:
    async def test_insert_if_absent_claims_once(self, database):
        repo = BaseRepository(AttemptRecord, get_logger("tests.repository"))
        values = {
            "user_id": "u-1",
            "attempt_key": "section_read_s-1",
            "source": "section_read",
            "source_id": "s-1",
        }

        async with database.get_transaction() as session:
            first = await repo.insert_if_absent(session, values, ["user_id", "attempt_key"])
        async with database.get_transaction() as session:
            second = await repo.insert_if_absent(session, values, ["user_id", "attempt_key"])

        assert first is True
        assert second is False
        async with database.get_session() as session:
            rows = (await session.execute(select(AttemptRecord))).scalars().all()
        assert len(rows) == 1


@pytest.mark.integration
class TestServiceContainer:
    async def test_access_before_initialize_fails(self, database, config_manager, event_bus):
        services = ServiceContainer(database, config_manager, event_bus)

        with pytest.raises(RuntimeError, match="not initialized"):
            _ = services.progression

    async def test_health_check(self, container):
        health = await container.health_check()

        assert health["initialized"] is True
        assert health["database"] is True
        assert health["service_count"] == 9

    async def test_initialize_with_seed(self, database, config_manager, event_bus):
        services = ServiceContainer(database, config_manager, event_bus)

        await services.initialize(seed_defaults=True)

        assert len(await services.level_config.get_active_levels()) == 10
        await services.shutdown()
