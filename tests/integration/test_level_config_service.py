"""
Integration tests for LevelConfigService.

Covers default seeding, legacy scalar migration, admin level writes,
points config updates and the effective (fallback-aware) configuration.
"""

import pytest

from src.database.models import PointsConfig
from src.modules.shared.exceptions import NotFoundError, ValidationError


@pytest.mark.integration
class TestInitializeDefaults:
    async def test_seeds_ladder_and_points_config(self, container, recorded_events):
        # Act
        summary = await container.level_config.initialize_defaults()

        # Assert
        assert summary == {
            "levels_created": 10,
            "points_config_created": True,
            "migrated_fields": [],
        }
        levels = await container.level_config.get_active_levels()
        assert [lvl["level"] for lvl in levels] == list(range(1, 11))
        assert levels[-1]["title"] == "Grand Master"
        assert recorded_events["level_config.updated"][0]["action"] == "defaults_initialized"

    async def test_is_idempotent(self, seeded_container):
        summary = await seeded_container.level_config.initialize_defaults()

        assert summary["levels_created"] == 0
        assert summary["points_config_created"] is False
        assert len(await seeded_container.level_config.get_all_levels()) == 10

    async def test_migrates_scalar_final_quiz_points(self, container, database):
        # Arrange
        async with database.get_transaction() as session:
            session.add(
                PointsConfig(
                    section_points={"easy": 2, "intermediate": 3, "advanced": 5},
                    quiz_points={"easy": 1, "intermediate": 2, "advanced": 4},
                    final_quiz_points=3,
                    streak_bonus=None,
                )
            )

        # Act
        summary = await container.level_config.initialize_defaults()

        # Assert
        assert summary["migrated_fields"] == ["final_quiz_points"]
        stored = await container.level_config.get_points_config()
        assert stored["final_quiz_points"] == {"easy": 3, "intermediate": 4, "advanced": 5}

    async def test_effective_config_normalizes_unmigrated_scalar(self, container, database):
        async with database.get_transaction() as session:
            session.add(
                PointsConfig(
                    section_points={"easy": 7},
                    quiz_points=1,
                    final_quiz_points={"easy": 2, "intermediate": 3, "advanced": 5},
                )
            )

        effective = await container.level_config.get_effective_points_config()

        assert effective["is_fallback"] is False
        assert effective["quiz_points"] == {"easy": 1, "intermediate": 2, "advanced": 3}
        assert effective["section_points"] == {"easy": 7, "intermediate": 3, "advanced": 5}


@pytest.mark.integration
class TestLevelAdmin:
    async def test_create_and_get_level(self, container):
        created = await container.level_config.create_level(
            1, 0, "  Beginner ", description="Start"
        )

        fetched = await container.level_config.get_level(created["id"])

        assert fetched["title"] == "Beginner"
        assert fetched["description"] == "Start"
        assert fetched["is_active"] is True

    async def test_negative_min_points_rejected(self, container):
        with pytest.raises(ValidationError, match="Minimum points cannot be negative"):
            await container.level_config.create_level(1, -10, "Beginner")

    async def test_duplicate_active_level_rejected(self, small_ladder):
        with pytest.raises(ValidationError, match="Level number already exists"):
            await small_ladder.level_config.create_level(2, 80, "Other")

    async def test_update_level_moves_threshold(self, small_ladder):
        levels = await small_ladder.level_config.get_active_levels()
        student = next(lvl for lvl in levels if lvl["level"] == 2)

        updated = await small_ladder.level_config.update_level(student["id"], min_points=60)

        assert updated["min_points"] == 60
        assert (await small_ladder.level_config.get_user_level(55))["level"] == 1

    async def test_update_rejects_unknown_field(self, small_ladder):
        with pytest.raises(ValidationError):
            await small_ladder.level_config.update_level(1, colour="red")

    async def test_deactivate_removes_from_ladder(self, small_ladder):
        levels = await small_ladder.level_config.get_active_levels()
        learner = next(lvl for lvl in levels if lvl["level"] == 3)

        await small_ladder.level_config.deactivate_level(learner["id"])

        active = await small_ladder.level_config.get_active_levels()
        assert [lvl["level"] for lvl in active] == [1, 2]
        assert len(await small_ladder.level_config.get_all_levels()) == 3
        assert (await small_ladder.level_config.get_user_level(1000))["level"] == 2

    async def test_inactive_level_number_can_be_reused(self, small_ladder):
        levels = await small_ladder.level_config.get_active_levels()
        await small_ladder.level_config.deactivate_level(levels[2]["id"])

        created = await small_ladder.level_config.create_level(3, 200, "Learner II")

        assert created["level"] == 3

    async def test_delete_level(self, small_ladder, recorded_events):
        levels = await small_ladder.level_config.get_active_levels()

        await small_ladder.level_config.delete_level(levels[0]["id"])

        with pytest.raises(NotFoundError):
            await small_ladder.level_config.get_level(levels[0]["id"])
        assert recorded_events["level_config.updated"][-1]["action"] == "level_deleted"

    async def test_get_user_level_shape(self, small_ladder):
        assert await small_ladder.level_config.get_user_level(149) == {
            "level": 2,
            "title": "Student",
            "min_points": 50,
        }


@pytest.mark.integration
class TestPointsConfigAdmin:
    async def test_partial_update_merges(self, seeded_container):
        updated = await seeded_container.level_config.update_points_config(
            quiz_points={"advanced": 6}
        )

        assert updated["quiz_points"] == {"easy": 1, "intermediate": 2, "advanced": 6}
        assert updated["section_points"] == {"easy": 2, "intermediate": 3, "advanced": 5}

    async def test_negative_points_rejected(self, seeded_container):
        with pytest.raises(ValidationError, match="Points values cannot be negative"):
            await seeded_container.level_config.update_points_config(
                section_points={"easy": -1}
            )

    async def test_update_creates_row_when_missing(self, container):
        assert await container.level_config.get_points_config() is None

        await container.level_config.update_points_config(final_quiz_points={"easy": 9})

        stored = await container.level_config.get_points_config()
        assert stored["final_quiz_points"] == {"easy": 9, "intermediate": 3, "advanced": 5}

    async def test_fallback_when_no_row(self, container):
        effective = await container.level_config.get_effective_points_config()

        assert effective["is_fallback"] is True
        assert effective["section_points"] == {"easy": 2, "intermediate": 3, "advanced": 5}
        assert effective["streak_bonus"]["enabled"] is False
