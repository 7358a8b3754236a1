"""
Integration tests for ScoreService and UserService.
"""

import pytest

from src.modules.shared.exceptions import (
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)


@pytest.mark.integration
class TestScoreService:
    async def test_get_score_creates_zero_record(self, container):
        assert await container.scores.get_score("u-1") == 0

        record = await container.scores.get_score_record("u-1")
        assert record["score"] == 0

    async def test_add_score_requires_record(self, container):
        with pytest.raises(NotFoundError):
            await container.scores.add_score("u-1", 5)

    async def test_add_score_increments(self, container):
        await container.scores.get_score("u-1")

        assert await container.scores.add_score("u-1", 5) == 5
        assert await container.scores.add_score("u-1", 7) == 12

    async def test_negative_delta_rejected(self, container):
        await container.scores.get_score("u-1")

        with pytest.raises(ValidationError):
            await container.scores.add_score("u-1", -3)

    async def test_reset_all(self, container, recorded_events):
        # Arrange
        for user_id, score in {"a": 10, "b": 20}.items():
            await container.scores.set_score(user_id, score)

        # Act
        count = await container.scores.reset_all()

        # Assert
        assert count == 2
        assert [row["score"] for row in await container.scores.list_scores()] == [0, 0]
        assert recorded_events["score.reset_all"] == [{"reset_count": 2}]

    async def test_delete_score(self, container):
        await container.scores.set_score("u-1", 3)

        await container.scores.delete_score("u-1")

        with pytest.raises(NotFoundError):
            await container.scores.get_score_record("u-1")

    async def test_list_scores_highest_first(self, container):
        await container.scores.set_score("low", 1)
        await container.scores.set_score("high", 9)

        rows = await container.scores.list_scores(limit=1)

        assert [row["user_id"] for row in rows] == ["high"]


@pytest.mark.integration
class TestUserService:
    async def test_create_user_defaults(self, container):
        user = await container.users.create_user("u-1", username="ada", name="Ada")

        assert user["id"] == "u-1"
        assert user["day_streak"] == 0
        assert user["last_active_date"] is None
        assert user["points_history"] == []

    async def test_duplicate_user_rejected(self, container, user):
        with pytest.raises(InvalidOperationError):
            await container.users.create_user("u-1")

    async def test_get_unknown_user(self, container):
        with pytest.raises(NotFoundError):
            await container.users.get_user("ghost")

    async def test_update_user_fields(self, container, user):
        updated = await container.users.update_user("u-1", username="lovelace", day_streak=4)

        assert updated["username"] == "lovelace"
        assert updated["day_streak"] == 4

    async def test_update_rejects_unknown_field(self, container, user):
        with pytest.raises(ValidationError):
            await container.users.update_user("u-1", current_exp=100)

    async def test_update_rejects_negative_streak(self, container, user):
        with pytest.raises(ValidationError):
            await container.users.update_user("u-1", day_streak=-1)
