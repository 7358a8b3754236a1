"""
Integration Tests for ProgressionEngine
=======================================

Test Coverage
-------------
- Idempotent awards (second attempt pays nothing, score unchanged)
- Quiz, final quiz and section point computation
- Level lookup, empty-ladder degradation, level-up reporting
- Streak updates inside the award and the optional streak bonus
- Atomicity: a failed score write leaves the attempt unmarked
- Events published after commit
- get_user_progression / get_attempt_status / submit_quiz

Testing Strategy
----------------
- Real SQLite database per test through aiosqlite
- Services come from a fully wired ServiceContainer
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from src.database.models import AttemptLedger
from src.modules.shared.exceptions import NotFoundError, ValidationError


def _quiz(correct_indexes):
    return [
        {
            "question": f"Question {n}",
            "options": [
                {"option": f"option {i}", "is_correct": i == correct} for i in range(4)
            ],
        }
        for n, correct in enumerate(correct_indexes)
    ]


# ============================================================================
# IDEMPOTENCY
# ============================================================================


@pytest.mark.integration
class TestIdempotency:
    async def test_second_award_pays_nothing(self, container, user):
        # Arrange
        engine = container.progression

        # Act
        first = await engine.award_section_points("u-1", "sec-1", "easy")
        before_second = await container.scores.get_score("u-1")
        second = await engine.award_section_points("u-1", "sec-1", "easy")
        after_second = await container.scores.get_score("u-1")

        # Assert
        assert first["points_gained"] > 0
        assert first["is_first_attempt"] is True
        assert second["points_gained"] == 0
        assert second["is_first_attempt"] is False
        assert second["message"] == "Already attempted"
        assert second["total_points"] == before_second == after_second

    async def test_same_id_different_source_is_separate(self, container, user):
        engine = container.progression

        await engine.award_section_points("u-1", "x-1", "easy")
        quiz = await engine.award_quiz_points("u-1", "x-1", "easy", 3)

        assert quiz["is_first_attempt"] is True
        assert quiz["points_gained"] == 3

    async def test_zero_correct_answers_still_consumes_attempt(self, container, user):
        engine = container.progression

        first = await engine.award_quiz_points("u-1", "quiz-1", "easy", 0)
        retry = await engine.award_quiz_points("u-1", "quiz-1", "easy", 5)

        assert first["points_gained"] == 0
        assert first["is_first_attempt"] is True
        assert retry["is_first_attempt"] is False
        assert retry["points_gained"] == 0

    async def test_history_has_one_entry_per_rewarded_attempt(self, container, user):
        engine = container.progression

        await engine.award_section_points("u-1", "sec-1", "Advanced")
        await engine.award_section_points("u-1", "sec-1", "Advanced")

        profile = await container.users.get_user("u-1")
        assert len(profile["points_history"]) == 1
        entry = profile["points_history"][0]
        assert entry["source"] == "section_read"
        assert entry["source_id"] == "sec-1"
        assert entry["points_gained"] == 5
        assert entry["difficulty"] == "advanced"


# ============================================================================
# POINT COMPUTATION
# ============================================================================


@pytest.mark.integration
class TestPointComputation:
    async def test_quiz_advanced_five_correct_pays_twenty(self, seeded_container, user):
        result = await seeded_container.progression.award_quiz_points(
            "u-1", "quiz-7", "Advanced", 5
        )

        assert result["points_gained"] == 20
        assert result["total_points"] == 20

    async def test_section_intermediate_pays_three_flat(self, seeded_container, user):
        # correct_answers is ignored for section reads
        result = await seeded_container.progression.award_points(
            "u-1", "section_read", "sec-3", "Intermediate", correct_answers=10
        )

        assert result["points_gained"] == 3

    async def test_final_quiz_defaults_to_intermediate(self, seeded_container, user):
        result = await seeded_container.progression.award_final_quiz_points(
            "u-1", "final-1", correct_answers=4
        )

        assert result["source"] == "final_quiz"
        assert result["points_gained"] == 12

    async def test_fallback_tables_without_points_config(self, container, user):
        assert await container.level_config.get_points_config() is None

        result = await container.progression.award_quiz_points("u-1", "q-1", "advanced", 2)

        assert result["points_gained"] == 8

    async def test_custom_points_config_is_used(self, seeded_container, user):
        await seeded_container.level_config.update_points_config(
            section_points={"easy": 10}
        )

        result = await seeded_container.progression.award_section_points(
            "u-1", "sec-1", "easy"
        )

        assert result["points_gained"] == 10

    async def test_points_accumulate(self, seeded_container, user):
        engine = seeded_container.progression

        await engine.award_section_points("u-1", "sec-1", "advanced")
        result = await engine.award_quiz_points("u-1", "quiz-1", "intermediate", 3)

        assert result["previous_points"] == 5
        assert result["total_points"] == 11
        assert await seeded_container.scores.get_score("u-1") == 11

    async def test_unknown_difficulty_rejected(self, seeded_container, user):
        with pytest.raises(ValidationError):
            await seeded_container.progression.award_section_points("u-1", "s", "expert")

    async def test_negative_correct_answers_rejected(self, seeded_container, user):
        with pytest.raises(ValidationError):
            await seeded_container.progression.award_quiz_points("u-1", "q", "easy", -1)

    async def test_unknown_user_raises_not_found(self, seeded_container):
        with pytest.raises(NotFoundError):
            await seeded_container.progression.award_section_points("ghost", "s", "easy")

        assert await seeded_container.attempt_ledger.get_attempts("ghost") == {}


# ============================================================================
# LEVELS
# ============================================================================


@pytest.mark.integration
class TestLevels:
    async def test_score_149_is_level_2(self, small_ladder, user):
        await small_ladder.scores.set_score("u-1", 149)

        view = await small_ladder.progression.get_user_progression("u-1")

        assert view["level"] == 2
        assert view["level_title"] == "Student"
        assert view["points_for_next_level"] == 1
        assert view["next_level_title"] == "Learner"

    async def test_score_150_is_top_level(self, small_ladder, user):
        await small_ladder.scores.set_score("u-1", 150)

        view = await small_ladder.progression.get_user_progression("u-1")

        assert view["level"] == 3
        assert view["points_for_next_level"] == 0
        assert view["next_level_title"] is None

    async def test_empty_ladder_degrades_to_beginner(self, container, user):
        await container.scores.set_score("u-1", 9000)

        view = await container.progression.get_user_progression("u-1")

        assert view["level"] == 1
        assert view["level_title"] == "Beginner"

    async def test_award_reports_level_up(self, small_ladder, user, recorded_events):
        # Arrange
        await small_ladder.scores.set_score("u-1", 45)

        # Act
        result = await small_ladder.progression.award_section_points(
            "u-1", "sec-9", "advanced"
        )

        # Assert
        assert result["level_up"] is True
        assert result["new_level"] == {"level": 2, "title": "Student", "min_points": 50}
        leveled = recorded_events["progression.leveled_up"]
        assert leveled == [
            {
                "user_id": "u-1",
                "old_level": 1,
                "new_level": 2,
                "new_title": "Student",
                "total_points": 50,
            }
        ]

    async def test_award_without_level_change(self, small_ladder, user, recorded_events):
        result = await small_ladder.progression.award_section_points("u-1", "s", "easy")

        assert result["level_up"] is False
        assert result["new_level"] is None
        assert result["current_level"]["level"] == 1
        assert recorded_events["progression.leveled_up"] == []


# ============================================================================
# STREAKS
# ============================================================================


@pytest.mark.integration
class TestStreaks:
    async def test_first_award_starts_streak(self, seeded_container, user):
        result = await seeded_container.progression.award_section_points("u-1", "s", "easy")

        assert result["day_streak"] == 1

    async def test_award_extends_streak_from_yesterday(self, seeded_container, user):
        # Arrange
        now = datetime(2026, 5, 2, 12, 0, tzinfo=timezone.utc)
        await seeded_container.users.update_user(
            "u-1", day_streak=3, last_active_date=now - timedelta(days=1)
        )

        # Act
        result = await seeded_container.progression.award_points(
            "u-1", "section_read", "s-1", "easy", now=now
        )

        # Assert
        assert result["day_streak"] == 4
        profile = await seeded_container.users.get_user("u-1")
        assert profile["day_streak"] == 4
        assert profile["last_active_date"] == now

    async def test_already_attempted_does_not_touch_streak(self, seeded_container, user):
        now = datetime(2026, 5, 2, 12, 0, tzinfo=timezone.utc)
        engine = seeded_container.progression
        await engine.award_points("u-1", "section_read", "s-1", "easy", now=now)

        await engine.award_points(
            "u-1", "section_read", "s-1", "easy", now=now + timedelta(days=1)
        )

        profile = await seeded_container.users.get_user("u-1")
        assert profile["day_streak"] == 1
        assert profile["last_active_date"] == now

    async def test_streak_bonus_when_enabled(self, seeded_container, user):
        # Arrange
        now = datetime(2026, 5, 2, 12, 0, tzinfo=timezone.utc)
        await seeded_container.level_config.update_points_config(
            streak_bonus={"enabled": True, "streak_days": 2, "multiplier": 1.5}
        )
        await seeded_container.users.update_user(
            "u-1", day_streak=1, last_active_date=now - timedelta(days=1)
        )

        # Act
        result = await seeded_container.progression.award_points(
            "u-1", "section_read", "s-1", "advanced", now=now
        )

        # Assert - 5 * 1.5 = 7.5 rounds to 8
        assert result["streak_bonus_applied"] is True
        assert result["points_gained"] == 8

    async def test_streak_bonus_disabled_by_default(self, seeded_container, user):
        now = datetime(2026, 5, 2, 12, 0, tzinfo=timezone.utc)
        await seeded_container.users.update_user(
            "u-1", day_streak=30, last_active_date=now - timedelta(days=1)
        )

        result = await seeded_container.progression.award_points(
            "u-1", "section_read", "s-1", "advanced", now=now
        )

        assert result["streak_bonus_applied"] is False
        assert result["points_gained"] == 5


# ============================================================================
# ATOMICITY
# ============================================================================


@pytest.mark.integration
class TestAtomicity:
    async def test_failed_score_write_leaves_attempt_unmarked(
        self, seeded_container, user, mocker, recorded_events
    ):
        # Arrange
        mocker.patch.object(
            seeded_container.scores,
            "apply_increment",
            side_effect=RuntimeError("score store down"),
        )

        # Act
        with pytest.raises(RuntimeError):
            await seeded_container.progression.award_section_points("u-1", "s-1", "easy")

        # Assert
        status = await seeded_container.progression.get_attempt_status(
            "u-1", "section_read", "s-1"
        )
        assert status == {"is_first_attempt": True}
        profile = await seeded_container.users.get_user("u-1")
        assert profile["points_history"] == []
        assert profile["day_streak"] == 0
        assert recorded_events["progression.points_awarded"] == []

    async def test_retry_after_failure_pays_once(self, seeded_container, user, mocker):
        mocker.patch.object(
            seeded_container.scores,
            "apply_increment",
            side_effect=RuntimeError("score store down"),
        )
        with pytest.raises(RuntimeError):
            await seeded_container.progression.award_section_points("u-1", "s-1", "easy")
        mocker.stopall()

        result = await seeded_container.progression.award_section_points("u-1", "s-1", "easy")

        assert result["points_gained"] == 2
        assert await seeded_container.scores.get_score("u-1") == 2


# ============================================================================
# EVENTS AND READ PATHS
# ============================================================================


@pytest.mark.integration
class TestEventsAndReads:
    async def test_points_awarded_event(self, seeded_container, user, recorded_events):
        await seeded_container.progression.award_quiz_points("u-1", "q-1", "easy", 2)

        assert recorded_events["progression.points_awarded"] == [
            {
                "user_id": "u-1",
                "source": "module_quiz",
                "source_id": "q-1",
                "points_gained": 2,
                "previous_points": 0,
                "total_points": 2,
            }
        ]
        assert recorded_events["progression.streak_updated"][0]["day_streak"] == 1

    async def test_attempt_status_is_read_only(self, seeded_container, user):
        engine = seeded_container.progression

        first = await engine.get_attempt_status("u-1", "final_quiz", "f-1")
        again = await engine.get_attempt_status("u-1", "final_quiz", "f-1")
        await engine.award_final_quiz_points("u-1", "f-1", 1)
        after = await engine.get_attempt_status("u-1", "final_quiz", "f-1")

        assert first == again == {"is_first_attempt": True}
        assert after == {"is_first_attempt": False}

    async def test_progression_view_for_new_user(self, seeded_container, user):
        view = await seeded_container.progression.get_user_progression("u-1")

        assert view == {
            "points": 0,
            "level": 1,
            "level_title": "Beginner",
            "points_for_next_level": 50,
            "next_level_title": "Student",
            "rank": 1,
            "day_streak": 0,
            "points_history": [],
        }

    async def test_progression_view_unknown_user(self, seeded_container):
        with pytest.raises(NotFoundError):
            await seeded_container.progression.get_user_progression("ghost")

    async def test_submit_quiz_grades_and_awards(self, seeded_container, user):
        questions = _quiz([0, 1, 2, 3])

        outcome = await seeded_container.progression.submit_quiz(
            "u-1", "quiz-1", questions, [0, 1, 2, 0], difficulty="advanced"
        )

        assert outcome["grading"]["correct_answers"] == 3
        assert outcome["grading"]["percentage"] == 75
        assert outcome["award"]["points_gained"] == 12

    async def test_submit_final_quiz(self, seeded_container, user):
        outcome = await seeded_container.progression.submit_quiz(
            "u-1", "final-1", _quiz([1, 1]), {"0": 1, "1": 1}, is_final=True
        )

        assert outcome["award"]["source"] == "final_quiz"
        assert outcome["award"]["points_gained"] == 6

    async def test_submit_quiz_invalid_answers_awards_nothing(self, seeded_container, user):
        with pytest.raises(ValidationError):
            await seeded_container.progression.submit_quiz(
                "u-1", "quiz-1", _quiz([0, 1]), [0], difficulty="easy"
            )

        status = await seeded_container.progression.get_attempt_status(
            "u-1", "module_quiz", "quiz-1"
        )
        assert status["is_first_attempt"] is True

    async def test_submit_quiz_scalar_answers_rejected(self, seeded_container, user):
        with pytest.raises(ValidationError, match="must be provided as an object"):
            await seeded_container.progression.submit_quiz(
                "u-1", "quiz-1", _quiz([0]), 5, difficulty="easy"
            )

        assert await seeded_container.scores.get_score("u-1") == 0

    async def test_update_streak_through_engine(self, seeded_container, user):
        now = datetime(2026, 5, 2, 12, 0, tzinfo=timezone.utc)

        assert await seeded_container.progression.update_streak("u-1", now) == 1
        assert await seeded_container.progression.update_streak("u-1", now) == 1


@pytest.mark.integration
class TestAttemptLedgerHeader:
    async def test_first_attempt_check_does_not_create_header(
        self, container, database, user
    ):
        # Arrange
        ledger = container.attempt_ledger

        # Act
        first = await ledger.is_first_attempt("u-1", "section_read", "sec-1")

        # Assert
        assert first is True
        async with database.get_session() as session:
            headers = await session.scalar(
                select(func.count()).select_from(AttemptLedger)
            )
        assert headers == 0

    async def test_claim_creates_header(self, container, database, user):
        await container.progression.award_section_points("u-1", "sec-1", "easy")

        async with database.get_session() as session:
            headers = await session.scalar(
                select(func.count())
                .select_from(AttemptLedger)
                .where(AttemptLedger.user_id == "u-1")
            )
        assert headers == 1
