"""
Unit tests for the progression formulas.

Covers award computation, streak bonus, streak continuity, level lookup
over ordered and unordered ladders, and the legacy table migration.
"""

from datetime import datetime, timedelta, timezone

import pytest

from src.modules.shared.formulas import (
    advance_streak,
    apply_streak_bonus,
    calculate_award_points,
    migrate_points_table,
    points_for_next_level,
    resolve_level,
    resolve_next_level,
    round_half_up,
)

LADDER = [
    {"level": 1, "min_points": 0, "title": "Beginner"},
    {"level": 2, "min_points": 50, "title": "Student"},
    {"level": 3, "min_points": 150, "title": "Learner"},
]

NOW = datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc)


@pytest.mark.unit
class TestAwardPoints:
    """Flat section awards and per-answer quiz awards."""

    def test_section_read_is_flat(self):
        # Act
        points = calculate_award_points("section_read", 3, correct_answers=10)

        # Assert
        assert points == 3

    def test_module_quiz_pays_per_correct_answer(self):
        assert calculate_award_points("module_quiz", 4, correct_answers=5) == 20

    def test_final_quiz_pays_per_correct_answer(self):
        assert calculate_award_points("final_quiz", 3, correct_answers=7) == 21

    def test_zero_correct_answers_pays_nothing(self):
        assert calculate_award_points("module_quiz", 4, correct_answers=0) == 0


@pytest.mark.unit
class TestStreakBonus:
    def test_disabled_bonus_is_ignored(self):
        bonus = {"enabled": False, "streak_days": 1, "multiplier": 3.0}

        assert apply_streak_bonus(10, 30, bonus) == (10, False)

    def test_missing_bonus_is_ignored(self):
        assert apply_streak_bonus(10, 30, None) == (10, False)

    def test_short_streak_gets_no_bonus(self):
        bonus = {"enabled": True, "streak_days": 7, "multiplier": 1.5}

        assert apply_streak_bonus(10, 6, bonus) == (10, False)

    def test_bonus_rounds_half_up(self):
        # Arrange
        bonus = {"enabled": True, "streak_days": 7, "multiplier": 1.5}

        # Act
        points, applied = apply_streak_bonus(5, 7, bonus)

        # Assert - 7.5 rounds to 8
        assert points == 8
        assert applied is True


@pytest.mark.unit
class TestAdvanceStreak:
    """Day streak transitions on UTC dates."""

    def test_first_activity_starts_streak(self):
        assert advance_streak(0, None, NOW) == (1, True)

    def test_yesterday_extends_streak(self):
        yesterday = NOW - timedelta(days=1)

        assert advance_streak(4, yesterday, NOW) == (5, True)

    def test_yesterday_late_evening_still_counts(self):
        last = datetime(2026, 3, 9, 23, 59, tzinfo=timezone.utc)

        assert advance_streak(2, last, NOW) == (3, True)

    def test_three_day_gap_resets(self):
        assert advance_streak(9, NOW - timedelta(days=3), NOW) == (1, True)

    def test_same_day_is_unchanged(self):
        earlier_today = NOW.replace(hour=1)

        assert advance_streak(6, earlier_today, NOW) == (6, False)

    def test_future_date_resets(self):
        assert advance_streak(6, NOW + timedelta(days=2), NOW) == (1, True)

    def test_naive_timestamp_is_treated_as_utc(self):
        yesterday_naive = (NOW - timedelta(days=1)).replace(tzinfo=None)

        assert advance_streak(1, yesterday_naive, NOW) == (2, True)

    def test_offset_timestamp_uses_utc_date(self):
        # 2026-03-10 01:00 at UTC+5 is still 2026-03-09 in UTC
        plus_five = timezone(timedelta(hours=5))
        last = datetime(2026, 3, 10, 1, 0, tzinfo=plus_five)

        assert advance_streak(3, last, NOW) == (4, True)


@pytest.mark.unit
class TestLevelResolution:
    def test_score_149_is_level_2_one_point_short(self):
        # Act
        current = resolve_level(LADDER, 149)

        # Assert
        assert current["level"] == 2
        assert points_for_next_level(LADDER, 149) == 1

    def test_score_150_is_top_level(self):
        assert resolve_level(LADDER, 150)["level"] == 3
        assert points_for_next_level(LADDER, 150) == 0
        assert resolve_next_level(LADDER, 150) is None

    def test_empty_ladder_falls_back_to_beginner(self):
        current = resolve_level([], 500)

        assert current["level"] == 1
        assert current["title"] == "Beginner"

    def test_unordered_ladder_uses_min_points(self):
        shuffled = [LADDER[2], LADDER[0], LADDER[1]]

        assert resolve_level(shuffled, 60)["title"] == "Student"

    def test_gapped_ladder_takes_highest_qualifying_threshold(self):
        gapped = [
            {"level": 1, "min_points": 0, "title": "Beginner"},
            {"level": 5, "min_points": 500, "title": "Expert"},
        ]

        assert resolve_level(gapped, 499)["level"] == 1
        assert resolve_level(gapped, 500)["level"] == 5

    def test_ladder_without_zero_threshold_defaults_to_first(self):
        high = [{"level": 2, "min_points": 50, "title": "Student"}]

        assert resolve_level(high, 10)["level"] == 2


@pytest.mark.unit
class TestMigration:
    def test_scalar_becomes_three_tier_table(self):
        assert migrate_points_table(3) == {"easy": 3, "intermediate": 4, "advanced": 5}

    def test_table_needs_no_migration(self):
        assert migrate_points_table({"easy": 1, "intermediate": 2, "advanced": 3}) is None

    def test_bool_is_not_a_scalar_rate(self):
        assert migrate_points_table(True) is None


@pytest.mark.unit
@pytest.mark.parametrize(
    ("value", "expected"),
    [(2.5, 3), (2.49, 2), (66.666, 67), (0.0, 0)],
)
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected
