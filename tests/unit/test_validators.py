"""
Unit tests for InputValidator and the level/points validators.
"""

import pytest

from src.core.validation import InputValidator
from src.modules.shared.exceptions import ValidationError
from src.modules.shared.validators import (
    validate_level_title,
    validate_min_points,
    validate_points_table,
    validate_streak_bonus,
    validate_unique_level_number,
)


@pytest.mark.unit
class TestInputValidator:
    def test_integer_accepts_integral_float(self):
        assert InputValidator.validate_integer(5.0, "count") == 5

    def test_integer_rejects_bool(self):
        with pytest.raises(ValidationError):
            InputValidator.validate_integer(True, "count")

    def test_integer_rejects_fraction(self):
        with pytest.raises(ValidationError):
            InputValidator.validate_integer(2.5, "count")

    def test_non_negative_rejects_negative(self):
        # Act & Assert
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_non_negative_integer(-1, "correct_answers")

        assert exc_info.value.field == "correct_answers"

    def test_identifier_is_stripped(self):
        assert InputValidator.validate_identifier("  u-1 ", "user_id") == "u-1"

    def test_identifier_accepts_int(self):
        assert InputValidator.validate_identifier(42, "user_id") == "42"

    def test_blank_identifier_is_rejected(self):
        with pytest.raises(ValidationError):
            InputValidator.validate_identifier("   ", "user_id")

    def test_choice_is_case_insensitive(self):
        result = InputValidator.validate_choice(
            "Advanced", "difficulty", ["easy", "intermediate", "advanced"]
        )

        assert result == "advanced"

    def test_unknown_choice_is_rejected(self):
        with pytest.raises(ValidationError):
            InputValidator.validate_choice("expert", "difficulty", ["easy"])


@pytest.mark.unit
class TestLevelValidators:
    def test_negative_min_points_rejected(self):
        with pytest.raises(ValidationError, match="Minimum points cannot be negative"):
            validate_min_points(-5)

    def test_duplicate_level_number_rejected(self):
        with pytest.raises(ValidationError, match="Level number already exists"):
            validate_unique_level_number(2, [1, 2, 3])

    def test_blank_title_rejected(self):
        with pytest.raises(ValidationError):
            validate_level_title("  ")


@pytest.mark.unit
class TestPointsTableValidator:
    def test_full_table_passes(self):
        validate_points_table("quiz_points", {"easy": 1, "intermediate": 2, "advanced": 4})

    def test_negative_value_rejected(self):
        with pytest.raises(ValidationError, match="Points values cannot be negative"):
            validate_points_table("quiz_points", {"easy": -1}, partial=True)

    def test_missing_key_rejected_unless_partial(self):
        with pytest.raises(ValidationError, match="Missing difficulty keys"):
            validate_points_table("section_points", {"easy": 2})

        validate_points_table("section_points", {"easy": 2}, partial=True)

    def test_unknown_key_rejected(self):
        with pytest.raises(ValidationError, match="Unknown difficulty keys"):
            validate_points_table("section_points", {"expert": 9}, partial=True)

    def test_streak_bonus_requires_positive_days(self):
        with pytest.raises(ValidationError):
            validate_streak_bonus({"enabled": True, "streak_days": 0})
