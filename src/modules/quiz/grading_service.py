"""
Quiz Grading Service
====================

Purpose
-------
Grade a submitted quiz against its answer key. Pure computation: quiz
content is supplied by the caller (quiz CRUD lives outside this package).

Shapes
------
question: ``{"question": str, "options": [{"option": str, "is_correct": bool}, ...]}``
answers:  ``{question_index: option_index}`` or a list in question order
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Sequence, Union

from src.modules.shared.base_service import BaseService
from src.modules.shared.constants import MAX_OPTION_INDEX
from src.modules.shared.exceptions import ValidationError
from src.modules.shared.formulas import round_half_up

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.database.service import DatabaseService
    from src.core.event.bus import EventBus

Answers = Union[Mapping[Any, Any], Sequence[Any]]


class QuizGradingService(BaseService):
    """
    Public Methods
    --------------
    - validate_answers() -> One valid answer per question or ValidationError
    - calculate_score() -> Score summary with per-question details
    """

    def __init__(
        self,
        database: DatabaseService,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(database, config_manager, event_bus, logger)

    @property
    def max_option_index(self) -> int:
        return int(self.get_config("quiz.max_option_index", MAX_OPTION_INDEX))

    def validate_answers(
        self, questions: Sequence[Mapping[str, Any]], answers: Answers
    ) -> Dict[int, int]:
        """
        Check that every question has an integer answer in 0..max_option_index.

        Returns:
            Answers normalized to ``{question_index: option_index}``

        Raises:
            ValidationError: Missing answers object, missing answer, or an
                answer out of range
        """
        lookup = self._normalize(answers)
        upper = self.max_option_index

        for index in range(len(questions)):
            answer = lookup.get(index)
            if answer is None:
                raise ValidationError("answers", f"Answer for question {index + 1} is required")
            if isinstance(answer, bool) or not isinstance(answer, int) or not 0 <= answer <= upper:
                raise ValidationError(
                    "answers",
                    f"Answer for question {index + 1} must be a number between 0 and {upper}",
                )

        return {index: lookup[index] for index in range(len(questions))}

    def calculate_score(
        self, questions: Sequence[Mapping[str, Any]], answers: Answers
    ) -> Dict[str, Any]:
        """
        Grade answers against the answer key.

        Returns:
            {"score", "total_questions", "correct_answers", "percentage",
             "details": [{"question_index", "is_correct", "correct_option_index"}]}

        ``correct_option_index`` is -1 when a question has no correct option.
        ``percentage`` rounds half up and is 0 for an empty quiz.
        """
        lookup = self._normalize(answers)
        details: List[Dict[str, Any]] = []
        correct = 0

        for index, question in enumerate(questions):
            correct_option = self._correct_option_index(question)
            is_correct = correct_option >= 0 and lookup.get(index) == correct_option
            if is_correct:
                correct += 1
            details.append(
                {
                    "question_index": index,
                    "is_correct": is_correct,
                    "correct_option_index": correct_option,
                }
            )

        total = len(questions)
        percentage = round_half_up(correct / total * 100) if total else 0

        self.log.debug(
            "Quiz graded",
            extra={"total_questions": total, "correct_answers": correct, "percentage": percentage},
        )

        return {
            "score": correct,
            "total_questions": total,
            "correct_answers": correct,
            "percentage": percentage,
            "details": details,
        }

    # ========================================================================
    # PRIVATE HELPERS
    # ========================================================================

    @staticmethod
    def _normalize(answers: Answers) -> Dict[int, Any]:
        if isinstance(answers, Mapping):
            normalized: Dict[int, Any] = {}
            for key, value in answers.items():
                try:
                    normalized[int(key)] = value
                except (TypeError, ValueError) as exc:
                    raise ValidationError("answers", f"Invalid question index '{key}'") from exc
            return normalized
        if isinstance(answers, (list, tuple)):
            return dict(enumerate(answers))
        raise ValidationError("answers", "User answers must be provided as an object")

    @staticmethod
    def _correct_option_index(question: Mapping[str, Any]) -> int:
        for position, option in enumerate(question.get("options") or []):
            if option.get("is_correct"):
                return position
        return -1
