"""
Progression Engine
==================

Purpose
-------
Orchestrates a points award: idempotency gate, rate lookup, streak,
score increment, history append and level recomputation, producing one
coherent award result.

Domain
------
- award_points() and its per-source entry points
- submit_quiz(): grade then award in one call
- get_user_progression(): derived view (points, level, rank, streak, history)
- get_leaderboard() / get_attempt_status() / update_streak()

Award Algorithm
---------------
1. Validate inputs; load the effective points tables (fallback if no row)
2. In ONE transaction:
   a. lock the user profile (NotFoundError if missing)
   b. claim the attempt with a conditional insert; a lost claim means
      "already attempted" and nothing else is written
   c. advance the day streak on the locked profile
   d. rate lookup and award (flat for section reads, per correct answer
      for quizzes), then the optional streak bonus
   e. create the score row if absent, then increment it atomically
   f. append the history entry
3. After commit: resolve previous/current level from the active ladder,
   publish events, return the result

The ledger entry and the score increment commit or roll back together, so
a failure can neither pay without marking nor mark without paying.

"Already attempted" is a successful result with ``is_first_attempt=False``,
never an exception. Missing users raise NotFoundError; store failures raise
DatabaseError (retryable).
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence

from src.core.database.base import utc_now
from src.core.logging.logger import LogContext, get_logger
from src.core.validation.input_validator import InputValidator
from src.database.models import UserProfile
from src.modules.shared.base_service import BaseService
from src.modules.shared.constants import (
    AWARD_SOURCES,
    DEFAULT_FINAL_QUIZ_DIFFICULTY,
    DIFFICULTIES,
    EVENT_LEVELED_UP,
    EVENT_POINTS_AWARDED,
    EVENT_STREAK_UPDATED,
    POINTS_TABLE_BY_SOURCE,
    SOURCE_FINAL_QUIZ,
    SOURCE_MODULE_QUIZ,
    SOURCE_SECTION_READ,
)
from src.modules.shared.exceptions import NotFoundError, ValidationError
from src.modules.shared.formulas import (
    apply_streak_bonus,
    calculate_award_points,
    points_for_next_level,
    resolve_level,
    resolve_next_level,
)
from src.modules.user.service import UserProfileRepository

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.database.service import DatabaseService
    from src.core.event.bus import EventBus
    from src.modules.leaderboard.service import LeaderboardService
    from src.modules.progression.attempt_ledger import AttemptLedgerService
    from src.modules.progression.level_config_service import LevelConfigService
    from src.modules.progression.streak_service import StreakService
    from src.modules.quiz.grading_service import QuizGradingService
    from src.modules.score.service import ScoreService


MESSAGE_AWARDED = "Points awarded"
MESSAGE_ALREADY_ATTEMPTED = "Already attempted"


class ProgressionEngine(BaseService):
    """
    The points/progression orchestrator.

    Dependencies
    ------------
    - LevelConfigService: points tables and level ladder (read only)
    - AttemptLedgerService: idempotency gate
    - ScoreService: atomic score increments
    - StreakService: day streak on the user profile
    - LeaderboardService: rank lookups
    - QuizGradingService: grading for submit_quiz()

    Public Methods
    --------------
    - award_points()
    - award_section_points() / award_quiz_points() / award_final_quiz_points()
    - submit_quiz()
    - get_user_progression()
    - get_leaderboard()
    - get_attempt_status()
    - update_streak()
    """

    def __init__(
        self,
        database: DatabaseService,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        *,
        level_config: LevelConfigService,
        attempt_ledger: AttemptLedgerService,
        scores: ScoreService,
        streaks: StreakService,
        leaderboard: LeaderboardService,
        grading: QuizGradingService,
    ) -> None:
        super().__init__(database, config_manager, event_bus, logger)

        self._levels = level_config
        self._ledger = attempt_ledger
        self._scores = scores
        self._streaks = streaks
        self._leaderboard = leaderboard
        self._grading = grading

        self._user_repo = UserProfileRepository(
            model_class=UserProfile,
            logger=get_logger(f"{__name__}.UserProfileRepository"),
        )

    # ========================================================================
    # PUBLIC API - Awards
    # ========================================================================

    async def award_points(
        self,
        user_id: str,
        source: str,
        source_id: str,
        difficulty: str,
        correct_answers: int = 0,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Award points for a first attempt.

        This is a **write operation** using get_transaction().

        Args:
            user_id: Profile id
            source: section_read, module_quiz or final_quiz
            source_id: Section / quiz id
            difficulty: easy, intermediate or advanced (case-insensitive)
            correct_answers: Correct answers (ignored for section reads)
            now: Clock override for the streak and history timestamp

        Returns:
            {
                "user_id": str,
                "source": str,
                "source_id": str,
                "points_gained": int,
                "total_points": int,
                "previous_points": int,
                "level_up": bool,
                "new_level": dict | None,
                "current_level": dict,
                "is_first_attempt": bool,
                "day_streak": int,
                "streak_bonus_applied": bool,
                "message": str
            }

        Raises:
            ValidationError: Invalid source, difficulty or correct_answers
            NotFoundError: If the user does not exist
            DatabaseError: If the store is unavailable (nothing is committed)

        Example:
            >>> result = await engine.award_points(
            ...     "u-1", "module_quiz", "quiz-7", "Advanced", correct_answers=5
            ... )
            >>> result["points_gained"]
            20
        """
        user_id = InputValidator.validate_identifier(user_id, "user_id")
        source = InputValidator.validate_choice(source, "source", AWARD_SOURCES)
        source_id = InputValidator.validate_identifier(source_id, "source_id")
        difficulty = InputValidator.validate_choice(
            difficulty, "difficulty", self._difficulties()
        )
        if source == SOURCE_SECTION_READ:
            correct_answers = 0
        else:
            correct_answers = InputValidator.validate_non_negative_integer(
                correct_answers, "correct_answers"
            )
        now = now or utc_now()

        async with LogContext(
            user_id=user_id,
            source=source,
            source_id=source_id,
            operation="award_points",
        ):
            self.log_operation(
                "award_points",
                user_id=user_id,
                source=source,
                source_id=source_id,
                difficulty=difficulty,
                correct_answers=correct_answers,
            )

            points_config = await self._levels.get_effective_points_config()
            rate = self._lookup_rate(points_config, source, difficulty)

            async with self.db.get_transaction() as session:
                user = await self._user_repo.get_for_update(session, user_id)
                if user is None:
                    raise NotFoundError("User", user_id)

                claimed = await self._ledger.claim_attempt(
                    session, user_id, source, source_id
                )
                if not claimed:
                    current_total = await self._scores.repository.read_score(
                        session, user_id
                    )
                    already = True
                else:
                    already = False
                    previous_streak, day_streak, streak_changed = (
                        self._streaks.apply_to_user(user, now)
                    )

                    base_points = calculate_award_points(source, rate, correct_answers)
                    points, bonus_applied = apply_streak_bonus(
                        base_points, day_streak, points_config.get("streak_bonus")
                    )

                    await self._scores.repository.ensure(session, user_id)
                    previous_total, new_total = await self._scores.apply_increment(
                        session, user_id, points
                    )

                    history = list(user.points_history or [])
                    history.append(
                        {
                            "source": source,
                            "source_id": source_id,
                            "points_gained": points,
                            "timestamp": now.isoformat(),
                            "difficulty": difficulty,
                        }
                    )
                    user.points_history = history
                    user.updated_at = now

                    await self._user_repo.flush(session)

            if already:
                self.log.info(
                    "Award skipped: already attempted",
                    extra={"user_id": user_id, "source": source, "source_id": source_id},
                )
                return self._already_attempted_result(
                    user_id, source, source_id, int(current_total or 0)
                )

            levels = await self._levels.get_active_levels()
            previous_level = resolve_level(levels, previous_total)
            current_level = resolve_level(levels, new_total)
            level_up = int(current_level["level"]) > int(previous_level["level"])

            self.log.info(
                f"Points awarded: +{points}",
                extra={
                    "user_id": user_id,
                    "source": source,
                    "source_id": source_id,
                    "difficulty": difficulty,
                    "points_gained": points,
                    "base_points": base_points,
                    "streak_bonus_applied": bonus_applied,
                    "previous_points": previous_total,
                    "total_points": new_total,
                    "level_up": level_up,
                },
            )

            await self._publish_award_events(
                user_id=user_id,
                source=source,
                source_id=source_id,
                points=points,
                previous_total=previous_total,
                new_total=new_total,
                previous_level=previous_level,
                current_level=current_level,
                level_up=level_up,
                previous_streak=previous_streak,
                day_streak=day_streak,
                streak_changed=streak_changed,
            )

            return {
                "user_id": user_id,
                "source": source,
                "source_id": source_id,
                "points_gained": points,
                "total_points": new_total,
                "previous_points": previous_total,
                "level_up": level_up,
                "new_level": self._level_view(current_level) if level_up else None,
                "current_level": self._level_view(current_level),
                "is_first_attempt": True,
                "day_streak": day_streak,
                "streak_bonus_applied": bonus_applied,
                "message": MESSAGE_AWARDED,
            }

    async def award_section_points(
        self, user_id: str, section_id: str, difficulty: str
    ) -> Dict[str, Any]:
        """Flat award for reading a section."""
        return await self.award_points(
            user_id, SOURCE_SECTION_READ, section_id, difficulty
        )

    async def award_quiz_points(
        self,
        user_id: str,
        quiz_id: str,
        difficulty: str,
        correct_answers: int,
    ) -> Dict[str, Any]:
        """Module quiz award: quiz rate per correct answer."""
        return await self.award_points(
            user_id, SOURCE_MODULE_QUIZ, quiz_id, difficulty, correct_answers
        )

    async def award_final_quiz_points(
        self,
        user_id: str,
        final_quiz_id: str,
        correct_answers: int,
        difficulty: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Final quiz award; difficulty defaults to the configured final-quiz tier."""
        if difficulty is None:
            difficulty = self.get_config(
                "progression.final_quiz.default_difficulty",
                DEFAULT_FINAL_QUIZ_DIFFICULTY,
            )
        return await self.award_points(
            user_id, SOURCE_FINAL_QUIZ, final_quiz_id, difficulty, correct_answers
        )

    async def submit_quiz(
        self,
        user_id: str,
        quiz_id: str,
        questions: Sequence[Mapping[str, Any]],
        answers: Any,
        difficulty: Optional[str] = None,
        is_final: bool = False,
    ) -> Dict[str, Any]:
        """
        Grade a quiz submission and award points for it.

        Returns:
            {"grading": <calculate_score result>, "award": <award result>}

        Raises:
            ValidationError: Invalid answers (nothing is awarded)
        """
        normalized = self._grading.validate_answers(questions, answers)
        grading = self._grading.calculate_score(questions, normalized)

        if is_final:
            award = await self.award_final_quiz_points(
                user_id, quiz_id, grading["correct_answers"], difficulty
            )
        else:
            if difficulty is None:
                raise ValidationError("difficulty", "Value is required")
            award = await self.award_quiz_points(
                user_id, quiz_id, difficulty, grading["correct_answers"]
            )

        return {"grading": grading, "award": award}

    # ========================================================================
    # PUBLIC API - Reads
    # ========================================================================

    async def get_user_progression(self, user_id: str) -> Dict[str, Any]:
        """
        Derived progression view. Never fails on empty configuration: with no
        active levels the user is level 1 "Beginner".

        Returns:
            {
                "points": int,
                "level": int,
                "level_title": str,
                "points_for_next_level": int,
                "next_level_title": str | None,
                "rank": int,
                "day_streak": int,
                "points_history": list
            }

        Raises:
            NotFoundError: If the user does not exist
        """
        user_id = InputValidator.validate_identifier(user_id, "user_id")

        async with self.db.get_session() as session:
            user = await self._user_repo.get(session, user_id)
            if user is None:
                raise NotFoundError("User", user_id)
            profile = self._user_repo.to_record(user)

        points = await self._scores.get_score(user_id)
        levels = await self._levels.get_active_levels()
        current = resolve_level(levels, points)
        upcoming = resolve_next_level(levels, points)
        rank = await self._leaderboard.get_rank(user_id)

        return {
            "points": points,
            "level": int(current["level"]),
            "level_title": current["title"],
            "points_for_next_level": points_for_next_level(levels, points),
            "next_level_title": upcoming["title"] if upcoming else None,
            "rank": rank,
            "day_streak": profile["day_streak"],
            "points_history": profile["points_history"],
        }

    async def get_leaderboard(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return await self._leaderboard.get_leaderboard(limit)

    async def get_attempt_status(
        self, user_id: str, source: str, source_id: str
    ) -> Dict[str, bool]:
        """Read-only pre-check for UI warnings. Never marks the attempt."""
        is_first = await self._ledger.is_first_attempt(user_id, source, source_id)
        return {"is_first_attempt": is_first}

    async def update_streak(self, user_id: str, now: Optional[datetime] = None) -> int:
        return await self._streaks.update_streak(user_id, now)

    # ========================================================================
    # PRIVATE HELPERS
    # ========================================================================

    def _difficulties(self) -> List[str]:
        return list(self.get_config("progression.difficulties", list(DIFFICULTIES)))

    def _lookup_rate(
        self, points_config: Mapping[str, Any], source: str, difficulty: str
    ) -> int:
        table = points_config[POINTS_TABLE_BY_SOURCE[source]]
        rate = table.get(difficulty)
        if rate is None:
            raise ValidationError(
                "difficulty", f"No {source} rate configured for '{difficulty}'"
            )
        return int(rate)

    @staticmethod
    def _level_view(level: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            "level": int(level["level"]),
            "title": level["title"],
            "min_points": int(level["min_points"]),
        }

    @staticmethod
    def _already_attempted_result(
        user_id: str, source: str, source_id: str, total_points: int
    ) -> Dict[str, Any]:
        return {
            "user_id": user_id,
            "source": source,
            "source_id": source_id,
            "points_gained": 0,
            "total_points": total_points,
            "previous_points": total_points,
            "level_up": False,
            "new_level": None,
            "current_level": None,
            "is_first_attempt": False,
            "day_streak": None,
            "streak_bonus_applied": False,
            "message": MESSAGE_ALREADY_ATTEMPTED,
        }

    async def _publish_award_events(
        self,
        *,
        user_id: str,
        source: str,
        source_id: str,
        points: int,
        previous_total: int,
        new_total: int,
        previous_level: Mapping[str, Any],
        current_level: Mapping[str, Any],
        level_up: bool,
        previous_streak: int,
        day_streak: int,
        streak_changed: bool,
    ) -> None:
        await self.emit_event(
            EVENT_POINTS_AWARDED,
            {
                "user_id": user_id,
                "source": source,
                "source_id": source_id,
                "points_gained": points,
                "previous_points": previous_total,
                "total_points": new_total,
            },
        )

        if streak_changed:
            await self.emit_event(
                EVENT_STREAK_UPDATED,
                {
                    "user_id": user_id,
                    "previous_streak": previous_streak,
                    "day_streak": day_streak,
                },
            )

        if level_up:
            await self.emit_event(
                EVENT_LEVELED_UP,
                {
                    "user_id": user_id,
                    "old_level": int(previous_level["level"]),
                    "new_level": int(current_level["level"]),
                    "new_title": current_level["title"],
                    "total_points": new_total,
                },
            )
