"""
Leaderboard Service
===================

Purpose
-------
Ranked, read-only projection of the score accumulator joined with user
display names.

Domain
------
- Top-N leaderboard (score descending)
- 1-based rank of a single user

Design Notes
------------
- Deterministic order: score descending, then earlier score record
  (created_at ascending), then user_id ascending. `get_rank` uses the same
  ordering, so a user's rank always matches their leaderboard position.
- Users missing from the directory are shown with a placeholder name
  instead of failing the whole board (outer join).
- Limit defaults to `progression.leaderboard.default_limit` and is capped
  at `progression.leaderboard.max_limit`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import and_, or_, select

from src.core.logging.logger import get_logger
from src.core.validation.input_validator import InputValidator
from src.database.models import UserProfile, UserScore
from src.modules.score.service import UserScoreRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.constants import (
    DEFAULT_LEADERBOARD_LIMIT,
    MAX_LEADERBOARD_LIMIT,
    PLACEHOLDER_USERNAME,
)
from src.modules.shared.exceptions import ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.database.service import DatabaseService
    from src.core.event.bus import EventBus


_LEADERBOARD_ORDER = (
    UserScore.score.desc(),
    UserScore.created_at.asc(),
    UserScore.user_id.asc(),
)


class LeaderboardService(BaseService):
    """
    Service for leaderboard queries.

    Public Methods
    --------------
    - get_leaderboard() -> Top users with display names
    - get_rank() -> 1-based position of a user, -1 if unranked
    """

    def __init__(
        self,
        database: DatabaseService,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(database, config_manager, event_bus, logger)

        self._score_repo = UserScoreRepository(
            model_class=UserScore,
            logger=get_logger(f"{__name__}.UserScoreRepository"),
        )

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def get_leaderboard(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Top users by score.

        This is a **read-only** operation using get_session().

        Args:
            limit: Maximum number of entries (default from config)

        Returns:
            List of {"rank", "user_id", "name", "score"} ordered best first

        Raises:
            ValidationError: If limit is not a positive integer or exceeds the cap

        Example:
            >>> board = await service.get_leaderboard(limit=3)
            >>> [entry["user_id"] for entry in board]
            ['u-b', 'u-c', 'u-a']
        """
        limit = self._resolve_limit(limit)
        placeholder = self.get_config(
            "progression.leaderboard.placeholder_name", PLACEHOLDER_USERNAME
        )

        self.log_operation("get_leaderboard", limit=limit)

        async with self.db.get_session() as session:
            stmt = (
                select(UserScore.user_id, UserScore.score, UserProfile.username)
                .outerjoin(UserProfile, UserProfile.id == UserScore.user_id)
                .order_by(*_LEADERBOARD_ORDER)
                .limit(limit)
            )
            rows = (await session.execute(stmt)).all()

        missing = [row.user_id for row in rows if not row.username]
        if missing:
            self.log.debug(
                "Leaderboard entries without username",
                extra={"user_ids": missing},
            )

        return [
            {
                "rank": position,
                "user_id": row.user_id,
                "name": row.username or placeholder,
                "score": int(row.score),
            }
            for position, row in enumerate(rows, start=1)
        ]

    async def get_rank(self, user_id: str) -> int:
        """
        1-based leaderboard position, or -1 if the user has no score record.

        This is a **read-only** operation using get_session().
        """
        user_id = InputValidator.validate_identifier(user_id, "user_id")

        async with self.db.get_session() as session:
            row = await self._score_repo.find_by_user(session, user_id)
            if row is None:
                return -1

            ahead = await self._score_repo.count(
                session,
                or_(
                    UserScore.score > row.score,
                    and_(
                        UserScore.score == row.score,
                        UserScore.created_at < row.created_at,
                    ),
                    and_(
                        UserScore.score == row.score,
                        UserScore.created_at == row.created_at,
                        UserScore.user_id < row.user_id,
                    ),
                ),
            )

        return int(ahead) + 1

    # ========================================================================
    # PRIVATE HELPERS
    # ========================================================================

    def _resolve_limit(self, limit: Optional[int]) -> int:
        max_limit = int(
            self.get_config("progression.leaderboard.max_limit", MAX_LEADERBOARD_LIMIT)
        )
        if limit is None:
            limit = int(
                self.get_config(
                    "progression.leaderboard.default_limit", DEFAULT_LEADERBOARD_LIMIT
                )
            )

        limit = InputValidator.validate_positive_integer(limit, field_name="limit")
        if limit > max_limit:
            raise ValidationError("limit", f"Limit cannot exceed {max_limit}")
        return limit
