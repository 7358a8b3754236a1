"""
Score Accumulator Service
=========================

Purpose
-------
Per-user running points total.

Domain
------
- Read a score (created with 0 on first read)
- Atomic increments (standalone or inside the award transaction)
- Administrative set / delete / list / reset-all

Design Notes
------------
- Increments are a single ``UPDATE user_scores SET score = score + :delta``
  so concurrent awards to the same user never lose an update.
- Inside the award transaction the row is locked first (SELECT FOR UPDATE)
  to read the previous total; the post-increment value is re-read and a
  mismatch is logged as a possible lost update.
- Lazy creation uses a conditional insert, so two first reads cannot
  create two rows.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from sqlalchemy import select, update

from src.core.database.base import as_utc, utc_now
from src.core.logging.logger import get_logger
from src.core.validation.input_validator import InputValidator
from src.database.models import UserScore
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.constants import EVENT_SCORES_RESET
from src.modules.shared.exceptions import NotFoundError

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from src.core.config.manager import ConfigManager
    from src.core.database.service import DatabaseService
    from src.core.event.bus import EventBus


# ============================================================================
# Repository
# ============================================================================


class UserScoreRepository(BaseRepository[UserScore]):
    """Repository for UserScore model."""

    async def find_by_user(
        self, session: AsyncSession, user_id: str, for_update: bool = False
    ) -> Optional[UserScore]:
        return await self.find_one_where(
            session, UserScore.user_id == user_id, for_update=for_update
        )

    async def ensure(self, session: AsyncSession, user_id: str) -> bool:
        """Create a zero score if absent. Returns True if created."""
        now = utc_now()
        return await self.insert_if_absent(
            session,
            {"user_id": user_id, "score": 0, "created_at": now, "updated_at": now},
            conflict_columns=["user_id"],
        )

    async def increment(self, session: AsyncSession, user_id: str, delta: int) -> int:
        """Atomic ``score = score + delta``. Returns the number of rows touched."""
        result = await session.execute(
            update(UserScore)
            .where(UserScore.user_id == user_id)
            .values(score=UserScore.score + delta, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )

        self.log.debug(
            "Repository.increment: UserScore",
            extra={"user_id": user_id, "delta": delta, "rowcount": result.rowcount},
        )
        return result.rowcount

    async def read_score(self, session: AsyncSession, user_id: str) -> Optional[int]:
        """Current value straight from the database, bypassing the identity map."""
        result = await session.execute(
            select(UserScore.score).where(UserScore.user_id == user_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def to_record(row: UserScore) -> Dict[str, Any]:
        return {
            "user_id": row.user_id,
            "score": row.score,
            "created_at": as_utc(row.created_at),
            "updated_at": as_utc(row.updated_at),
        }


# ============================================================================
# ScoreService
# ============================================================================


class ScoreService(BaseService):
    """
    Service for the per-user score accumulator.

    Public Methods
    --------------
    - get_score() -> Current total (creates a zero record on first read)
    - get_score_record() -> Full record or NotFoundError
    - add_score() -> Atomic increment of an existing record
    - apply_increment() -> Increment inside a caller transaction
    - set_score() / delete_score() / list_scores() / reset_all() -> Admin
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

    @property
    def repository(self) -> UserScoreRepository:
        return self._score_repo

    # ========================================================================
    # PUBLIC API - Read
    # ========================================================================

    async def get_score(self, user_id: str) -> int:
        """
        Current total. A zero record is created on first access.

        This is a **write operation** only when the record is missing.
        """
        user_id = InputValidator.validate_identifier(user_id, "user_id")

        async with self.db.get_transaction() as session:
            created = await self._score_repo.ensure(session, user_id)
            score = await self._score_repo.read_score(session, user_id)

        if created:
            self.log.info("Score record created", extra={"user_id": user_id})

        return int(score or 0)

    async def get_score_record(self, user_id: str) -> Dict[str, Any]:
        user_id = InputValidator.validate_identifier(user_id, "user_id")

        async with self.db.get_session() as session:
            row = await self._score_repo.find_by_user(session, user_id)
            if row is None:
                raise NotFoundError("UserScore", user_id)
            return self._score_repo.to_record(row)

    async def list_scores(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """All score records, highest first."""
        if limit is not None:
            limit = InputValidator.validate_positive_integer(limit, "limit")

        async with self.db.get_session() as session:
            rows = await self._score_repo.find_many_where(
                session,
                order_by=[
                    UserScore.score.desc(),
                    UserScore.created_at.asc(),
                    UserScore.user_id.asc(),
                ],
                limit=limit,
            )
            return [self._score_repo.to_record(row) for row in rows]

    # ========================================================================
    # PUBLIC API - Write
    # ========================================================================

    async def add_score(self, user_id: str, delta: int) -> int:
        """
        Atomically add ``delta`` to an existing record.

        Returns:
            The new total

        Raises:
            NotFoundError: If the user has no score record yet
            ValidationError: If delta is negative
        """
        user_id = InputValidator.validate_identifier(user_id, "user_id")
        delta = InputValidator.validate_non_negative_integer(delta, "delta")

        async with self.db.get_transaction() as session:
            _, new_score = await self.apply_increment(session, user_id, delta)

        return new_score

    async def apply_increment(
        self, session: AsyncSession, user_id: str, delta: int
    ) -> Tuple[int, int]:
        """
        Increment inside the caller's transaction.

        Returns:
            (previous_score, new_score)

        Raises:
            NotFoundError: If the user has no score record
        """
        row = await self._score_repo.find_by_user(session, user_id, for_update=True)
        if row is None:
            raise NotFoundError("UserScore", user_id)

        previous = int(row.score)
        touched = await self._score_repo.increment(session, user_id, delta)
        if touched != 1:
            raise NotFoundError("UserScore", user_id)

        observed = await self._score_repo.read_score(session, user_id)
        expected = previous + delta
        if observed != expected:
            # Another writer slipped in between the lock and the increment
            self.log.warning(
                "Possible lost update on score increment",
                extra={
                    "user_id": user_id,
                    "previous_score": previous,
                    "delta": delta,
                    "expected_score": expected,
                    "observed_score": observed,
                },
            )

        return previous, int(observed if observed is not None else expected)

    async def set_score(self, user_id: str, score: int) -> Dict[str, Any]:
        """Admin override of a user's total (record created if missing)."""
        user_id = InputValidator.validate_identifier(user_id, "user_id")
        score = InputValidator.validate_non_negative_integer(score, "score")

        self.log_operation("set_score", user_id=user_id, score=score)

        async with self.db.get_transaction() as session:
            await self._score_repo.ensure(session, user_id)
            row = await self._score_repo.find_by_user(session, user_id, for_update=True)
            assert row is not None
            row.score = score
            row.updated_at = utc_now()
            await self._score_repo.flush(session)
            return self._score_repo.to_record(row)

    async def delete_score(self, user_id: str) -> None:
        user_id = InputValidator.validate_identifier(user_id, "user_id")

        self.log_operation("delete_score", user_id=user_id)

        async with self.db.get_transaction() as session:
            row = await self._score_repo.find_by_user(session, user_id, for_update=True)
            if row is None:
                raise NotFoundError("UserScore", user_id)
            await self._score_repo.delete(session, row)

    async def reset_all(self) -> int:
        """
        Set every user's score to 0.

        Returns:
            Number of records reset
        """
        self.log_operation("reset_all")

        async with self.db.get_transaction() as session:
            result = await session.execute(
                update(UserScore)
                .values(score=0, updated_at=utc_now())
                .execution_options(synchronize_session=False)
            )
            reset_count = int(result.rowcount or 0)

        self.log.warning("All scores reset", extra={"reset_count": reset_count})
        await self.emit_event(EVENT_SCORES_RESET, {"reset_count": reset_count})
        return reset_count
