"""
Attempt Ledger Service
======================

Purpose
-------
Per-user record of which (source, source_id) rewards were already granted.
This is the idempotency gate of the award path.

Design Notes
------------
- The gate is a conditional insert on the unique (user_id, attempt_key)
  constraint. The insert succeeding *is* the proof of first attempt, so
  two concurrent awards for the same attempt cannot both pay out.
- `claim_attempt()` runs inside the caller's transaction: the ledger entry
  and the score increment commit or roll back together.
- `is_first_attempt()` is a read-only pre-check (UI warnings). It fails
  closed: if the store cannot be read it answers False. It does not create
  the per-user ledger header; `claim_attempt()` does that on first claim.
- Keys are ``"<source>_<source_id>"``, a flat namespace per user.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict

from src.core.database.base import as_utc, utc_now
from src.core.database.service import DatabaseNotInitializedError
from src.core.exceptions import DatabaseError
from src.core.logging.logger import get_logger
from src.core.validation.input_validator import InputValidator
from src.database.models import AttemptLedger, AttemptRecord
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.constants import ATTEMPT_KEY_SEPARATOR, AWARD_SOURCES

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from src.core.config.manager import ConfigManager
    from src.core.database.service import DatabaseService
    from src.core.event.bus import EventBus


def attempt_key(source: str, source_id: str) -> str:
    """
    >>> attempt_key("module_quiz", "q-7")
    'module_quiz_q-7'
    """
    return f"{source}{ATTEMPT_KEY_SEPARATOR}{source_id}"


# ============================================================================
# Repositories
# ============================================================================


class AttemptLedgerRepository(BaseRepository[AttemptLedger]):
    """Repository for the per-user ledger header."""

    async def ensure(self, session: AsyncSession, user_id: str) -> bool:
        """Create the header row if absent. Returns True if created."""
        now = utc_now()
        return await self.insert_if_absent(
            session,
            {"user_id": user_id, "created_at": now, "updated_at": now},
            conflict_columns=["user_id"],
        )


class AttemptRecordRepository(BaseRepository[AttemptRecord]):
    """Repository for rewarded attempts."""


# ============================================================================
# AttemptLedgerService
# ============================================================================


class AttemptLedgerService(BaseService):
    """
    Service for the attempt ledger.

    Public Methods
    --------------
    - is_first_attempt() -> Read-only pre-check (fails closed)
    - claim_attempt() -> Conditional insert inside a caller transaction
    - mark_attempted() -> claim_attempt() in its own transaction
    - get_attempts() -> All rewarded attempts of a user
    """

    def __init__(
        self,
        database: DatabaseService,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(database, config_manager, event_bus, logger)

        self._ledger_repo = AttemptLedgerRepository(
            model_class=AttemptLedger,
            logger=get_logger(f"{__name__}.AttemptLedgerRepository"),
        )
        self._record_repo = AttemptRecordRepository(
            model_class=AttemptRecord,
            logger=get_logger(f"{__name__}.AttemptRecordRepository"),
        )

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def is_first_attempt(self, user_id: str, source: str, source_id: str) -> bool:
        """
        True when no reward was recorded yet for this (source, source_id).

        Never writes: the per-user ledger header is created by the first
        successful claim, not by this check. Any store failure, including an
        uninitialized database, yields False so a flaky read cannot lead to a
        double reward.
        """
        user_id, source, source_id = self._validate(user_id, source, source_id)
        key = attempt_key(source, source_id)

        try:
            async with self.db.get_session() as session:
                already = await self._record_repo.exists(
                    session,
                    AttemptRecord.user_id == user_id,
                    AttemptRecord.attempt_key == key,
                )
        except (DatabaseError, DatabaseNotInitializedError) as exc:
            self.log_error(
                "is_first_attempt",
                exc,
                user_id=user_id,
                attempt_key=key,
                fail_closed=True,
            )
            return False

        return not already

    async def claim_attempt(
        self,
        session: AsyncSession,
        user_id: str,
        source: str,
        source_id: str,
    ) -> bool:
        """
        Record the attempt if it is new, inside the caller's transaction.

        Returns:
            True if this call recorded the attempt (first attempt), False if
            it was already recorded.
        """
        key = attempt_key(source, source_id)
        now = utc_now()

        await self._ledger_repo.ensure(session, user_id)

        claimed = await self._record_repo.insert_if_absent(
            session,
            {
                "user_id": user_id,
                "attempt_key": key,
                "source": source,
                "source_id": source_id,
                "completed_at": now,
            },
            conflict_columns=["user_id", "attempt_key"],
        )

        if claimed:
            ledger = await self._ledger_repo.find_one_where(
                session, AttemptLedger.user_id == user_id
            )
            if ledger is not None:
                ledger.updated_at = now

        self.log.debug(
            "Attempt claim evaluated",
            extra={"user_id": user_id, "attempt_key": key, "claimed": claimed},
        )
        return claimed

    async def mark_attempted(self, user_id: str, source: str, source_id: str) -> bool:
        """Standalone mark. Returns False if the attempt was already recorded."""
        user_id, source, source_id = self._validate(user_id, source, source_id)

        async with self.db.get_transaction() as session:
            return await self.claim_attempt(session, user_id, source, source_id)

    async def get_attempts(self, user_id: str) -> Dict[str, Dict[str, Any]]:
        """
        Rewarded attempts keyed by attempt key.

        Returns:
            {"<source>_<source_id>": {"completed_at", "source", "source_id"}}
        """
        user_id = InputValidator.validate_identifier(user_id, "user_id")

        async with self.db.get_session() as session:
            records = await self._record_repo.find_many_where(
                session,
                AttemptRecord.user_id == user_id,
                order_by=[AttemptRecord.completed_at, AttemptRecord.id],
            )

        return {
            record.attempt_key: {
                "completed_at": as_utc(record.completed_at),
                "source": record.source,
                "source_id": record.source_id,
            }
            for record in records
        }

    # ========================================================================
    # PRIVATE HELPERS
    # ========================================================================

    @staticmethod
    def _validate(user_id: Any, source: Any, source_id: Any) -> tuple[str, str, str]:
        return (
            InputValidator.validate_identifier(user_id, "user_id"),
            InputValidator.validate_choice(source, "source", AWARD_SOURCES),
            InputValidator.validate_identifier(source_id, "source_id"),
        )
