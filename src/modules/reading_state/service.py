"""
Reading State Service
=====================

Purpose
-------
Remember which learning modules a user opened most recently so the client
can offer "continue reading".

Design Notes
------------
- One row per (user, module); reopening a module refreshes its timestamp.
- Only the newest N rows per user are kept
  (`reading_state.max_recent_modules`, default 2); older rows are pruned in
  the same transaction as the upsert.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import delete

from src.core.database.base import as_utc, utc_now
from src.core.logging.logger import get_logger
from src.core.validation.input_validator import InputValidator
from src.database.models import ReadingState
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.constants import MAX_RECENT_MODULES

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from src.core.config.manager import ConfigManager
    from src.core.database.service import DatabaseService
    from src.core.event.bus import EventBus


_NEWEST_FIRST = (ReadingState.last_accessed_at.desc(), ReadingState.id.desc())


class ReadingStateRepository(BaseRepository[ReadingState]):
    """Repository for ReadingState model."""

    async def recent(
        self, session: AsyncSession, user_id: str, limit: Optional[int] = None
    ) -> List[ReadingState]:
        return await self.find_many_where(
            session,
            ReadingState.user_id == user_id,
            order_by=_NEWEST_FIRST,
            limit=limit,
        )

    async def prune(self, session: AsyncSession, user_id: str, keep: int) -> int:
        """Delete all but the newest ``keep`` rows of a user."""
        rows = await self.recent(session, user_id)
        stale_ids = [row.id for row in rows[keep:]]
        if not stale_ids:
            return 0

        await session.execute(
            delete(ReadingState)
            .where(ReadingState.id.in_(stale_ids))
            .execution_options(synchronize_session=False)
        )
        for row in rows[keep:]:
            session.expunge(row)
        return len(stale_ids)


class ReadingStateService(BaseService):
    """
    Public Methods
    --------------
    - record_module_access() -> Upsert access time and prune old entries
    - get_last_accessed_modules() -> Newest first
    """

    def __init__(
        self,
        database: DatabaseService,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(database, config_manager, event_bus, logger)

        self._state_repo = ReadingStateRepository(
            model_class=ReadingState,
            logger=get_logger(f"{__name__}.ReadingStateRepository"),
        )

    @property
    def max_recent_modules(self) -> int:
        return int(self.get_config("reading_state.max_recent_modules", MAX_RECENT_MODULES))

    async def record_module_access(
        self, user_id: str, module_id: str, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Mark a module as just opened by the user.

        Returns:
            The stored entry
        """
        user_id = InputValidator.validate_identifier(user_id, "user_id")
        module_id = InputValidator.validate_identifier(module_id, "module_id")
        now = now or utc_now()

        async with self.db.get_transaction() as session:
            created = await self._state_repo.insert_if_absent(
                session,
                {
                    "user_id": user_id,
                    "module_id": module_id,
                    "last_accessed_at": now,
                    "created_at": now,
                    "updated_at": now,
                },
                conflict_columns=["user_id", "module_id"],
            )

            state = await self._state_repo.find_one_where(
                session,
                ReadingState.user_id == user_id,
                ReadingState.module_id == module_id,
                for_update=True,
            )
            assert state is not None
            if not created:
                state.last_accessed_at = now
                state.updated_at = now
            await self._state_repo.flush(session)

            pruned = await self._state_repo.prune(session, user_id, self.max_recent_modules)
            record = self._to_dict(state)

        self.log.debug(
            "Module access recorded",
            extra={"user_id": user_id, "module_id": module_id, "pruned": pruned},
        )
        return record

    async def get_last_accessed_modules(self, user_id: str) -> List[Dict[str, Any]]:
        user_id = InputValidator.validate_identifier(user_id, "user_id")

        async with self.db.get_session() as session:
            rows = await self._state_repo.recent(session, user_id, limit=self.max_recent_modules)
            return [self._to_dict(row) for row in rows]

    @staticmethod
    def _to_dict(state: ReadingState) -> Dict[str, Any]:
        return {
            "user_id": state.user_id,
            "module_id": state.module_id,
            "last_accessed_at": as_utc(state.last_accessed_at),
        }
