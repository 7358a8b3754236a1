"""
Streak Tracker Service
======================

Purpose
-------
Maintain the consecutive-day counter on the user profile.

Rules (UTC calendar dates)
--------------------------
- no prior date            -> 1
- same day                 -> unchanged, nothing written
- exactly one day earlier  -> streak + 1
- anything else            -> 1 (gap of 2+ days, or a future date)

`last_active_date` is rewritten with the full timestamp whenever the
streak changes.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional, Tuple

from src.core.database.base import as_utc, utc_now
from src.core.logging.logger import get_logger
from src.core.validation.input_validator import InputValidator
from src.database.models import UserProfile
from src.modules.shared.base_service import BaseService
from src.modules.shared.constants import EVENT_STREAK_UPDATED
from src.modules.shared.exceptions import NotFoundError
from src.modules.shared.formulas import advance_streak
from src.modules.user.service import UserProfileRepository

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.database.service import DatabaseService
    from src.core.event.bus import EventBus


class StreakService(BaseService):
    """
    Public Methods
    --------------
    - update_streak() -> Advance the streak in its own transaction
    - apply_to_user() -> Advance the streak on an already locked profile
    """

    def __init__(
        self,
        database: DatabaseService,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(database, config_manager, event_bus, logger)

        self._user_repo = UserProfileRepository(
            model_class=UserProfile,
            logger=get_logger(f"{__name__}.UserProfileRepository"),
        )

    def apply_to_user(
        self, user: UserProfile, now: Optional[datetime] = None
    ) -> Tuple[int, int, bool]:
        """
        Advance the streak on a profile loaded inside the caller's transaction.

        Returns:
            (previous_streak, new_streak, changed)
        """
        now = now or utc_now()
        previous = int(user.day_streak or 0)
        new_streak, changed = advance_streak(previous, as_utc(user.last_active_date), now)

        if changed:
            user.day_streak = new_streak
            user.last_active_date = now
            user.updated_at = now

        return previous, new_streak, changed

    async def update_streak(self, user_id: str, now: Optional[datetime] = None) -> int:
        """
        Advance the user's streak.

        Returns:
            The current streak

        Raises:
            NotFoundError: If the user does not exist
        """
        user_id = InputValidator.validate_identifier(user_id, "user_id")

        async with self.db.get_transaction() as session:
            user = await self._user_repo.get_for_update(session, user_id)
            if user is None:
                raise NotFoundError("User", user_id)

            previous, current, changed = self.apply_to_user(user, now)

        if changed:
            self.log.info(
                "Day streak updated",
                extra={
                    "user_id": user_id,
                    "previous_streak": previous,
                    "day_streak": current,
                },
            )
            await self.emit_event(
                EVENT_STREAK_UPDATED,
                {"user_id": user_id, "previous_streak": previous, "day_streak": current},
            )

        return current
