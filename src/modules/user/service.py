"""
User Directory Service
======================

Purpose
-------
System of record for the user fields the progression engine depends on:
display names, day streak, last active date and the embedded points
history.

Domain
------
- Register a user profile (identity issued by the auth layer)
- Read a profile
- Partially update whitelisted profile fields

Design Notes
------------
- The progression engine writes streak and history fields inside its own
  award transaction through `UserProfileRepository`; this service is the
  standalone read/update surface.
- JSON columns are replaced, never mutated in place, so SQLAlchemy always
  detects the change.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

from src.core.database.base import as_utc, utc_now
from src.core.logging.logger import get_logger
from src.core.validation.input_validator import InputValidator
from src.database.models import UserProfile
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import (
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.database.service import DatabaseService
    from src.core.event.bus import EventBus


UPDATABLE_FIELDS = frozenset(
    {"username", "name", "day_streak", "last_active_date", "points_history"}
)


# ============================================================================
# Repository
# ============================================================================


class UserProfileRepository(BaseRepository[UserProfile]):
    """Repository for UserProfile model."""

    @staticmethod
    def to_record(user: UserProfile) -> Dict[str, Any]:
        return {
            "id": user.id,
            "username": user.username,
            "name": user.name,
            "day_streak": user.day_streak or 0,
            "last_active_date": as_utc(user.last_active_date),
            "points_history": list(user.points_history or []),
            "created_at": as_utc(user.created_at),
            "updated_at": as_utc(user.updated_at),
        }


# ============================================================================
# UserService
# ============================================================================


class UserService(BaseService):
    """
    Service for the user directory.

    Public Methods
    --------------
    - create_user() -> Register a profile
    - get_user() -> Read a profile
    - update_user() -> Partially update a profile
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

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def create_user(
        self,
        user_id: str,
        username: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Register a new user profile with an empty streak and history.

        Raises:
            InvalidOperationError: If the id is already registered
        """
        user_id = InputValidator.validate_identifier(user_id, "user_id")

        self.log_operation("create_user", user_id=user_id)

        async with self.db.get_transaction() as session:
            if await self._user_repo.get(session, user_id) is not None:
                raise InvalidOperationError(
                    "create_user", f"User {user_id} already exists"
                )

            now = utc_now()
            user = UserProfile(
                id=user_id,
                username=username,
                name=name,
                day_streak=0,
                last_active_date=None,
                points_history=[],
                created_at=now,
                updated_at=now,
            )
            self._user_repo.add(session, user)
            await self._user_repo.flush(session)

            record = self._user_repo.to_record(user)

        self.log.info("User registered", extra={"user_id": user_id})
        return record

    async def get_user(self, user_id: str) -> Dict[str, Any]:
        """
        Read a profile.

        This is a **read-only** operation using get_session().

        Raises:
            NotFoundError: If no profile exists
        """
        user_id = InputValidator.validate_identifier(user_id, "user_id")

        async with self.db.get_session() as session:
            user = await self._user_repo.get(session, user_id)
            if user is None:
                raise NotFoundError("User", user_id)
            return self._user_repo.to_record(user)

    async def update_user(self, user_id: str, **fields: Any) -> Dict[str, Any]:
        """
        Partially update whitelisted profile fields.

        Args:
            user_id: Profile id
            **fields: Any of username, name, day_streak, last_active_date,
                points_history

        Raises:
            ValidationError: Unknown field or invalid value
            NotFoundError: If no profile exists
        """
        user_id = InputValidator.validate_identifier(user_id, "user_id")

        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                "fields", f"Cannot update: {', '.join(sorted(unknown))}"
            )
        self._validate_fields(fields)

        self.log_operation("update_user", user_id=user_id, fields=sorted(fields))

        async with self.db.get_transaction() as session:
            user = await self._user_repo.get_for_update(session, user_id)
            if user is None:
                raise NotFoundError("User", user_id)

            for field, value in fields.items():
                if field == "points_history":
                    value = list(value)
                setattr(user, field, value)
            user.updated_at = utc_now()

            await self._user_repo.flush(session)
            return self._user_repo.to_record(user)

    # ========================================================================
    # PRIVATE HELPERS
    # ========================================================================

    def _validate_fields(self, fields: Dict[str, Any]) -> None:
        if "day_streak" in fields:
            self.validate_non_negative_int(fields["day_streak"], "day_streak")

        last_active = fields.get("last_active_date")
        if last_active is not None and not isinstance(last_active, datetime):
            raise ValidationError("last_active_date", "Must be a datetime")

        history = fields.get("points_history")
        if history is not None and not isinstance(history, list):
            raise ValidationError("points_history", "Must be a list")
