"""
Level & Points Configuration Service
====================================

Purpose
-------
Owns the ordered level thresholds and the per-difficulty point-award
tables. Read-mostly for the progression engine, admin-writable.

Domain
------
- Active level ladder (ascending by level) and admin CRUD on thresholds
- Canonical PointsConfig row (lowest id) and partial admin updates
- Fallback point tables when no PointsConfig row exists
- Idempotent default seeding plus the legacy scalar-table migration
- Level lookup for a points total

Design Notes
------------
- Threshold integrity (unique level numbers, non-negative min_points) is
  validated on admin writes only. Readers use `resolve_level`, which
  tolerates gaps and out-of-order rows.
- Concurrent admin writers are last-write-wins.
- `level_config.updated` is emitted after every committed admin write.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from sqlalchemy import select

from src.core.logging.logger import get_logger
from src.core.validation.input_validator import InputValidator
from src.database.models import LevelThreshold, PointsConfig
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.constants import (
    DEFAULT_FINAL_QUIZ_POINTS,
    DEFAULT_LEVELS,
    DEFAULT_QUIZ_POINTS,
    DEFAULT_SECTION_POINTS,
    DEFAULT_STREAK_BONUS,
    EVENT_LEVEL_CONFIG_UPDATED,
)
from src.modules.shared.exceptions import NotFoundError, ValidationError
from src.modules.shared.formulas import migrate_points_table, resolve_level
from src.modules.shared.validators import (
    validate_level_number,
    validate_level_title,
    validate_min_points,
    validate_points_table,
    validate_streak_bonus,
    validate_unique_level_number,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from src.core.config.manager import ConfigManager
    from src.core.database.service import DatabaseService
    from src.core.event.bus import EventBus


POINTS_TABLE_FIELDS = ("section_points", "quiz_points", "final_quiz_points")

LEVEL_FIELDS = ("id", "level", "min_points", "title", "description", "is_active")

_BUILTIN_TABLES: Mapping[str, Mapping[str, int]] = {
    "section_points": DEFAULT_SECTION_POINTS,
    "quiz_points": DEFAULT_QUIZ_POINTS,
    "final_quiz_points": DEFAULT_FINAL_QUIZ_POINTS,
}


# ============================================================================
# Repositories
# ============================================================================


class LevelThresholdRepository(BaseRepository[LevelThreshold]):
    """Repository for LevelThreshold model."""

    async def active_levels(self, session: AsyncSession) -> List[LevelThreshold]:
        return await self.find_many_where(
            session,
            LevelThreshold.is_active.is_(True),
            order_by=[LevelThreshold.level, LevelThreshold.id],
        )


class PointsConfigRepository(BaseRepository[PointsConfig]):
    """Repository for PointsConfig model."""

    async def first(
        self, session: AsyncSession, for_update: bool = False
    ) -> Optional[PointsConfig]:
        """Canonical row: the lowest id. Extra rows are tolerated and ignored."""
        stmt = select(PointsConfig).order_by(PointsConfig.id).limit(1)
        if for_update:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        return result.scalars().first()


# ============================================================================
# LevelConfigService
# ============================================================================


class LevelConfigService(BaseService):
    """
    Service for level thresholds and points configuration.

    Public Methods
    --------------
    - get_active_levels() / get_all_levels() / get_level()
    - create_level() / update_level() / delete_level() / deactivate_level()
    - get_points_config() / get_effective_points_config() / update_points_config()
    - initialize_defaults()
    - get_user_level()
    """

    def __init__(
        self,
        database: DatabaseService,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(database, config_manager, event_bus, logger)

        self._level_repo = LevelThresholdRepository(
            model_class=LevelThreshold,
            logger=get_logger(f"{__name__}.LevelThresholdRepository"),
        )
        self._points_repo = PointsConfigRepository(
            model_class=PointsConfig,
            logger=get_logger(f"{__name__}.PointsConfigRepository"),
        )

    # ========================================================================
    # PUBLIC API - Levels (read)
    # ========================================================================

    async def get_active_levels(self) -> List[Dict[str, Any]]:
        """
        Active thresholds ascending by level. An empty list is valid.

        This is a **read-only** operation using get_session().
        """
        async with self.db.get_session() as session:
            levels = await self._level_repo.active_levels(session)
            return [self._level_to_dict(level) for level in levels]

    async def get_all_levels(self) -> List[Dict[str, Any]]:
        """All thresholds, inactive included, ascending by level."""
        async with self.db.get_session() as session:
            levels = await self._level_repo.find_many_where(
                session, order_by=[LevelThreshold.level, LevelThreshold.id]
            )
            return [self._level_to_dict(level) for level in levels]

    async def get_level(self, level_id: int) -> Dict[str, Any]:
        level_id = InputValidator.validate_positive_integer(level_id, "level_id")

        async with self.db.get_session() as session:
            level = await self._level_repo.get(session, level_id)
            if level is None:
                raise NotFoundError("LevelThreshold", level_id)
            return self._level_to_dict(level)

    async def get_user_level(self, points: int) -> Dict[str, Any]:
        """
        Level reached at ``points``.

        Returns:
            {"level": int, "title": str, "min_points": int}
        """
        points = InputValidator.validate_non_negative_integer(points, "points")
        current = resolve_level(await self.get_active_levels(), points)
        return {
            "level": current["level"],
            "title": current["title"],
            "min_points": current["min_points"],
        }

    # ========================================================================
    # PUBLIC API - Levels (admin writes)
    # ========================================================================

    async def create_level(
        self,
        level: int,
        min_points: int,
        title: str,
        description: Optional[str] = None,
        is_active: bool = True,
    ) -> Dict[str, Any]:
        """
        Create a threshold.

        Raises:
            ValidationError: Negative min_points, bad level number or title,
                or a level number already used by an active threshold
        """
        validate_level_number(level)
        validate_min_points(min_points)
        validate_level_title(title)

        self.log_operation("create_level", level=level, min_points=min_points)

        async with self.db.get_transaction() as session:
            if is_active:
                existing = await self._level_repo.active_levels(session)
                validate_unique_level_number(level, (lvl.level for lvl in existing))

            threshold = LevelThreshold(
                level=level,
                min_points=min_points,
                title=title.strip(),
                description=description,
                is_active=is_active,
            )
            self._level_repo.add(session, threshold)
            await self._level_repo.flush(session)
            record = self._level_to_dict(threshold)

        await self.emit_event(
            EVENT_LEVEL_CONFIG_UPDATED,
            {"action": "level_created", "level_id": record["id"], "level": level},
        )
        return record

    async def update_level(self, level_id: int, **fields: Any) -> Dict[str, Any]:
        """
        Partially update a threshold.

        Args:
            level_id: Threshold id
            **fields: Any of level, min_points, title, description, is_active

        Raises:
            NotFoundError: Unknown id
            ValidationError: Invalid field value or level-number clash
        """
        level_id = InputValidator.validate_positive_integer(level_id, "level_id")

        allowed = set(LEVEL_FIELDS) - {"id"}
        unknown = set(fields) - allowed
        if unknown:
            raise ValidationError(
                "fields", f"Cannot update: {', '.join(sorted(unknown))}"
            )
        if "level" in fields:
            validate_level_number(fields["level"])
        if "min_points" in fields:
            validate_min_points(fields["min_points"])
        if "title" in fields:
            validate_level_title(fields["title"])

        self.log_operation("update_level", level_id=level_id, fields=sorted(fields))

        async with self.db.get_transaction() as session:
            threshold = await self._level_repo.get_for_update(session, level_id)
            if threshold is None:
                raise NotFoundError("LevelThreshold", level_id)

            new_level = fields.get("level", threshold.level)
            will_be_active = fields.get("is_active", threshold.is_active)
            if will_be_active and ("level" in fields or "is_active" in fields):
                others = await self._level_repo.active_levels(session)
                validate_unique_level_number(
                    new_level, (lvl.level for lvl in others if lvl.id != level_id)
                )

            for field, value in fields.items():
                setattr(threshold, field, value.strip() if field == "title" else value)

            await self._level_repo.flush(session)
            record = self._level_to_dict(threshold)

        await self.emit_event(
            EVENT_LEVEL_CONFIG_UPDATED,
            {"action": "level_updated", "level_id": level_id, "fields": sorted(fields)},
        )
        return record

    async def delete_level(self, level_id: int) -> None:
        """Hard delete. Prefer deactivate_level() for normal operation."""
        level_id = InputValidator.validate_positive_integer(level_id, "level_id")

        self.log_operation("delete_level", level_id=level_id)

        async with self.db.get_transaction() as session:
            threshold = await self._level_repo.get_for_update(session, level_id)
            if threshold is None:
                raise NotFoundError("LevelThreshold", level_id)
            await self._level_repo.delete(session, threshold)

        await self.emit_event(
            EVENT_LEVEL_CONFIG_UPDATED,
            {"action": "level_deleted", "level_id": level_id},
        )

    async def deactivate_level(self, level_id: int) -> Dict[str, Any]:
        """Soft delete: the threshold stays stored but drops out of the ladder."""
        return await self.update_level(level_id, is_active=False)

    # ========================================================================
    # PUBLIC API - Points configuration
    # ========================================================================

    async def get_points_config(self) -> Optional[Dict[str, Any]]:
        """
        Canonical PointsConfig row, or None when none exists.

        Tables are returned as stored; a legacy scalar shows up unmigrated.
        """
        async with self.db.get_session() as session:
            row = await self._points_repo.first(session)
            return self._points_to_dict(row) if row is not None else None

    async def get_effective_points_config(self) -> Dict[str, Any]:
        """
        Points tables the engine awards from.

        Uses the stored row when present (normalizing a legacy scalar on
        the fly and filling missing difficulties from the fallback) and the
        fallback tables otherwise.
        """
        stored = await self.get_points_config()
        fallback = self.fallback_points_tables()

        if stored is None:
            self.log.info(
                "No PointsConfig row; using fallback point tables",
                extra={"operation": "get_effective_points_config"},
            )
            return {
                **fallback,
                "streak_bonus": self.default_streak_bonus(),
                "is_fallback": True,
            }

        effective: Dict[str, Any] = {
            field: self._normalize_table(stored[field], fallback[field])
            for field in POINTS_TABLE_FIELDS
        }
        effective["streak_bonus"] = (
            stored.get("streak_bonus") or self.default_streak_bonus()
        )
        effective["is_fallback"] = False
        return effective

    async def update_points_config(
        self,
        section_points: Optional[Mapping[str, int]] = None,
        quiz_points: Optional[Mapping[str, int]] = None,
        final_quiz_points: Optional[Mapping[str, int]] = None,
        streak_bonus: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Merge per-difficulty changes into the canonical row (created from
        the fallback tables if missing).

        Raises:
            ValidationError: Negative values or unknown difficulty keys
        """
        updates = {
            "section_points": section_points,
            "quiz_points": quiz_points,
            "final_quiz_points": final_quiz_points,
        }
        for field, table in updates.items():
            if table is not None:
                validate_points_table(field, table, partial=True)
        if streak_bonus is not None:
            validate_streak_bonus(streak_bonus)

        changed = sorted(
            [field for field, table in updates.items() if table is not None]
            + (["streak_bonus"] if streak_bonus is not None else [])
        )
        self.log_operation("update_points_config", fields=changed)

        fallback = self.fallback_points_tables()

        async with self.db.get_transaction() as session:
            row = await self._points_repo.first(session, for_update=True)
            if row is None:
                row = PointsConfig(
                    section_points=fallback["section_points"],
                    quiz_points=fallback["quiz_points"],
                    final_quiz_points=fallback["final_quiz_points"],
                    streak_bonus=self.default_streak_bonus(),
                )
                self._points_repo.add(session, row)

            for field, table in updates.items():
                if table is None:
                    continue
                current = self._normalize_table(getattr(row, field), fallback[field])
                setattr(row, field, {**current, **dict(table)})

            if streak_bonus is not None:
                merged_bonus = {**(row.streak_bonus or self.default_streak_bonus())}
                merged_bonus.update(dict(streak_bonus))
                row.streak_bonus = merged_bonus

            await self._points_repo.flush(session)
            record = self._points_to_dict(row)

        await self.emit_event(
            EVENT_LEVEL_CONFIG_UPDATED,
            {"action": "points_config_updated", "fields": changed},
        )
        return record

    # ========================================================================
    # PUBLIC API - Seeding & migration
    # ========================================================================

    async def initialize_defaults(self) -> Dict[str, Any]:
        """
        Seed the default ladder and PointsConfig; migrate legacy tables.

        Idempotent: levels are seeded only when no threshold exists at all,
        the PointsConfig row only when none exists. A stored scalar table
        (e.g. ``final_quiz_points = 3``) is rewritten to
        ``{easy: 3, intermediate: 4, advanced: 5}``.

        Returns:
            {"levels_created": int, "points_config_created": bool,
             "migrated_fields": list[str]}
        """
        self.log_operation("initialize_defaults")

        levels_created = 0
        points_config_created = False
        migrated_fields: List[str] = []

        async with self.db.get_transaction() as session:
            if await self._level_repo.count(session) == 0:
                self._level_repo.add_many(
                    session,
                    [
                        LevelThreshold(
                            level=level,
                            min_points=min_points,
                            title=title,
                            description=description,
                            is_active=True,
                        )
                        for level, min_points, title, description in DEFAULT_LEVELS
                    ],
                )
                levels_created = len(DEFAULT_LEVELS)

            row = await self._points_repo.first(session, for_update=True)
            if row is None:
                self._points_repo.add(
                    session,
                    PointsConfig(
                        section_points=dict(DEFAULT_SECTION_POINTS),
                        quiz_points=dict(DEFAULT_QUIZ_POINTS),
                        final_quiz_points=dict(DEFAULT_FINAL_QUIZ_POINTS),
                        streak_bonus=dict(DEFAULT_STREAK_BONUS),
                    ),
                )
                points_config_created = True
            else:
                for field in POINTS_TABLE_FIELDS:
                    migrated = migrate_points_table(getattr(row, field))
                    if migrated is not None:
                        setattr(row, field, migrated)
                        migrated_fields.append(field)

        if migrated_fields:
            self.log.warning(
                "Migrated legacy scalar points tables",
                extra={"migrated_fields": migrated_fields},
            )

        self.log.info(
            "Level configuration defaults ensured",
            extra={
                "levels_created": levels_created,
                "points_config_created": points_config_created,
                "migrated_fields": migrated_fields,
            },
        )

        if levels_created or points_config_created or migrated_fields:
            await self.emit_event(
                EVENT_LEVEL_CONFIG_UPDATED,
                {
                    "action": "defaults_initialized",
                    "levels_created": levels_created,
                    "points_config_created": points_config_created,
                    "migrated_fields": migrated_fields,
                },
            )

        return {
            "levels_created": levels_created,
            "points_config_created": points_config_created,
            "migrated_fields": migrated_fields,
        }

    # ========================================================================
    # Fallbacks
    # ========================================================================

    def fallback_points_tables(self) -> Dict[str, Dict[str, int]]:
        return {
            field: dict(
                self.get_config(f"progression.fallback_points.{field}", dict(builtin))
            )
            for field, builtin in _BUILTIN_TABLES.items()
        }

    def default_streak_bonus(self) -> Dict[str, Any]:
        return dict(
            self.get_config("progression.streak_bonus", dict(DEFAULT_STREAK_BONUS))
        )

    # ========================================================================
    # PRIVATE HELPERS
    # ========================================================================

    @staticmethod
    def _normalize_table(value: Any, fallback: Mapping[str, int]) -> Dict[str, int]:
        migrated = migrate_points_table(value)
        if migrated is not None:
            return migrated
        if isinstance(value, Mapping):
            return {**dict(fallback), **{str(k).lower(): v for k, v in value.items()}}
        return dict(fallback)

    @staticmethod
    def _level_to_dict(level: LevelThreshold) -> Dict[str, Any]:
        return BaseRepository.to_dict(level, LEVEL_FIELDS)

    @staticmethod
    def _points_to_dict(row: PointsConfig) -> Dict[str, Any]:
        return {
            "id": row.id,
            "section_points": row.section_points,
            "quiz_points": row.quiz_points,
            "final_quiz_points": row.final_quiz_points,
            "streak_bonus": row.streak_bonus,
        }
