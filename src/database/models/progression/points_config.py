"""
PointsConfig: per-difficulty point-award tables.
Schema only.

The first row (lowest id) is canonical. Tables are stored as JSON so a
legacy scalar value (``final_quiz_points = 3``) can still be read and
migrated in place.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, JSONDocument, TimestampMixin


class PointsConfig(Base, IdMixin, TimestampMixin):
    __tablename__ = "points_config"

    section_points: Mapped[Any] = mapped_column(JSONDocument, nullable=False)
    quiz_points: Mapped[Any] = mapped_column(JSONDocument, nullable=False)
    final_quiz_points: Mapped[Any] = mapped_column(JSONDocument, nullable=False)

    # {enabled, streak_days, multiplier}
    streak_bonus: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSONDocument, nullable=True
    )
