"""
LevelThreshold: configured minimum cumulative points per level.
Schema only.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin


class LevelThreshold(Base, IdMixin, TimestampMixin):
    """
    One rung of the level ladder.

    Uniqueness of ``level`` and monotonic ``min_points`` across active rows
    are checked on admin writes only; readers must tolerate violations.
    """

    __tablename__ = "level_thresholds"
    __table_args__ = (
        Index("ix_level_thresholds_active_level", "is_active", "level"),
    )

    level: Mapped[int] = mapped_column(Integer, nullable=False)
    min_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<LevelThreshold(level={self.level}, min_points={self.min_points}, title={self.title!r})>"
