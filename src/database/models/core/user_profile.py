"""
User Profile Model
==================

The user directory record the progression engine reads and writes:
identity, display names, day streak and the embedded points history.

Schema only. Streak rules and history appends live in the progression
services.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, JSONDocument, TimestampMixin


class UserProfile(Base, TimestampMixin):
    """
    A learner. `id` is the opaque identifier issued by the auth layer.

    `points_history` is append-only: a list of
    ``{source, source_id, points_gained, timestamp, difficulty}`` entries.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)

    username: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    # ========================================================================
    # STREAK
    # ========================================================================

    day_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_active_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # ========================================================================
    # HISTORY
    # ========================================================================

    points_history: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSONDocument, nullable=False, default=list
    )

    def __repr__(self) -> str:
        return f"<UserProfile(id={self.id!r}, username={self.username!r}, streak={self.day_streak})>"
