"""
ReadingState: last time a user opened a learning module.
Schema only.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin, utc_now


class ReadingState(Base, IdMixin, TimestampMixin):
    __tablename__ = "reading_states"
    __table_args__ = (
        UniqueConstraint("user_id", "module_id", name="uq_reading_states_user_module"),
        Index("ix_reading_states_user_accessed", "user_id", "last_accessed_at"),
    )

    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    module_id: Mapped[str] = mapped_column(String(128), nullable=False)
    last_accessed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
