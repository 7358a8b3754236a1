"""
UserScore: running points total per user.
Schema only.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin


class UserScore(Base, IdMixin, TimestampMixin):
    """
    One row per user, created on first read with score 0.

    Increments go through a single ``UPDATE ... SET score = score + :delta``
    so concurrent awards do not lose updates.
    """

    __tablename__ = "user_scores"
    __table_args__ = (
        Index("ix_user_scores_leaderboard", "score", "created_at"),
    )

    user_id: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    score: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<UserScore(user_id={self.user_id!r}, score={self.score})>"
