"""
Attempt ledger: which (source, source_id) rewards a user already received.
Schema only.

`AttemptLedger` is the per-user header row (created lazily);
`AttemptRecord` holds one row per rewarded attempt. The unique constraint
on (user_id, attempt_key) is the idempotency gate: inserting the record
is what proves an attempt is the first one.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin, utc_now


class AttemptLedger(Base, IdMixin, TimestampMixin):
    __tablename__ = "attempt_ledgers"

    user_id: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)


class AttemptRecord(Base, IdMixin):
    """A rewarded attempt, keyed by ``"<source>_<source_id>"`` within a user."""

    __tablename__ = "attempt_records"
    __table_args__ = (
        UniqueConstraint("user_id", "attempt_key", name="uq_attempt_records_user_key"),
        Index("ix_attempt_records_user", "user_id"),
    )

    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    attempt_key: Mapped[str] = mapped_column(String(300), nullable=False)
    source: Mapped[str] = mapped_column(String(32), nullable=False)
    source_id: Mapped[str] = mapped_column(String(128), nullable=False)
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
