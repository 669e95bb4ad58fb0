"""CheckoutAttempt ORM — per-user checkout claim and reconciliation ledger.

Invariants:
    - At most one row per user with status 'pending' (partial unique index);
      inserting a second one is how a concurrent checkout is detected
    - charge_id is written as soon as the processor returns a receipt,
      before the order is materialized
    - Rows in 'ambiguous' or 'conflict' status are the reconciliation queue
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    DateTime, ForeignKey, Index, Integer, JSON, String, Uuid, text,
)
from sqlalchemy.orm import Mapped, mapped_column

from storefront.db.base import Base


class CheckoutAttempt(Base):
    __tablename__ = "checkout_attempts"
    __table_args__ = (
        Index(
            "uq_checkout_attempts_one_pending_per_user",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending", index=True,
    )
    amount: Mapped[int | None] = mapped_column(Integer, nullable=True)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    charge_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    error_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    line_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    finished_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
