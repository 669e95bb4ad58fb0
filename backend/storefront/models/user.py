"""User ORM — account identity, credential digest, permissions, reset token.

Invariants:
    - email is unique and stored lower-case
    - password holds a bcrypt digest, never plaintext
    - permissions is a JSON list of unique Permission values
    - reset_token holds a SHA-256 digest; reset_token_expiry is absolute UTC
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime, JSON, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from storefront.db.base import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(320), nullable=False, unique=True, index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    password: Mapped[str] = mapped_column(String(100), nullable=False)
    permissions: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list,
    )
    reset_token: Mapped[str | None] = mapped_column(
        String(64), nullable=True, index=True,
    )
    reset_token_expiry: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
