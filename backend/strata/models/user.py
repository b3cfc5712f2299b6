"""
Strata Backend: User SQLAlchemy Model
=====================================

What:  ORM model for the `users` table used by SqlUserRepository.
How:   Inherits from database.Base. The UNIQUE constraint on email is what
       makes concurrent registrations with the same address conflict
       atomically: the second INSERT fails with IntegrityError, which the
       adapter translates into ConflictError.

Table Design:
    - id:          32-char hex UUID, generated in Python (portable across engines)
    - email:       lower-cased by the service layer, UNIQUE
    - avatar_key:  FileStorage key of the user's avatar, NULL when unset
    - created_at:  UTC, indexed together with id for stable list ordering
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from strata.database import Base


def _new_id() -> str:
    return uuid.uuid4().hex


class UserRow(Base):
    """A persisted User."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    avatar_key: Mapped[str | None] = mapped_column(String(128), nullable=True, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        Index("idx_users_created_at_id", "created_at", "id"),
    )

    def __repr__(self) -> str:
        return f"<UserRow(id={self.id}, email='{self.email}')>"
