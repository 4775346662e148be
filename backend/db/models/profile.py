"""Profile model definitions."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKeyConstraint,
    Index,
    PrimaryKeyConstraint,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from backend.db.base import Base

logger = logging.getLogger(__name__)

USERNAME_PATTERN = "^[a-zA-Z0-9_]{3,20}$"


class Profile(Base):
    """One identity/display row per auth subject."""

    __tablename__ = "profiles"
    __table_args__ = (
        PrimaryKeyConstraint("id", name="pk_profiles"),
        ForeignKeyConstraint(
            ["id"],
            ["auth.users.id"],
            name="fk_profiles_auth_user",
            ondelete="CASCADE",
        ),
        CheckConstraint(
            f"username ~ '{USERNAME_PATTERN}'",
            name="ck_profiles_username_format",
        ),
        {"schema": "public"},
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    email: Mapped[str] = mapped_column(Text, nullable=False)
    username: Mapped[str] = mapped_column(Text, nullable=False)
    country: Mapped[str | None] = mapped_column(Text, nullable=True)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )


# Case-insensitive uniqueness is the only guard against concurrent username claims.
Index(
    "uqix_profiles_username_lower",
    func.lower(Profile.username),
    unique=True,
)
