# backend/app/models/chapter_membership.py

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from app.db.base import Base
from app.db.types import UTCDateTime, utcnow


class ChapterMembership(Base):
    __tablename__ = "chapter_memberships"
    __table_args__ = (
        UniqueConstraint("chapter_id", "user_id", name="uq_chapter_memberships_chapter_user"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    chapter_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("chapters.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # ADMIN | ACTIVE_MEMBER | ALUMNI
    role: Mapped[str] = mapped_column(String(30), nullable=False, default="ACTIVE_MEMBER")

    # Officer title (president, rush_chair, ...) or NULL
    chapter_role: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # active | probation | inactive
    member_status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    # Extra grants on top of role/officer permissions
    permissions: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list, server_default="[]")

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )
