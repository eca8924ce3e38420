from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from app.db.base import Base
from app.db.types import UTCDateTime, utcnow


class Invitation(Base):
    """
    Shareable join link for a chapter. Anyone holding the token can join
    until it is deactivated, expires or runs out of uses.
    """

    __tablename__ = "invitations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    chapter_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("chapters.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)

    # active_member | alumni
    invitation_type: Mapped[str] = mapped_column(String(20), nullable=False, default="active_member")

    # None => any domain
    email_domain_allowlist: Mapped[Optional[list[str]]] = mapped_column(JSON, nullable=True)

    # auto | pending
    approval_mode: Mapped[str] = mapped_column(String(20), nullable=False, default="auto")

    single_use: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    max_uses: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    usages: Mapped[List["InvitationUsage"]] = relationship(
        back_populates="invitation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="InvitationUsage.used_at",
    )


class InvitationUsage(Base):
    __tablename__ = "invitation_usage"
    __table_args__ = (
        UniqueConstraint("invitation_id", "email", name="uq_invitation_usage_invitation_email"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    invitation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("invitations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    used_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow, server_default=func.now())

    invitation: Mapped[Invitation] = relationship(back_populates="usages")
