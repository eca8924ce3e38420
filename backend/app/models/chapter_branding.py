from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import ForeignKey, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.branding import DEFAULT_LOGO_ALT_TEXT
from app.db.base import Base
from app.db.types import UTCDateTime, utcnow


class ChapterBranding(Base):
    __tablename__ = "chapter_branding"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # One branding record per chapter
    chapter_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("chapters.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    primary_logo_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    secondary_logo_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    logo_alt_text: Mapped[str] = mapped_column(String(200), nullable=False, default=DEFAULT_LOGO_ALT_TEXT)

    # '#RRGGBB', upper-case
    primary_color: Mapped[Optional[str]] = mapped_column(String(7), nullable=True)
    accent_color: Mapped[Optional[str]] = mapped_column(String(7), nullable=True)

    # Reserved for national-organization level defaults
    organization_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    updated_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )
