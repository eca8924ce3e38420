# backend/app/models/chapter.py

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from app.db.base import Base
from app.db.types import UTCDateTime, utcnow


class Chapter(Base):
    __tablename__ = "chapters"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # e.g. "Sigma Chi" + "Beta Theta"
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    chapter_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    university: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    national_fraternity: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    founded_year: Mapped[Optional[int]] = mapped_column(nullable=True)

    # active | inactive
    chapter_status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    # NULL means "use DEFAULT_STARTING_BUDGET"
    starting_budget: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    feature_flags: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict, server_default="{}")

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )

    @property
    def is_active(self) -> bool:
        return self.chapter_status == "active"
