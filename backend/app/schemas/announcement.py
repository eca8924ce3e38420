from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.db.types import as_utc
from app.schemas.post import AuthorOut, Pagination

ANNOUNCEMENT_TYPES = ("general", "urgent", "event", "academic")


def _required(v: Optional[str], field: str) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    if not v:
        raise ValueError(f"{field} is required")
    return v


def _type(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    t = v.strip().lower()
    if t not in ANNOUNCEMENT_TYPES:
        raise ValueError(f"announcement_type must be one of {', '.join(ANNOUNCEMENT_TYPES)}")
    return t


class AnnouncementCreate(BaseModel):
    title: str = Field(max_length=200)
    content: str
    announcement_type: str = "general"
    is_scheduled: bool = False
    scheduled_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _required(v, "title")

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        return _required(v, "content")

    @field_validator("announcement_type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        return _type(v)

    @field_validator("scheduled_at")
    @classmethod
    def scheduled_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class AnnouncementUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, max_length=200)
    content: Optional[str] = None
    announcement_type: Optional[str] = None
    scheduled_at: Optional[datetime] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        return _required(v, "title")

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: Optional[str]) -> Optional[str]:
        return _required(v, "content")

    @field_validator("announcement_type")
    @classmethod
    def validate_type(cls, v: Optional[str]) -> Optional[str]:
        return _type(v)

    @field_validator("scheduled_at")
    @classmethod
    def scheduled_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class AnnouncementOut(BaseModel):
    id: UUID
    chapter_id: UUID
    title: str
    content: str
    announcement_type: str
    is_scheduled: bool
    scheduled_at: Optional[datetime] = None
    is_sent: bool
    sent_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    sender: Optional[AuthorOut] = None
    created_at: datetime
    updated_at: datetime

    # recipient view
    is_read: Optional[bool] = None
    read_at: Optional[datetime] = None

    # management view
    total_recipients: Optional[int] = None
    read_count: Optional[int] = None
    unread_count: Optional[int] = None


class AnnouncementListOut(BaseModel):
    announcements: List[AnnouncementOut]
    pagination: Pagination
    unread_count: Optional[int] = None


class AnnouncementReadOut(BaseModel):
    announcement_id: UUID
    is_read: bool
    read_at: Optional[datetime] = None
