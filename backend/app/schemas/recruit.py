from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

# Business validation (required text, phone digits, stage names) happens in
# the route so failures come back as 400 with a specific message.


class RecruitCreate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=200)
    hometown: Optional[str] = Field(default=None, max_length=200)
    phone_number: Optional[str] = Field(default=None, max_length=32)
    instagram_handle: Optional[str] = Field(default=None, max_length=100)


class RecruitUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, max_length=200)
    hometown: Optional[str] = Field(default=None, max_length=200)
    phone_number: Optional[str] = Field(default=None, max_length=32)
    instagram_handle: Optional[str] = Field(default=None, max_length=100)
    stage: Optional[str] = None
    notes: Optional[str] = None


class RecruitOut(BaseModel):
    id: UUID
    chapter_id: UUID
    name: str
    hometown: str
    phone_number: Optional[str] = None
    instagram_handle: Optional[str] = None
    stage: str
    notes: Optional[str] = None
    submitted_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
