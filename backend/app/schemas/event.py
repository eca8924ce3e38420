from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

EVENT_STATUSES = ("draft", "published", "cancelled")
RSVP_STATUSES = ("attending", "maybe", "not_attending")


def _check_status(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    s = v.strip().lower()
    if s not in EVENT_STATUSES:
        raise ValueError(f"status must be one of {', '.join(EVENT_STATUSES)}")
    return s


class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    location: Optional[str] = Field(default=None, max_length=255)
    start_time: datetime
    end_time: datetime
    status: str = "published"
    budget_label: Optional[str] = Field(default=None, max_length=100)
    budget_amount: Optional[Decimal] = Field(default=None, ge=0)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        return _check_status(v)


class EventUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    location: Optional[str] = Field(default=None, max_length=255)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    status: Optional[str] = None
    budget_label: Optional[str] = Field(default=None, max_length=100)
    budget_amount: Optional[Decimal] = Field(default=None, ge=0)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: Optional[str]) -> Optional[str]:
        return _check_status(v)


class RSVPCounts(BaseModel):
    attending: int = 0
    maybe: int = 0
    not_attending: int = 0


class EventOut(BaseModel):
    id: UUID
    chapter_id: UUID
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    start_time: datetime
    end_time: datetime
    status: str
    budget_label: Optional[str] = None
    budget_amount: Optional[Decimal] = None
    created_by: Optional[UUID] = None
    updated_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    rsvp_counts: RSVPCounts = Field(default_factory=RSVPCounts)


class RSVPOut(BaseModel):
    user_id: UUID
    user_name: Optional[str] = None
    status: str
    responded_at: datetime


class EventDetailOut(EventOut):
    rsvps: List[RSVPOut] = Field(default_factory=list)


class RSVPRequest(BaseModel):
    # checked in the route (400 rather than 422)
    status: str


class MyRSVPOut(BaseModel):
    status: Optional[str] = None
    has_rsvp: bool
