from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.db.types import as_utc

TASK_PRIORITIES = ("low", "medium", "high", "urgent")
TASK_STATUSES = ("pending", "in_progress", "completed", "overdue")


def _check_choice(value: Optional[str], allowed: tuple, field: str) -> Optional[str]:
    if value is None:
        return None
    v = value.strip().lower()
    if v not in allowed:
        raise ValueError(f"{field} must be one of {', '.join(allowed)}")
    return v


def _strip_title(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    if not v:
        raise ValueError("title is required")
    return v


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    # One id, or a list => one task per assignee
    assignee_id: Union[UUID, List[UUID]]
    due_date: Optional[datetime] = None
    priority: str = "medium"
    status: str = "pending"

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        return _strip_title(v)

    # offset-less datetimes (and bare dates) are taken as UTC
    @field_validator("due_date")
    @classmethod
    def due_date_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    @field_validator("assignee_id")
    @classmethod
    def non_empty_assignees(cls, v):
        if isinstance(v, list) and not v:
            raise ValueError("at least one assignee is required")
        return v

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v: str) -> str:
        return _check_choice(v, TASK_PRIORITIES, "priority")

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        return _check_choice(v, TASK_STATUSES, "status")

    def assignee_ids(self) -> List[UUID]:
        ids = self.assignee_id if isinstance(self.assignee_id, list) else [self.assignee_id]
        # keep order, drop duplicates
        return list(dict.fromkeys(ids))


class TaskUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    assignee_id: Optional[UUID] = None
    due_date: Optional[datetime] = None
    priority: Optional[str] = None
    status: Optional[str] = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: Optional[str]) -> Optional[str]:
        return _strip_title(v)

    @field_validator("due_date")
    @classmethod
    def due_date_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v: Optional[str]) -> Optional[str]:
        return _check_choice(v, TASK_PRIORITIES, "priority")

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: Optional[str]) -> Optional[str]:
        return _check_choice(v, TASK_STATUSES, "status")


class TaskOut(BaseModel):
    id: UUID
    chapter_id: UUID
    title: str
    description: Optional[str] = None
    assignee_id: Optional[UUID] = None
    assigned_by: Optional[UUID] = None
    due_date: Optional[datetime] = None
    priority: str
    status: str
    created_at: datetime
    updated_at: datetime

    assignee_name: str
    assigned_by_name: Optional[str] = None
    chapter_name: Optional[str] = None
    is_overdue: bool


class AssignableMemberOut(BaseModel):
    id: UUID
    full_name: str
    email: str
    role: str
    chapter_role: Optional[str] = None
