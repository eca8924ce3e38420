from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.core.features import KNOWN_FEATURE_FLAGS


class ChapterCreate(BaseModel):
    name: str = Field(min_length=2, max_length=200)
    chapter_name: Optional[str] = Field(default=None, max_length=200)
    university: Optional[str] = Field(default=None, max_length=200)
    national_fraternity: Optional[str] = Field(default=None, max_length=200)
    location: Optional[str] = Field(default=None, max_length=200)
    founded_year: Optional[int] = Field(default=None, ge=1776, le=2100)
    starting_budget: Optional[Decimal] = Field(default=None, ge=0)
    feature_flags: Dict[str, bool] = Field(default_factory=dict)
    # Optional first chapter admin (user is created if missing)
    admin_email: Optional[EmailStr] = None


class ChapterOut(BaseModel):
    id: UUID
    name: str
    chapter_name: Optional[str] = None
    university: Optional[str] = None
    national_fraternity: Optional[str] = None
    location: Optional[str] = None
    founded_year: Optional[int] = None
    chapter_status: str
    feature_flags: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    model_config = {"from_attributes": True}


class FeatureFlagsUpdate(BaseModel):
    feature_flags: Dict[str, bool]

    @field_validator("feature_flags")
    @classmethod
    def validate_known_flags(cls, v: Dict[str, bool]) -> Dict[str, bool]:
        unknown = sorted(set(v) - KNOWN_FEATURE_FLAGS)
        if unknown:
            raise ValueError(f"Unknown feature flag(s): {', '.join(unknown)}")
        return v


class BudgetOut(BaseModel):
    chapter_id: UUID
    starting_budget: Decimal


class BudgetUpdate(BaseModel):
    starting_budget: Decimal = Field(ge=0)


class BudgetEventOut(BaseModel):
    id: UUID
    title: str
    start_time: datetime
    budget_label: Optional[str] = None
    budget_amount: Decimal

    model_config = {"from_attributes": True}


class BudgetCategoryOut(BaseModel):
    name: str
    allocated: Decimal
    spent: Decimal
    remaining: Decimal
    events: list[BudgetEventOut]

    model_config = {"from_attributes": True}


class BudgetSummaryOut(BaseModel):
    starting_budget: Decimal
    total_allocated: Decimal
    total_spent: Decimal
    remaining: Decimal
    categories: list[BudgetCategoryOut]

    model_config = {"from_attributes": True}


class FeatureFlagsOut(BaseModel):
    chapter_id: UUID
    feature_flags: Dict[str, Any]


class MembershipGrowthOut(BaseModel):
    current_month: int
    last_month: int
    growth: int


class OverviewOut(BaseModel):
    chapter_id: UUID
    total_members: int
    members_by_role: Dict[str, int]
    members_by_status: Dict[str, int]
    alumni_count: int
    upcoming_events: int
    open_tasks: int
    membership_growth: MembershipGrowthOut
