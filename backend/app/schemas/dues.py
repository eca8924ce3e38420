from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.core.dues import ASSIGNABLE_STATUSES, CYCLE_STATUSES


def _choice(value: Optional[str], allowed: tuple, field: str) -> Optional[str]:
    if value is None:
        return None
    v = value.strip().lower()
    if v not in allowed:
        raise ValueError(f"{field} must be one of {', '.join(allowed)}")
    return v


def _name(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    if not v:
        raise ValueError("name is required")
    return v


class PlanOption(BaseModel):
    installments: int = Field(ge=2, le=12)
    label: Optional[str] = Field(default=None, max_length=100)


class LateFeePolicy(BaseModel):
    amount: Decimal = Field(gt=0)
    grace_days: int = Field(default=0, ge=0)


# ---------------------------------------------------------
# Cycles
# ---------------------------------------------------------
class DuesCycleCreate(BaseModel):
    name: str = Field(max_length=200)
    base_amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    due_date: date
    close_date: Optional[date] = None
    allow_payment_plans: bool = False
    plan_options: List[PlanOption] = Field(default_factory=list)
    late_fee_policy: Optional[LateFeePolicy] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _name(v)

    @model_validator(mode="after")
    def close_after_due(self):
        if self.close_date is not None and self.close_date < self.due_date:
            raise ValueError("close_date must be on or after due_date")
        return self


class DuesCycleUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, max_length=200)
    due_date: Optional[date] = None
    close_date: Optional[date] = None
    allow_payment_plans: Optional[bool] = None
    plan_options: Optional[List[PlanOption]] = None
    late_fee_policy: Optional[LateFeePolicy] = None
    status: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return _name(v)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: Optional[str]) -> Optional[str]:
        return _choice(v, CYCLE_STATUSES, "status")


class DuesCycleOut(BaseModel):
    id: UUID
    chapter_id: UUID
    name: str
    base_amount: Decimal
    start_date: date
    due_date: date
    close_date: Optional[date] = None
    allow_payment_plans: bool
    plan_options: List[Dict[str, Any]] = Field(default_factory=list)
    late_fee_policy: Optional[Dict[str, Any]] = None
    status: str
    created_at: datetime
    updated_at: datetime

    assigned_count: int = 0
    paid_count: int = 0
    total_due: Decimal = Decimal("0")
    total_collected: Decimal = Decimal("0")


# ---------------------------------------------------------
# Assignments
# ---------------------------------------------------------
class DuesAssignmentCreate(BaseModel):
    dues_cycle_id: UUID
    user_id: UUID
    # defaults to the cycle's base amount
    amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    status: str = "required"
    notes: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        return _choice(v, ASSIGNABLE_STATUSES, "status")


class DuesAssignmentUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: Optional[str] = None
    amount_assessed: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    amount_due: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    notes: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: Optional[str]) -> Optional[str]:
        return _choice(v, ASSIGNABLE_STATUSES, "status")


class DuesPaymentCreate(BaseModel):
    # omitted => settle the outstanding balance
    amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)


class DuesAssignmentOut(BaseModel):
    id: UUID
    dues_cycle_id: UUID
    user_id: UUID
    status: str
    amount_assessed: Decimal
    amount_due: Decimal
    amount_paid: Decimal
    notes: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    member_name: Optional[str] = None
    member_email: Optional[str] = None
    cycle_name: str
    cycle_due_date: date
