# app/api/v1/dues.py
from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.chapter import get_current_chapter, get_current_membership
from app.api.deps.permissions import require_permissions
from app.auth.permissions import PERM
from app.core.dues import (
    DUES_FEATURE_FLAG,
    DUES_STATUSES,
    NO_BALANCE_STATUSES,
    PaymentError,
    apply_payment,
    cycle_totals,
    initial_amount_due,
)
from app.core.features import is_feature_enabled
from app.crud.chapter_membership import active_member_ids
from app.db.session import get_db
from app.db.types import utcnow
from app.models.chapter import Chapter
from app.models.chapter_membership import ChapterMembership
from app.models.dues import DuesAssignment, DuesCycle
from app.models.user import User
from app.schemas.dues import (
    DuesAssignmentCreate,
    DuesAssignmentOut,
    DuesAssignmentUpdate,
    DuesCycleCreate,
    DuesCycleOut,
    DuesCycleUpdate,
    DuesPaymentCreate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dues", tags=["dues"])


async def require_financial_tools(chapter: Chapter = Depends(get_current_chapter)) -> Chapter:
    if not is_feature_enabled(chapter.feature_flags, DUES_FEATURE_FLAG):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Financial tools feature is not enabled for this chapter",
        )
    return chapter


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def _cycle_out(cycle: DuesCycle, assignments: List[DuesAssignment]) -> DuesCycleOut:
    totals = cycle_totals(assignments)
    return DuesCycleOut(
        id=cycle.id,
        chapter_id=cycle.chapter_id,
        name=cycle.name,
        base_amount=cycle.base_amount,
        start_date=cycle.start_date,
        due_date=cycle.due_date,
        close_date=cycle.close_date,
        allow_payment_plans=cycle.allow_payment_plans,
        plan_options=cycle.plan_options or [],
        late_fee_policy=cycle.late_fee_policy,
        status=cycle.status,
        created_at=cycle.created_at,
        updated_at=cycle.updated_at,
        assigned_count=totals.assigned_count,
        paid_count=totals.paid_count,
        total_due=totals.total_due,
        total_collected=totals.total_collected,
    )


def _assignment_out(a: DuesAssignment, cycle: DuesCycle, user: Optional[User]) -> DuesAssignmentOut:
    return DuesAssignmentOut(
        id=a.id,
        dues_cycle_id=a.dues_cycle_id,
        user_id=a.user_id,
        status=a.status,
        amount_assessed=a.amount_assessed,
        amount_due=a.amount_due,
        amount_paid=a.amount_paid,
        notes=a.notes,
        paid_at=a.paid_at,
        created_at=a.created_at,
        updated_at=a.updated_at,
        member_name=user.display_name if user else None,
        member_email=user.email if user else None,
        cycle_name=cycle.name,
        cycle_due_date=cycle.due_date,
    )


async def _load_cycle(db: AsyncSession, chapter_id: uuid.UUID, cycle_id: uuid.UUID) -> DuesCycle:
    cycle = (
        await db.execute(select(DuesCycle).where(DuesCycle.id == cycle_id, DuesCycle.chapter_id == chapter_id))
    ).scalar_one_or_none()
    if cycle is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Dues cycle not found")
    return cycle


async def _load_assignment(db: AsyncSession, chapter_id: uuid.UUID, assignment_id: uuid.UUID):
    row = (
        await db.execute(
            select(DuesAssignment, DuesCycle)
            .join(DuesCycle, DuesCycle.id == DuesAssignment.dues_cycle_id)
            .where(DuesAssignment.id == assignment_id, DuesCycle.chapter_id == chapter_id)
        )
    ).one_or_none()
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Dues assignment not found")
    return row


async def _assignments_for(db: AsyncSession, cycle_ids: List[uuid.UUID]) -> dict:
    grouped = defaultdict(list)
    if cycle_ids:
        rows = (
            await db.execute(select(DuesAssignment).where(DuesAssignment.dues_cycle_id.in_(cycle_ids)))
        ).scalars().all()
        for a in rows:
            grouped[a.dues_cycle_id].append(a)
    return grouped


# ---------------------------------------------------------
# Cycles
# ---------------------------------------------------------
@router.get("/cycles", response_model=List[DuesCycleOut])
async def list_cycles(
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(require_financial_tools),
    _=Depends(require_permissions(PERM.DUES_MANAGE)),
):
    cycles = (
        await db.execute(
            select(DuesCycle).where(DuesCycle.chapter_id == chapter.id).order_by(DuesCycle.created_at.desc())
        )
    ).scalars().all()
    grouped = await _assignments_for(db, [c.id for c in cycles])
    return [_cycle_out(c, grouped.get(c.id, [])) for c in cycles]


@router.post("/cycles", response_model=DuesCycleOut, status_code=status.HTTP_201_CREATED)
async def create_cycle(
    payload: DuesCycleCreate,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(require_financial_tools),
    membership: ChapterMembership = Depends(require_permissions(PERM.DUES_MANAGE)),
):
    cycle = DuesCycle(
        chapter_id=chapter.id,
        name=payload.name,
        base_amount=payload.base_amount,
        start_date=utcnow().date(),
        due_date=payload.due_date,
        close_date=payload.close_date,
        allow_payment_plans=payload.allow_payment_plans,
        plan_options=[p.model_dump(mode="json") for p in payload.plan_options],
        late_fee_policy=payload.late_fee_policy.model_dump(mode="json") if payload.late_fee_policy else None,
        status="active",
        created_by=membership.user_id,
    )
    db.add(cycle)
    await db.commit()
    await db.refresh(cycle)

    logger.info("Dues cycle created", extra={"chapter_id": chapter.id, "user_id": membership.user_id})
    return _cycle_out(cycle, [])


@router.patch("/cycles/{cycle_id}", response_model=DuesCycleOut)
async def update_cycle(
    cycle_id: uuid.UUID,
    payload: DuesCycleUpdate,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(require_financial_tools),
    _=Depends(require_permissions(PERM.DUES_MANAGE)),
):
    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise _bad_request("No fields provided to update")

    for field in ("name", "due_date", "allow_payment_plans", "plan_options", "status"):
        if field in data and data[field] is None:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"{field} cannot be null")

    cycle = await _load_cycle(db, chapter.id, cycle_id)

    due: date = data.get("due_date", cycle.due_date)
    close: Optional[date] = data.get("close_date", cycle.close_date)
    if close is not None and close < due:
        raise _bad_request("Close date must be on or after the due date")

    if "plan_options" in data:
        data["plan_options"] = [p.model_dump(mode="json") for p in payload.plan_options]
    if "late_fee_policy" in data:
        data["late_fee_policy"] = payload.late_fee_policy.model_dump(mode="json") if payload.late_fee_policy else None

    for field, value in data.items():
        setattr(cycle, field, value)

    await db.commit()
    await db.refresh(cycle)
    grouped = await _assignments_for(db, [cycle.id])
    return _cycle_out(cycle, grouped.get(cycle.id, []))


@router.delete("/cycles/{cycle_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_cycle(
    cycle_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(require_financial_tools),
    membership: ChapterMembership = Depends(require_permissions(PERM.DUES_MANAGE)),
):
    cycle = await _load_cycle(db, chapter.id, cycle_id)
    await db.delete(cycle)
    await db.commit()

    logger.info("Dues cycle deleted", extra={"chapter_id": chapter.id, "user_id": membership.user_id})
    return None


# ---------------------------------------------------------
# Assignments
# ---------------------------------------------------------
@router.get("/assignments", response_model=List[DuesAssignmentOut])
async def list_assignments(
    cycle_id: Optional[uuid.UUID] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(require_financial_tools),
    _=Depends(require_permissions(PERM.DUES_MANAGE)),
):
    stmt = (
        select(DuesAssignment, DuesCycle, User)
        .join(DuesCycle, DuesCycle.id == DuesAssignment.dues_cycle_id)
        .join(User, User.id == DuesAssignment.user_id)
        .where(DuesCycle.chapter_id == chapter.id)
    )
    if cycle_id:
        stmt = stmt.where(DuesAssignment.dues_cycle_id == cycle_id)
    if status_filter:
        wanted = status_filter.strip().lower()
        if wanted not in DUES_STATUSES:
            raise _bad_request(f"Invalid status. Must be one of: {', '.join(DUES_STATUSES)}")
        stmt = stmt.where(DuesAssignment.status == wanted)

    rows = (await db.execute(stmt.order_by(DuesAssignment.created_at.desc()))).all()
    return [_assignment_out(a, c, u) for a, c, u in rows]


@router.get("/mine", response_model=List[DuesAssignmentOut])
async def list_my_dues(
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(require_financial_tools),
    membership: ChapterMembership = Depends(get_current_membership),
):
    rows = (
        await db.execute(
            select(DuesAssignment, DuesCycle)
            .join(DuesCycle, DuesCycle.id == DuesAssignment.dues_cycle_id)
            .where(DuesCycle.chapter_id == chapter.id)
            .where(DuesAssignment.user_id == membership.user_id)
            .order_by(DuesCycle.due_date.desc())
        )
    ).all()
    user = await db.get(User, membership.user_id)
    return [_assignment_out(a, c, user) for a, c in rows]


@router.post("/assignments", response_model=DuesAssignmentOut, status_code=status.HTTP_201_CREATED)
async def create_assignment(
    payload: DuesAssignmentCreate,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(require_financial_tools),
    membership: ChapterMembership = Depends(require_permissions(PERM.DUES_MANAGE)),
):
    cycle = await _load_cycle(db, chapter.id, payload.dues_cycle_id)
    if cycle.status != "active":
        raise _bad_request("Dues cycle is closed")

    if payload.user_id not in await active_member_ids(db, chapter.id, [payload.user_id]):
        raise _bad_request("Member is not an active chapter member")

    amount = payload.amount if payload.amount is not None else cycle.base_amount
    assignment = DuesAssignment(
        dues_cycle_id=cycle.id,
        user_id=payload.user_id,
        status=payload.status,
        amount_assessed=amount,
        amount_due=initial_amount_due(payload.status, amount),
        amount_paid=0,
        notes=payload.notes,
    )
    db.add(assignment)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Member already has an assignment for this cycle",
        )
    await db.refresh(assignment)

    logger.info(
        "Dues assigned",
        extra={"chapter_id": chapter.id, "user_id": membership.user_id},
    )
    return _assignment_out(assignment, cycle, await db.get(User, assignment.user_id))


@router.patch("/assignments/{assignment_id}", response_model=DuesAssignmentOut)
async def update_assignment(
    assignment_id: uuid.UUID,
    payload: DuesAssignmentUpdate,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(require_financial_tools),
    _=Depends(require_permissions(PERM.DUES_MANAGE)),
):
    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise _bad_request("No fields provided to update")
    for field in ("status", "amount_assessed", "amount_due"):
        if field in data and data[field] is None:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"{field} cannot be null")

    assignment, cycle = await _load_assignment(db, chapter.id, assignment_id)

    for field, value in data.items():
        setattr(assignment, field, value)
    if assignment.status in NO_BALANCE_STATUSES:
        assignment.amount_due = 0

    await db.commit()
    await db.refresh(assignment)
    return _assignment_out(assignment, cycle, await db.get(User, assignment.user_id))


@router.delete("/assignments/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_assignment(
    assignment_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(require_financial_tools),
    membership: ChapterMembership = Depends(require_permissions(PERM.DUES_MANAGE)),
):
    assignment, _cycle = await _load_assignment(db, chapter.id, assignment_id)
    await db.delete(assignment)
    await db.commit()

    logger.info("Dues assignment deleted", extra={"chapter_id": chapter.id, "user_id": membership.user_id})
    return None


@router.post("/assignments/{assignment_id}/payments", response_model=DuesAssignmentOut)
async def record_payment(
    assignment_id: uuid.UUID,
    payload: DuesPaymentCreate,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(require_financial_tools),
    membership: ChapterMembership = Depends(require_permissions(PERM.DUES_MANAGE)),
):
    """Record money collected offline against an assignment."""
    assignment, cycle = await _load_assignment(db, chapter.id, assignment_id)

    try:
        result = apply_payment(
            status=assignment.status,
            amount_due=assignment.amount_due,
            amount_paid=assignment.amount_paid,
            payment=payload.amount,
        )
    except PaymentError as e:
        raise _bad_request(str(e))

    assignment.amount_due = result.amount_due
    assignment.amount_paid = result.amount_paid
    assignment.status = result.status
    if result.settled:
        assignment.paid_at = utcnow()

    await db.commit()
    await db.refresh(assignment)

    logger.info(
        "Dues payment recorded (%s)",
        result.status,
        extra={"chapter_id": chapter.id, "user_id": membership.user_id},
    )
    return _assignment_out(assignment, cycle, await db.get(User, assignment.user_id))
