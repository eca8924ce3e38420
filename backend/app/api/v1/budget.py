# app/api/v1/budget.py
from __future__ import annotations

import logging
from decimal import Decimal

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.chapter import get_current_chapter
from app.api.deps.permissions import require_permissions
from app.auth.permissions import PERM
from app.core.budget import summarize_budget
from app.core.config import settings
from app.db.session import get_db
from app.models.chapter import Chapter
from app.models.chapter_membership import ChapterMembership
from app.models.event import Event
from app.schemas.chapter import BudgetOut, BudgetSummaryOut, BudgetUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/budget", tags=["budget"])


def starting_budget_for(chapter: Chapter) -> Decimal:
    if chapter.starting_budget is None:
        return Decimal(str(settings.DEFAULT_STARTING_BUDGET))
    return Decimal(chapter.starting_budget)


@router.get("", response_model=BudgetOut)
async def get_budget(
    chapter: Chapter = Depends(get_current_chapter),
    _=Depends(require_permissions(PERM.BUDGET_READ)),
):
    return BudgetOut(chapter_id=chapter.id, starting_budget=starting_budget_for(chapter))


@router.patch("", response_model=BudgetOut)
async def update_budget(
    payload: BudgetUpdate,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    membership: ChapterMembership = Depends(require_permissions(PERM.BUDGET_WRITE)),
):
    chapter.starting_budget = payload.starting_budget
    await db.commit()
    await db.refresh(chapter)

    logger.info(
        "Starting budget set to %s",
        payload.starting_budget,
        extra={"chapter_id": chapter.id, "user_id": membership.user_id},
    )
    return BudgetOut(chapter_id=chapter.id, starting_budget=starting_budget_for(chapter))


@router.get("/summary", response_model=BudgetSummaryOut)
async def get_budget_summary(
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    _=Depends(require_permissions(PERM.BUDGET_READ)),
):
    """Event allocations grouped by budget label (or a category inferred from the title)."""
    stmt = (
        select(Event)
        .where(Event.chapter_id == chapter.id)
        .where(Event.budget_amount > 0)
        .order_by(Event.start_time)
    )
    events = (await db.execute(stmt)).scalars().all()
    return BudgetSummaryOut.model_validate(summarize_budget(starting_budget_for(chapter), events))
