from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.chapter import get_current_chapter, get_current_membership
from app.api.deps.permissions import membership_has, require_permissions
from app.auth.permissions import PERM
from app.core.roles import MembershipRole
from app.crud.chapter_membership import active_member_ids, user_names
from app.db.session import get_db
from app.db.types import as_utc, utcnow
from app.models.chapter import Chapter
from app.models.chapter_membership import ChapterMembership
from app.models.task import Task
from app.models.user import User
from app.schemas.task import AssignableMemberOut, TaskCreate, TaskOut, TaskUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])

UNASSIGNED = "Unassigned"


def is_overdue(task: Task, now: datetime) -> bool:
    return task.due_date is not None and as_utc(task.due_date) < now and task.status != "completed"


async def _to_out(db: AsyncSession, tasks: List[Task], chapter: Chapter) -> List[TaskOut]:
    names = await user_names(db, [i for t in tasks for i in (t.assignee_id, t.assigned_by)])
    now = utcnow()
    return [
        TaskOut(
            id=t.id,
            chapter_id=t.chapter_id,
            title=t.title,
            description=t.description,
            assignee_id=t.assignee_id,
            assigned_by=t.assigned_by,
            due_date=t.due_date,
            priority=t.priority,
            status=t.status,
            created_at=t.created_at,
            updated_at=t.updated_at,
            assignee_name=names.get(t.assignee_id, UNASSIGNED),
            assigned_by_name=names.get(t.assigned_by),
            chapter_name=chapter.name,
            is_overdue=is_overdue(t, now),
        )
        for t in tasks
    ]


async def _load_task(db: AsyncSession, chapter_id: uuid.UUID, task_id: uuid.UUID) -> Task:
    task = (
        await db.execute(select(Task).where(Task.id == task_id, Task.chapter_id == chapter_id))
    ).scalar_one_or_none()
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return task


async def _ensure_assignable(db: AsyncSession, chapter_id: uuid.UUID, ids: List[uuid.UUID]) -> None:
    found = await active_member_ids(db, chapter_id, ids)
    missing = [str(i) for i in ids if i not in found]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "assignee_not_member", "message": "Assignee is not an active chapter member.", "assignee_ids": missing},
        )


@router.get("", response_model=List[TaskOut])
async def list_tasks(
    assignee_id: Optional[uuid.UUID] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    priority: Optional[str] = Query(default=None),
    due_date_from: Optional[datetime] = Query(default=None),
    due_date_to: Optional[datetime] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    _=Depends(require_permissions(PERM.TASKS_READ)),
):
    stmt = select(Task).where(Task.chapter_id == chapter.id)
    if assignee_id:
        stmt = stmt.where(Task.assignee_id == assignee_id)
    if status_filter:
        stmt = stmt.where(Task.status == status_filter.strip().lower())
    if priority:
        stmt = stmt.where(Task.priority == priority.strip().lower())
    if due_date_from:
        stmt = stmt.where(Task.due_date >= due_date_from)
    if due_date_to:
        stmt = stmt.where(Task.due_date <= due_date_to)

    tasks = (await db.execute(stmt.order_by(Task.created_at.desc()))).scalars().all()
    return await _to_out(db, list(tasks), chapter)


@router.get("/assignable-members", response_model=List[AssignableMemberOut])
async def list_assignable_members(
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    _=Depends(require_permissions(PERM.TASKS_WRITE)),
):
    """Active members and admins; alumni are not assignable."""
    rows = (
        await db.execute(
            select(ChapterMembership, User)
            .join(User, User.id == ChapterMembership.user_id)
            .where(ChapterMembership.chapter_id == chapter.id)
            .where(ChapterMembership.is_active.is_(True))
            .where(ChapterMembership.role != MembershipRole.ALUMNI.value)
            .order_by(User.full_name, User.email)
        )
    ).all()
    return [
        AssignableMemberOut(
            id=u.id,
            full_name=u.display_name,
            email=u.email,
            role=m.role,
            chapter_role=m.chapter_role,
        )
        for m, u in rows
    ]


@router.post("", response_model=List[TaskOut], status_code=status.HTTP_201_CREATED)
async def create_tasks(
    payload: TaskCreate,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    membership: ChapterMembership = Depends(require_permissions(PERM.TASKS_WRITE)),
):
    """One task per assignee; always returns a list."""
    assignee_ids = payload.assignee_ids()
    await _ensure_assignable(db, chapter.id, assignee_ids)

    tasks = [
        Task(
            chapter_id=chapter.id,
            title=payload.title,
            description=payload.description,
            assignee_id=assignee_id,
            assigned_by=membership.user_id,
            due_date=payload.due_date,
            priority=payload.priority,
            status=payload.status,
        )
        for assignee_id in assignee_ids
    ]
    db.add_all(tasks)
    await db.commit()

    logger.info(
        "Created %d task(s)",
        len(tasks),
        extra={"chapter_id": chapter.id, "user_id": membership.user_id},
    )
    return await _to_out(db, tasks, chapter)


@router.patch("/{task_id}", response_model=TaskOut)
async def update_task(
    task_id: uuid.UUID,
    payload: TaskUpdate,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    membership: ChapterMembership = Depends(get_current_membership),
):
    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields provided to update")

    task = await _load_task(db, chapter.id, task_id)

    if not membership_has(membership, PERM.TASKS_WRITE):
        # assignees may move their own task along, nothing else
        if task.assignee_id != membership.user_id or set(data) != {"status"}:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")

    if data.get("assignee_id") is not None:
        await _ensure_assignable(db, chapter.id, [data["assignee_id"]])

    for field in ("title", "priority", "status"):
        if field in data and data[field] is None:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"{field} cannot be null")

    for field, value in data.items():
        setattr(task, field, value)

    await db.commit()
    await db.refresh(task)
    return (await _to_out(db, [task], chapter))[0]


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    membership: ChapterMembership = Depends(require_permissions(PERM.TASKS_WRITE)),
):
    task = await _load_task(db, chapter.id, task_id)
    await db.delete(task)
    await db.commit()

    logger.info("Task deleted", extra={"chapter_id": chapter.id, "user_id": membership.user_id})
    return None
