"""
Task service layer: business logic for tasks, comments, activity and read markers.

Handles:
- Task CRUD with tag assignments
- Participant access checks (creator or assignee)
- Lifecycle operations: completion, reminders
- Read markers used by new-assignment alerts
- Batched enrichment of task data for API responses
"""

from __future__ import annotations

import math
import uuid
from collections import defaultdict
from datetime import timedelta
from typing import Iterable, Optional, Sequence

import sqlalchemy as sa
from fastapi import HTTPException
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.base import to_naive_utc, utcnow
from app.models.comment import TaskActivity, TaskComment
from app.models.read_marker import TaskReadMarker
from app.models.task import Task, TaskTag
from app.models.user import User
from taskdesk_shared.schemas.common import (
    PRIORITY_RANK,
    ActivityAction,
    Pagination,
    TaskPriority,
    TaskStatus,
)
from taskdesk_shared.schemas.tasks import (
    ActivityRead,
    CommentRead,
    TaskCreate,
    TaskDetail,
    TaskList,
    TaskRead,
    TaskUpdate,
)
from taskdesk_shared.schemas.users import UserSummary

RELATED_TASKS_LIMIT = 10
RELATED_DUE_WINDOW = timedelta(days=3)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def get_task_or_404(session: AsyncSession, task_id: uuid.UUID) -> Task:
    task = await session.get(Task, task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


def is_participant(task: Task, user_id: uuid.UUID) -> bool:
    return user_id in (task.created_by, task.assigned_to)


def require_participant(task: Task, user_id: uuid.UUID) -> None:
    if not is_participant(task, user_id):
        raise HTTPException(status_code=403, detail="Access denied")


async def _get_user_summaries(
    session: AsyncSession, user_ids: Iterable[uuid.UUID]
) -> dict[uuid.UUID, UserSummary]:
    ids = set(user_ids)
    if not ids:
        return {}
    result = await session.execute(select(User).where(User.id.in_(ids)))
    return {
        u.id: UserSummary(id=u.id, first_name=u.first_name, last_name=u.last_name, avatar=u.avatar)
        for u in result.scalars().all()
    }


async def _get_tags(
    session: AsyncSession, task_ids: Iterable[uuid.UUID]
) -> dict[uuid.UUID, list[str]]:
    ids = set(task_ids)
    tags: dict[uuid.UUID, list[str]] = defaultdict(list)
    if not ids:
        return tags
    result = await session.execute(
        select(TaskTag).where(TaskTag.task_id.in_(ids)).order_by(TaskTag.tag)
    )
    for row in result.scalars().all():
        tags[row.task_id].append(row.tag)
    return tags


def _to_read(task: Task, users: dict[uuid.UUID, UserSummary], tags: list[str]) -> TaskRead:
    return TaskRead(
        id=task.id,
        title=task.title,
        description=task.description,
        status=task.status,
        priority=task.priority,
        created_by=users.get(task.created_by),
        assigned_to=users.get(task.assigned_to),
        due_date=task.due_date,
        tags=tags,
        project_id=task.project_id,
        completed_at=task.completed_at,
        reminder_sent=task.reminder_sent,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


async def enrich_tasks(session: AsyncSession, tasks: Sequence[Task]) -> list[TaskRead]:
    """Convert Task rows to TaskRead with two batched lookups (users, tags)."""
    users = await _get_user_summaries(
        session, [uid for t in tasks for uid in (t.created_by, t.assigned_to)]
    )
    tags = await _get_tags(session, [t.id for t in tasks])
    return [_to_read(t, users, tags.get(t.id, [])) for t in tasks]


async def enrich_task(session: AsyncSession, task: Task) -> TaskRead:
    return (await enrich_tasks(session, [task]))[0]


async def enrich_task_detail(session: AsyncSession, task: Task) -> TaskDetail:
    """TaskRead plus the comment thread and activity log, oldest first."""
    comments = (
        await session.execute(
            select(TaskComment)
            .where(TaskComment.task_id == task.id)
            .order_by(TaskComment.created_at)
        )
    ).scalars().all()
    activity = (
        await session.execute(
            select(TaskActivity)
            .where(TaskActivity.task_id == task.id)
            .order_by(TaskActivity.timestamp)
        )
    ).scalars().all()

    users = await _get_user_summaries(
        session,
        [task.created_by, task.assigned_to]
        + [c.author_id for c in comments]
        + [a.user_id for a in activity],
    )
    tags = await _get_tags(session, [task.id])
    base = _to_read(task, users, tags.get(task.id, []))

    return TaskDetail(
        **base.model_dump(),
        comments=[to_comment_read(c, users) for c in comments],
        activity=[
            ActivityRead(
                id=a.id,
                action=a.action,
                description=a.description,
                user=users.get(a.user_id),
                timestamp=a.timestamp,
            )
            for a in activity
        ],
    )


def to_comment_read(comment: TaskComment, users: dict[uuid.UUID, UserSummary]) -> CommentRead:
    return CommentRead(
        id=comment.id,
        task_id=comment.task_id,
        text=comment.text,
        author=users.get(comment.author_id),
        created_at=comment.created_at,
    )


async def record_activity(
    session: AsyncSession,
    task_id: uuid.UUID,
    user_id: uuid.UUID,
    action: ActivityAction,
    description: str,
) -> TaskActivity:
    entry = TaskActivity(
        task_id=task_id,
        user_id=user_id,
        action=action.value,
        description=description,
    )
    session.add(entry)
    await session.flush()
    return entry


async def _replace_tags(session: AsyncSession, task_id: uuid.UUID, tags: list[str]) -> None:
    existing = await session.execute(select(TaskTag).where(TaskTag.task_id == task_id))
    for row in existing.scalars().all():
        await session.delete(row)
    await session.flush()
    for tag in dict.fromkeys(tags):
        session.add(TaskTag(task_id=task_id, tag=tag))


# ---------------------------------------------------------------------------
# Read markers
# ---------------------------------------------------------------------------


async def mark_task_read(
    session: AsyncSession, task_id: uuid.UUID, user_id: uuid.UUID
) -> bool:
    """Record that ``user_id`` has seen the task. Returns False if already recorded.

    Two concurrent calls may both miss the existing row; the composite
    primary key rejects the second insert and that is treated as success.
    """
    if await session.get(TaskReadMarker, (task_id, user_id)):
        return False
    try:
        async with session.begin_nested():
            session.add(TaskReadMarker(task_id=task_id, user_id=user_id))
    except IntegrityError:
        return False
    return True


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

_priority_rank = sa.case(
    {p.value: rank for p, rank in PRIORITY_RANK.items()},
    value=Task.priority,
    else_=0,
)


async def list_tasks(
    session: AsyncSession,
    *,
    created_by: Optional[uuid.UUID] = None,
    assigned_to: Optional[uuid.UUID] = None,
    status: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> TaskList:
    """Filtered, paginated listing: most urgent first, then earliest due, then newest."""
    stmt = select(Task)
    if created_by:
        stmt = stmt.where(Task.created_by == created_by)
    if assigned_to:
        stmt = stmt.where(Task.assigned_to == assigned_to)
    if status:
        stmt = stmt.where(Task.status == status.value)
    if priority:
        stmt = stmt.where(Task.priority == priority.value)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(or_(Task.title.ilike(pattern), Task.description.ilike(pattern)))

    total = (
        await session.execute(select(func.count()).select_from(stmt.subquery()))
    ).scalar_one()

    stmt = (
        stmt.order_by(_priority_rank.desc(), Task.due_date.asc(), Task.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    tasks = (await session.execute(stmt)).scalars().all()

    return TaskList(
        tasks=await enrich_tasks(session, tasks),
        pagination=Pagination(current=page, pages=math.ceil(total / limit), total=total),
    )


async def get_related_tasks(session: AsyncSession, task: Task) -> list[TaskRead]:
    """Other tasks sharing the project, assignee or a tag, or due within 3 days."""
    tags = (await _get_tags(session, [task.id])).get(task.id, [])

    conditions = [
        Task.assigned_to == task.assigned_to,
        Task.due_date.between(task.due_date - RELATED_DUE_WINDOW, task.due_date + RELATED_DUE_WINDOW),
    ]
    if task.project_id is not None:
        conditions.append(Task.project_id == task.project_id)
    if tags:
        conditions.append(
            Task.id.in_(select(TaskTag.task_id).where(TaskTag.tag.in_(tags)))
        )

    stmt = (
        select(Task)
        .where(Task.id != task.id, or_(*conditions))
        .order_by(Task.due_date.asc())
        .limit(RELATED_TASKS_LIMIT)
    )
    related = (await session.execute(stmt)).scalars().all()
    return await enrich_tasks(session, related)


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


async def create_task(
    session: AsyncSession,
    task_in: TaskCreate,
    actor_id: uuid.UUID,
) -> Task:
    if not await session.get(User, task_in.assigned_to):
        raise HTTPException(status_code=400, detail="Assigned user not found")

    task = Task(
        title=task_in.title,
        description=task_in.description,
        priority=task_in.priority.value,
        status=TaskStatus.PENDING.value,
        created_by=actor_id,
        assigned_to=task_in.assigned_to,
        due_date=to_naive_utc(task_in.due_date),
        project_id=task_in.project_id,
    )
    session.add(task)
    await session.flush()

    for tag in dict.fromkeys(task_in.tags):
        session.add(TaskTag(task_id=task.id, tag=tag))

    await record_activity(
        session, task.id, actor_id, ActivityAction.CREATED, f'Task "{task.title}" was created'
    )
    return task


def _apply_status(task: Task, status: TaskStatus) -> None:
    task.status = status.value
    if status == TaskStatus.COMPLETED and task.completed_at is None:
        task.completed_at = utcnow()


async def update_task(
    session: AsyncSession,
    task: Task,
    task_in: TaskUpdate,
    actor_id: uuid.UUID,
) -> Task:
    data = task_in.model_dump(exclude_unset=True)
    changes: list[str] = []

    if data.get("tags") is not None:
        await _replace_tags(session, task.id, data.pop("tags"))
    data.pop("tags", None)

    if data.get("status") is not None:
        new_status = TaskStatus(data.pop("status"))
        old_status = task.status
        _apply_status(task, new_status)
        if old_status != new_status.value:
            changes.append(f"Status changed from {old_status} to {new_status.value}")
    data.pop("status", None)

    if data.get("priority") is not None:
        data["priority"] = TaskPriority(data["priority"]).value
    if data.get("due_date") is not None:
        data["due_date"] = to_naive_utc(data["due_date"])

    for key, value in data.items():
        if value is not None and hasattr(task, key):
            setattr(task, key, value)
    task.updated_at = utcnow()

    session.add(task)
    await session.flush()

    if changes:
        await record_activity(
            session, task.id, actor_id, ActivityAction.UPDATED, ", ".join(changes)
        )
    return task


async def add_comment(
    session: AsyncSession,
    task: Task,
    text: str,
    author_id: uuid.UUID,
) -> TaskComment:
    comment = TaskComment(task_id=task.id, author_id=author_id, text=text)
    session.add(comment)
    await session.flush()
    await record_activity(
        session,
        task.id,
        author_id,
        ActivityAction.COMMENT_ADDED,
        f'Comment added to task "{task.title}"',
    )
    return comment


async def mark_complete(session: AsyncSession, task: Task, actor_id: uuid.UUID) -> Task:
    if task.assigned_to != actor_id:
        raise HTTPException(
            status_code=403, detail="Only assigned user can mark task as complete"
        )
    task.status = TaskStatus.COMPLETED.value
    task.completed_at = utcnow()
    task.updated_at = task.completed_at
    session.add(task)
    await session.flush()
    await record_activity(
        session,
        task.id,
        actor_id,
        ActivityAction.COMPLETED,
        f'Task "{task.title}" was marked as complete',
    )
    return task


async def send_reminder(session: AsyncSession, task: Task, actor_id: uuid.UUID) -> Task:
    if task.created_by != actor_id:
        raise HTTPException(status_code=403, detail="Only task creator can send reminders")
    if task.reminder_sent:
        raise HTTPException(status_code=400, detail="Reminder already sent for this task")

    task.reminder_sent = True
    session.add(task)
    await session.flush()
    await record_activity(
        session,
        task.id,
        actor_id,
        ActivityAction.REMINDER_SENT,
        f'Reminder sent for task "{task.title}"',
    )
    return task
