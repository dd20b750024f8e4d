"""
Task endpoints: listings, CRUD, comments, completion, reminders.

- Only the creator and the assignee may read or change a task.
- Opening a task marks it read for the caller (clears its new-assignment alert).
- Each change notifies the affected participants (never the actor) over the event channel.
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_current_user
from app.core.database import get_session
from app.core.events import notify_users
from app.services.alerts import format_due_date
from app.services.tasks import (
    add_comment,
    create_task,
    enrich_task,
    enrich_task_detail,
    get_related_tasks,
    get_task_or_404,
    list_tasks,
    mark_complete,
    mark_task_read,
    require_participant,
    send_reminder,
    update_task,
)
from taskdesk_shared.schemas.common import MessageResponse, TaskPriority, TaskStatus
from taskdesk_shared.schemas.tasks import (
    CommentCreate,
    CommentResponse,
    RelatedTasks,
    TaskCreate,
    TaskEnvelope,
    TaskList,
    TaskMutationResponse,
    TaskUpdate,
)

router = APIRouter()


def _task_payload(task, message: str) -> dict:
    return {"task": task.model_dump(mode="json"), "message": message}


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


@router.get("/sent", response_model=TaskList)
async def list_sent_tasks_endpoint(
    status: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Tasks the caller created."""
    return await list_tasks(
        session,
        created_by=auth.user_id,
        status=status,
        priority=priority,
        search=search,
        page=page,
        limit=limit,
    )


@router.get("/received", response_model=TaskList)
async def list_received_tasks_endpoint(
    status: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Tasks assigned to the caller."""
    return await list_tasks(
        session,
        assigned_to=auth.user_id,
        status=status,
        priority=priority,
        search=search,
        page=page,
        limit=limit,
    )


# ---------------------------------------------------------------------------
# Task CRUD
# ---------------------------------------------------------------------------


@router.post("", response_model=TaskMutationResponse, status_code=201)
async def create_task_endpoint(
    task_in: TaskCreate,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Create a task and notify its assignee."""
    task = await create_task(session, task_in, auth.user_id)
    await session.commit()
    await session.refresh(task)

    enriched = await enrich_task(session, task)

    await notify_users(
        session,
        [task.assigned_to],
        "task_assigned",
        _task_payload(enriched, f"You have been assigned a new task: {task.title}"),
        actor_id=auth.user_id,
    )

    return TaskMutationResponse(message="Task created successfully", task=enriched)


@router.get("/{task_id}", response_model=TaskEnvelope)
async def get_task_endpoint(
    task_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Get a task with comments and activity. Marks it read for the caller."""
    task = await get_task_or_404(session, task_id)
    require_participant(task, auth.user_id)
    await mark_task_read(session, task.id, auth.user_id)
    return TaskEnvelope(task=await enrich_task_detail(session, task))


@router.patch("/{task_id}", response_model=TaskMutationResponse)
async def update_task_endpoint(
    task_id: uuid.UUID,
    task_in: TaskUpdate,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Update task fields. Status changes are recorded in the activity log."""
    task = await get_task_or_404(session, task_id)
    require_participant(task, auth.user_id)
    task = await update_task(session, task, task_in, auth.user_id)
    await session.commit()
    await session.refresh(task)

    enriched = await enrich_task(session, task)

    await notify_users(
        session,
        [task.assigned_to],
        "task_updated",
        _task_payload(enriched, f'Task "{task.title}" has been updated'),
        actor_id=auth.user_id,
    )

    return TaskMutationResponse(message="Task updated successfully", task=enriched)


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


@router.post("/{task_id}/comments", response_model=CommentResponse, status_code=201)
async def add_comment_endpoint(
    task_id: uuid.UUID,
    body: CommentCreate,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Comment on a task. The other participant is notified."""
    task = await get_task_or_404(session, task_id)
    require_participant(task, auth.user_id)
    comment = await add_comment(session, task, body.text, auth.user_id)
    await session.commit()
    await session.refresh(task)

    detail = await enrich_task_detail(session, task)
    comment_read = next(c for c in detail.comments if c.id == comment.id)

    await notify_users(
        session,
        [task.assigned_to, task.created_by],
        "task_updated",
        _task_payload(detail, f'New comment added to task "{task.title}"'),
        actor_id=auth.user_id,
    )

    return CommentResponse(
        message="Comment added successfully", comment=comment_read, task=detail
    )


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


@router.patch("/{task_id}/complete", response_model=TaskMutationResponse)
async def mark_complete_endpoint(
    task_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Mark a task complete. Assignee only; the creator is notified."""
    task = await get_task_or_404(session, task_id)
    task = await mark_complete(session, task, auth.user_id)
    await session.commit()
    await session.refresh(task)

    enriched = await enrich_task(session, task)

    await notify_users(
        session,
        [task.created_by],
        "task_updated",
        _task_payload(enriched, f'Task "{task.title}" has been completed'),
        actor_id=auth.user_id,
    )

    return TaskMutationResponse(message="Task marked as complete", task=enriched)


@router.post("/{task_id}/reminder", response_model=MessageResponse)
async def send_reminder_endpoint(
    task_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Send a one-time reminder to the assignee. Creator only."""
    task = await get_task_or_404(session, task_id)
    task = await send_reminder(session, task, auth.user_id)
    await session.commit()
    await session.refresh(task)

    await notify_users(
        session,
        [task.assigned_to],
        "alert",
        {
            "type": "reminder",
            "message": (
                f'Reminder: Task "{task.title}" is due on {format_due_date(task.due_date)}'
            ),
            "task": str(task.id),
        },
        actor_id=auth.user_id,
    )

    return MessageResponse(message="Reminder sent successfully")


@router.get("/{task_id}/related", response_model=RelatedTasks)
async def get_related_tasks_endpoint(
    task_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Up to 10 tasks sharing a project, assignee or tag, or due nearby."""
    task = await get_task_or_404(session, task_id)
    require_participant(task, auth.user_id)
    return RelatedTasks(related_tasks=await get_related_tasks(session, task))
