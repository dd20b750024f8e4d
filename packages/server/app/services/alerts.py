"""
Alert aggregation for the task dashboard.

Alerts are computed from task state on every request:

- overdue:        open task whose due date has passed            (critical)
- due-soon:       open task due within the next 48 hours         (warning)
- urgent:         open task with urgent priority                 (high)
- new-assignment: task created in the last 24 hours, still unread (info)

An urgent task that already produced an alert earlier in the list is not
reported again as urgent. The list is ordered by severity, then by the
alert timestamp, newest first.
"""

from __future__ import annotations

import math
import uuid
from datetime import datetime, timedelta
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.models.base import to_naive_utc, utcnow
from app.models.read_marker import TaskReadMarker
from app.models.task import Task
from app.services.tasks import enrich_tasks, mark_task_read
from taskdesk_shared.schemas.alerts import (
    Alert,
    AlertList,
    AlertSummary,
    DueSoonAlert,
    NewAssignmentAlert,
    OverdueAlert,
    UrgentAlert,
)
from taskdesk_shared.schemas.common import AlertType, TaskPriority, TaskStatus
from taskdesk_shared.schemas.tasks import TaskRead

settings = get_settings()

SECONDS_PER_DAY = 86400


def make_alert_id(alert_type: AlertType, task_id: uuid.UUID) -> str:
    return f"{alert_type.value}-{task_id}"


def days_overdue(due_date: datetime, now: datetime) -> int:
    return math.ceil((now - due_date).total_seconds() / SECONDS_PER_DAY)


def format_due_date(value: datetime) -> str:
    """M/D/YYYY, without zero padding."""
    return f"{value.month}/{value.day}/{value.year}"


# ---------------------------------------------------------------------------
# Pure aggregation
# ---------------------------------------------------------------------------


def build_alert_list(
    overdue: Sequence[TaskRead],
    due_soon: Sequence[TaskRead],
    urgent: Sequence[TaskRead],
    new: Sequence[TaskRead],
    now: datetime,
) -> AlertList:
    """Turn the four task views into one ordered alert list with summary counts.

    Summary category counts are the raw view sizes; ``total`` counts the
    alerts actually returned, after urgent duplicates are dropped.
    """
    alerts: list[Alert] = []

    for task in overdue:
        alerts.append(
            OverdueAlert(
                id=make_alert_id(AlertType.OVERDUE, task.id),
                message=f'"{task.title}" is overdue by {days_overdue(task.due_date, now)} days',
                task=task,
                created_at=task.due_date,
            )
        )

    for task in due_soon:
        alerts.append(
            DueSoonAlert(
                id=make_alert_id(AlertType.DUE_SOON, task.id),
                message=f'"{task.title}" is due on {format_due_date(task.due_date)}',
                task=task,
                created_at=task.created_at,
            )
        )

    flagged = {a.task.id for a in alerts}
    for task in urgent:
        if task.id in flagged:
            continue
        alerts.append(
            UrgentAlert(
                id=make_alert_id(AlertType.URGENT, task.id),
                message=f'"{task.title}" requires immediate attention',
                task=task,
                created_at=task.created_at,
            )
        )

    for task in new:
        alerts.append(
            NewAssignmentAlert(
                id=make_alert_id(AlertType.NEW_ASSIGNMENT, task.id),
                message=f'You have been assigned "{task.title}"',
                task=task,
                created_at=task.created_at,
            )
        )

    # Both sorts are stable: newest first within each severity.
    alerts.sort(key=lambda a: a.created_at, reverse=True)
    alerts.sort(key=lambda a: a.severity.rank)

    return AlertList(
        alerts=alerts,
        summary=AlertSummary(
            total=len(alerts),
            overdue=len(overdue),
            due_soon=len(due_soon),
            urgent=len(urgent),
            new=len(new),
        ),
    )


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def _fetch(session: AsyncSession, stmt) -> list[Task]:
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_alerts(
    session: AsyncSession,
    user_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> AlertList:
    """Compute the alert list for the tasks assigned to ``user_id``. Read-only."""
    now = to_naive_utc(now) if now is not None else utcnow()
    due_soon_until = now + timedelta(hours=settings.due_soon_window_hours)
    new_since = now - timedelta(hours=settings.new_assignment_window_hours)

    mine = select(Task).where(Task.assigned_to == user_id)
    still_open = Task.status != TaskStatus.COMPLETED.value

    overdue = await _fetch(
        session,
        mine.where(still_open, Task.due_date < now).order_by(Task.due_date.asc()),
    )
    due_soon = await _fetch(
        session,
        mine.where(still_open, Task.due_date >= now, Task.due_date <= due_soon_until)
        .order_by(Task.due_date.asc()),
    )
    urgent = await _fetch(
        session,
        mine.where(still_open, Task.priority == TaskPriority.URGENT.value)
        .order_by(Task.due_date.asc()),
    )
    unread = Task.id.not_in(
        select(TaskReadMarker.task_id).where(TaskReadMarker.user_id == user_id)
    )
    new = await _fetch(
        session,
        mine.where(Task.created_at >= new_since, unread).order_by(Task.created_at.desc()),
    )

    # Enrich each distinct task once; the views overlap.
    distinct = {t.id: t for t in overdue + due_soon + urgent + new}
    enriched = {t.id: t for t in await enrich_tasks(session, list(distinct.values()))}

    return build_alert_list(
        [enriched[t.id] for t in overdue],
        [enriched[t.id] for t in due_soon],
        [enriched[t.id] for t in urgent],
        [enriched[t.id] for t in new],
        now,
    )


# ---------------------------------------------------------------------------
# Acknowledgment
# ---------------------------------------------------------------------------

_NEW_ASSIGNMENT_PREFIX = f"{AlertType.NEW_ASSIGNMENT.value}-"


async def acknowledge_alert(
    session: AsyncSession,
    alert_id: str,
    user_id: uuid.UUID,
) -> bool:
    """Mark the condition behind an alert as seen.

    Only new-assignment alerts have backing state (the task read marker).
    Every other alert id, a malformed task id, or a missing task is
    accepted and changes nothing. Returns True if a marker was written.
    """
    if not alert_id.startswith(_NEW_ASSIGNMENT_PREFIX):
        return False
    try:
        task_id = uuid.UUID(alert_id[len(_NEW_ASSIGNMENT_PREFIX):])
    except ValueError:
        return False

    if not await session.get(Task, task_id):
        return False
    return await mark_task_read(session, task_id, user_id)
