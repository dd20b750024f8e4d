"""Task model and its tag join table."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Task(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "tasks"

    title: str = Field(nullable=False, max_length=200)
    description: str = Field(nullable=False, max_length=2000)
    status: str = Field(nullable=False, default="pending", index=True)  # pending | in_progress | completed
    priority: str = Field(nullable=False, default="medium", index=True)  # low | medium | high | urgent
    created_by: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    assigned_to: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    due_date: datetime = Field(nullable=False, index=True, sa_type=sa.DateTime())
    project_id: Optional[uuid.UUID] = Field(default=None, index=True)
    completed_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime())
    reminder_sent: bool = Field(default=False, nullable=False)


class TaskTag(SQLModel, table=True):
    __tablename__ = "task_tags"

    task_id: uuid.UUID = Field(foreign_key="tasks.id", primary_key=True)
    tag: str = Field(primary_key=True, index=True, max_length=50)
