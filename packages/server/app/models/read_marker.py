"""Per-user read markers on tasks.

The composite primary key makes (task, user) a set: a user can be recorded
as having read a task at most once.
"""

from datetime import datetime
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import utcnow


class TaskReadMarker(SQLModel, table=True):
    __tablename__ = "task_read_markers"

    task_id: uuid.UUID = Field(foreign_key="tasks.id", primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True)
    read_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(),
    )
