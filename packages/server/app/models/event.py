"""Notification event model (immutable, one row per recipient)."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import utcnow


class Event(SQLModel, table=True):
    __tablename__ = "events"

    sequence_id: Optional[int] = Field(default=None, primary_key=True)  # autoincrement
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    type: str = Field(nullable=False)  # e.g., task_assigned, task_updated, alert
    actor_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    payload: dict = Field(default_factory=dict, sa_type=sa.JSON, nullable=False)
    timestamp: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(),
    )
