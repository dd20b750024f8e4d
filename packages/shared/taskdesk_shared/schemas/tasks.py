"""Task-related Pydantic schemas for shared use across server and frontend codegen."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import BaseModel, Field, StringConstraints
from pydantic import UUID4

from .common import ActivityAction, Pagination, TaskPriority, TaskStatus
from .users import UserSummary

Title = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
Description = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=2000)]
Tag = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]
CommentText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=2000)]


# ---------------------------------------------------------------------------
# Task CRUD
# ---------------------------------------------------------------------------

class TaskBase(BaseModel):
    title: Title
    description: Description
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: datetime
    tags: List[Tag] = Field(default_factory=list)
    project_id: Optional[UUID4] = None


class TaskCreate(TaskBase):
    assigned_to: UUID4


class TaskUpdate(BaseModel):
    title: Optional[Title] = None
    description: Optional[Description] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None
    tags: Optional[List[Tag]] = None


class TaskRead(BaseModel):
    id: UUID4
    title: str
    description: str
    status: TaskStatus
    priority: TaskPriority
    created_by: Optional[UserSummary] = None
    assigned_to: Optional[UserSummary] = None
    due_date: datetime
    tags: List[str] = Field(default_factory=list)
    project_id: Optional[UUID4] = None
    completed_at: Optional[datetime] = None
    reminder_sent: bool = False
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Comments & activity
# ---------------------------------------------------------------------------

class CommentCreate(BaseModel):
    """Request body for POST /tasks/{taskId}/comments."""
    text: CommentText


class CommentRead(BaseModel):
    id: UUID4
    task_id: UUID4
    text: str
    author: Optional[UserSummary] = None
    created_at: datetime


class ActivityRead(BaseModel):
    id: UUID4
    action: ActivityAction
    description: str
    user: Optional[UserSummary] = None
    timestamp: datetime


class TaskDetail(TaskRead):
    comments: List[CommentRead] = Field(default_factory=list)
    activity: List[ActivityRead] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Response envelopes
# ---------------------------------------------------------------------------

class TaskList(BaseModel):
    tasks: List[TaskRead]
    pagination: Pagination


class TaskEnvelope(BaseModel):
    task: TaskDetail


class TaskMutationResponse(BaseModel):
    message: str
    task: TaskRead


class CommentResponse(BaseModel):
    message: str
    comment: CommentRead
    task: TaskDetail


class RelatedTasks(BaseModel):
    related_tasks: List[TaskRead]
