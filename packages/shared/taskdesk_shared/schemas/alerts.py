"""Alert schemas.

Alerts are derived from task state on every request and never persisted.
Each alert kind is its own model with a literal ``type`` so clients can
discriminate on it.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from .common import AlertSeverity, AlertType
from .tasks import TaskRead


class AlertBase(BaseModel):
    id: str
    severity: AlertSeverity
    title: str
    message: str
    task: TaskRead
    created_at: datetime


class OverdueAlert(AlertBase):
    type: Literal[AlertType.OVERDUE] = AlertType.OVERDUE
    severity: AlertSeverity = AlertSeverity.CRITICAL
    title: str = "Task Overdue"


class DueSoonAlert(AlertBase):
    type: Literal[AlertType.DUE_SOON] = AlertType.DUE_SOON
    severity: AlertSeverity = AlertSeverity.WARNING
    title: str = "Task Due Soon"


class UrgentAlert(AlertBase):
    type: Literal[AlertType.URGENT] = AlertType.URGENT
    severity: AlertSeverity = AlertSeverity.HIGH
    title: str = "Urgent Task"


class NewAssignmentAlert(AlertBase):
    type: Literal[AlertType.NEW_ASSIGNMENT] = AlertType.NEW_ASSIGNMENT
    severity: AlertSeverity = AlertSeverity.INFO
    title: str = "New Task Assignment"


Alert = Annotated[
    Union[OverdueAlert, DueSoonAlert, UrgentAlert, NewAssignmentAlert],
    Field(discriminator="type"),
]


class AlertSummary(BaseModel):
    """Counts per category.

    ``total`` is the length of the deduplicated alert list; the category
    counts are the raw query sizes, so they may add up to more than ``total``.
    """
    model_config = ConfigDict(populate_by_name=True)

    total: int
    overdue: int
    due_soon: int = Field(alias="dueSoon")
    urgent: int
    new: int


class AlertList(BaseModel):
    alerts: List[Alert]
    summary: AlertSummary
