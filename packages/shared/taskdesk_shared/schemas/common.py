from enum import Enum
from pydantic import BaseModel

class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

# Higher rank sorts first in task listings
PRIORITY_RANK: dict["TaskPriority", int] = {
    TaskPriority.LOW: 0,
    TaskPriority.MEDIUM: 1,
    TaskPriority.HIGH: 2,
    TaskPriority.URGENT: 3,
}

class ActivityAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    COMPLETED = "completed"
    ASSIGNED = "assigned"
    COMMENT_ADDED = "comment_added"
    REMINDER_SENT = "reminder_sent"
    STATUS_CHANGED = "status_changed"

class AlertType(str, Enum):
    OVERDUE = "overdue"
    DUE_SOON = "due-soon"
    URGENT = "urgent"
    NEW_ASSIGNMENT = "new-assignment"

class AlertSeverity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Sort key: critical first, info last."""
        return _SEVERITY_ORDER.index(self)

_SEVERITY_ORDER = [
    AlertSeverity.CRITICAL,
    AlertSeverity.HIGH,
    AlertSeverity.WARNING,
    AlertSeverity.INFO,
]

class Pagination(BaseModel):
    current: int
    pages: int
    total: int

class MessageResponse(BaseModel):
    message: str
