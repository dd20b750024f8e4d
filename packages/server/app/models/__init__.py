# SQLModel definitions - imported here to ensure metadata is populated for create_all.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .task import Task, TaskTag  # noqa: F401
from .read_marker import TaskReadMarker  # noqa: F401
from .comment import TaskActivity, TaskComment  # noqa: F401
from .event import Event  # noqa: F401
