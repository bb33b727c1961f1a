# SQLModel definitions, imported here to ensure metadata is populated for Alembic.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .project import Project, ProjectMember  # noqa: F401
from .column import BoardColumn  # noqa: F401
from .task import Task, Subtask, Comment, Attachment  # noqa: F401
from .activity import ActivityLog, ImmutableActivityError  # noqa: F401
