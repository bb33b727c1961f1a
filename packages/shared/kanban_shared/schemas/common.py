from enum import Enum
from typing import Optional

from pydantic import BaseModel


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Display order for dashboards (most urgent first)
PRIORITY_ORDER: list["TaskPriority"] = [
    TaskPriority.CRITICAL,
    TaskPriority.HIGH,
    TaskPriority.MEDIUM,
    TaskPriority.LOW,
]


class UserRole(str, Enum):
    ADMIN = "admin"
    MEMBER = "member"


class MemberRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


# Roles allowed to manage project membership
MEMBER_MANAGER_ROLES = (MemberRole.OWNER, MemberRole.ADMIN)

DEFAULT_COLUMN_COLOR = "#6366f1"


class APIResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: str
