from typing import List, Optional
from uuid import UUID
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from .columns import BoardColumnRead
from .common import MemberRole


class ProjectCreate(BaseModel):
    name: str
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Project name is required")
        return v


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    is_archived: Optional[bool] = None


class ProjectRead(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    owner_id: UUID
    is_archived: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProjectSummary(ProjectRead):
    task_count: int = 0
    member_count: int = 0


class ProjectMemberAdd(BaseModel):
    """Add a member by user id or by email (exactly one)."""
    user_id: Optional[UUID] = None
    email: Optional[EmailStr] = None
    role: MemberRole = MemberRole.MEMBER

    @model_validator(mode="after")
    def check_target(self) -> "ProjectMemberAdd":
        if (self.user_id is None) == (self.email is None):
            raise ValueError("Provide exactly one of user_id or email")
        if self.role == MemberRole.OWNER:
            raise ValueError("A project has exactly one owner")
        return self


class ProjectMemberRead(BaseModel):
    user_id: UUID
    role: MemberRole
    full_name: str
    email: str
    avatar_url: Optional[str] = None
    joined_at: datetime


class BoardRead(BaseModel):
    """Full board payload: project, ordered columns with ordered tasks, members."""
    project: ProjectRead
    columns: List[BoardColumnRead] = Field(default_factory=list)
    members: List[ProjectMemberRead] = Field(default_factory=list)
