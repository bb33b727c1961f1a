from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, StrictInt, field_validator

from .tasks import TaskRead


class ColumnCreate(BaseModel):
    project_id: UUID
    name: str
    wip_limit: Optional[int] = Field(default=None, ge=1)
    color: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class ColumnUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    wip_limit: Optional[int] = Field(default=None, ge=1)
    color: Optional[str] = None


class ColumnReorder(BaseModel):
    """Request body for PUT /columns/{columnId}/reorder."""
    position: StrictInt = Field(ge=0)


class ColumnRead(BaseModel):
    id: UUID
    project_id: UUID
    name: str
    position: int
    wip_limit: Optional[int] = None
    color: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ColumnOrder(BaseModel):
    success: bool = True
    columns: List[ColumnRead] = Field(default_factory=list)


class BoardColumnRead(ColumnRead):
    tasks: List[TaskRead] = Field(default_factory=list)
    # WIP limits are advisory; this only reports the overflow.
    over_wip_limit: bool = False
