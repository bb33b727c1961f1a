"""Board column model."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from kanban_shared.schemas.common import DEFAULT_COLUMN_COLOR

from .base import TimestampMixin, UUIDMixin


class BoardColumn(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "columns"

    project_id: uuid.UUID = Field(foreign_key="projects.id", nullable=False, index=True, ondelete="CASCADE")
    name: str = Field(nullable=False)
    # Dense 0..n-1 within the project; written only by app.services.positions.
    position: int = Field(nullable=False, default=0, index=True)
    wip_limit: Optional[int] = None
    color: str = Field(nullable=False, default=DEFAULT_COLUMN_COLOR)
