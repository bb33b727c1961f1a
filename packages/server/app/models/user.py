"""User model."""

from typing import Optional

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class User(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(nullable=False, unique=True, index=True)  # stored lower-cased
    password_hash: str = Field(nullable=False)
    full_name: str = Field(nullable=False)
    avatar_url: Optional[str] = None
    role: str = Field(nullable=False, default="member")  # admin | member
