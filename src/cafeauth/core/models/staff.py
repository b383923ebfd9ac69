"""Staff account tables (Role, User).

These back the SQL user directory adapter. The authentication services never
query them directly; they go through the UserDirectory interface.
"""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel

from cafeauth.core.models.auth import generate_ulid, utc_now


class UserStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Role(SQLModel, table=True):
    """Staff role (admin, owner, manager, cashier, ...)."""

    __tablename__ = "roles"

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True, max_length=50)


class User(SQLModel, table=True):
    """Staff account."""

    __tablename__ = "users"

    id: str = Field(default_factory=generate_ulid, primary_key=True)
    username: str = Field(unique=True, index=True, max_length=100)
    full_name: str = Field(default="", max_length=255)
    password_hash: str
    role_id: int | None = Field(default=None, foreign_key="roles.id")
    status: str = Field(default=UserStatus.ACTIVE, max_length=20)
    created_at: datetime = Field(
        default_factory=utc_now, sa_column=Column(DateTime(timezone=True))
    )
    updated_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True))
    )
    last_login: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True))
    )
