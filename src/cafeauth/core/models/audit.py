"""Append-only activity log table."""

from datetime import datetime

from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel

from cafeauth.core.models.auth import generate_ulid, utc_now


class AuditLog(SQLModel, table=True):
    __tablename__ = "activity_logs"

    id: str = Field(default_factory=generate_ulid, primary_key=True)
    user_id: str | None = Field(default=None, index=True)
    action: str = Field(max_length=100)
    reference: str = Field(default="", max_length=255)
    status: str = Field(default="Success", max_length=20)
    ip_address: str | None = Field(default=None, max_length=45)
    created_at: datetime = Field(
        default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False)
    )
