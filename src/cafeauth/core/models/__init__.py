"""Database models for cafe-auth.

Models are defined using SQLModel (SQLAlchemy + Pydantic).
"""

from cafeauth.core.models.audit import AuditLog
from cafeauth.core.models.auth import (
    AttemptRecord,
    Session,
    as_utc,
    epoch_ms,
    generate_ulid,
    normalize_identity,
    utc_now,
)
from cafeauth.core.models.staff import Role, User, UserStatus

__all__ = [
    "AttemptRecord",
    "Session",
    "AuditLog",
    "Role",
    "User",
    "UserStatus",
    "as_utc",
    "epoch_ms",
    "generate_ulid",
    "normalize_identity",
    "utc_now",
]
