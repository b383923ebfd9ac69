"""Authentication models (AttemptRecord, Session).

Models are defined using SQLModel (SQLAlchemy + Pydantic).
"""

from datetime import UTC, datetime, timedelta

from sqlalchemy import BigInteger, Column, DateTime, String
from sqlmodel import Field, SQLModel
from ulid import ULID

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ULID())


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Return value as an aware UTC datetime.

    SQLite hands back naive datetimes while asyncpg returns aware ones.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def epoch_ms(value: datetime) -> int:
    """Convert datetime to epoch milliseconds (exact, no float rounding)."""
    return (as_utc(value) - _EPOCH) // timedelta(milliseconds=1)


def normalize_identity(username: str) -> str:
    """Lockout key for a username (case-insensitive)."""
    return username.strip().lower()


class AttemptRecord(SQLModel, table=True):
    """Consecutive failed login attempts for one identity."""

    __tablename__ = "attempt_records"

    # Usernames plus pseudo-identity prefixes
    username: str = Field(primary_key=True, max_length=120)
    attempts: int = Field(default=0)
    lockout_level: int = Field(default=0)
    # Epoch milliseconds, 0 = not locked
    lockout_until: int = Field(
        default=0, sa_column=Column(BigInteger, nullable=False, default=0)
    )
    last_attempt_at: int = Field(
        default=0, sa_column=Column(BigInteger, nullable=False, default=0)
    )


class Session(SQLModel, table=True):
    """Login session, soft-deactivated via is_active (never deleted)."""

    __tablename__ = "sessions"

    token: str = Field(sa_column=Column(String(64), primary_key=True))
    user_id: str = Field(index=True)
    ip_address: str | None = Field(default=None, max_length=45)
    user_agent: str | None = Field(default=None, max_length=255)
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    expires_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    last_activity: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    is_active: bool = Field(default=True, index=True)
