"""Failed login attempt tracking.

Provides per-identity lockout state:
- Get state: Current record (zero-state when none exists)
- Record failure: Atomic read-modify-write, may start a lockout
- Check cooldown: Read-only remaining lockout time
- Reset / reset all: Forget failures (successful login, admin unlock)

Identities are keyed by lowercased username. Every mutating call commits
before returning.
"""

import logging

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col

from cafeauth.app.metrics.collector import LOCKOUTS_TOTAL
from cafeauth.core.cooldown import CooldownPolicy, CooldownStatus, cooldown_status
from cafeauth.core.logging_schema import LogEvent
from cafeauth.core.models import AttemptRecord, epoch_ms, normalize_identity, utc_now
from cafeauth.infra.postgresql import store_operation

logger = logging.getLogger(__name__)


def _insert_if_absent(db: AsyncSession, key: str):
    """INSERT ... ON CONFLICT DO NOTHING for the identity row."""
    dialect = db.get_bind().dialect.name
    insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
    return (
        insert(AttemptRecord)
        .values(username=key, attempts=0, lockout_level=0, lockout_until=0, last_attempt_at=0)
        .on_conflict_do_nothing(index_elements=["username"])
    )


class AttemptTracker:
    """Per-identity failed attempt counter with escalating lockout."""

    @staticmethod
    async def get_state(db: AsyncSession, username: str) -> AttemptRecord:
        """Get the attempt record for an identity.

        Returns an unsaved zero-state record if none exists.
        """
        key = normalize_identity(username)
        async with store_operation("attempts.get_state"):
            result = await db.execute(
                select(AttemptRecord)
                .where(col(AttemptRecord.username) == key)
                .execution_options(populate_existing=True)
            )
            record = result.scalar_one_or_none()

        if record is None:
            return AttemptRecord(username=key)
        return record

    @staticmethod
    async def check_cooldown(db: AsyncSession, username: str) -> CooldownStatus:
        """Check whether an identity is locked out. Does not mutate state."""
        record = await AttemptTracker.get_state(db, username)
        return AttemptTracker.cooldown_of(record)

    @staticmethod
    def cooldown_of(record: AttemptRecord) -> CooldownStatus:
        """Cooldown status of an already loaded record."""
        return cooldown_status(record.lockout_until, epoch_ms(utc_now()))

    @staticmethod
    async def record_failure(
        db: AsyncSession, username: str, policy: CooldownPolicy | None = None
    ) -> AttemptRecord:
        """Record one failed attempt.

        The row is created if absent and then read with FOR UPDATE, so
        concurrent failures for the same identity serialize on the row lock.
        An expired lockout clears the counter but keeps the lockout level.

        Args:
            db: Database session
            username: Login identity (any case)
            policy: Cooldown policy (defaults to configured policy)

        Returns:
            The persisted record
        """
        policy = policy or CooldownPolicy.from_settings()
        key = normalize_identity(username)

        async with store_operation("attempts.record_failure"):
            await db.execute(_insert_if_absent(db, key))
            result = await db.execute(
                select(AttemptRecord)
                .where(col(AttemptRecord.username) == key)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            record = result.scalar_one()

            now_ms = epoch_ms(utc_now())
            if record.lockout_until and record.lockout_until <= now_ms:
                record.attempts = 0
                record.lockout_until = 0

            decision = policy.next_failure(record.attempts, record.lockout_level)
            record.attempts = decision.attempts
            record.lockout_level = decision.lockout_level
            record.last_attempt_at = now_ms
            if decision.locks:
                record.lockout_until = now_ms + decision.lockout_seconds * 1000

            await db.commit()

        if decision.locks:
            LOCKOUTS_TOTAL.inc()
            logger.warning(
                "Lockout triggered",
                extra={
                    "event": LogEvent.LOCKOUT_TRIGGERED,
                    "username": key,
                    "lockout_level": record.lockout_level,
                    "lockout_seconds": decision.lockout_seconds,
                },
            )
        return record

    @staticmethod
    async def reset(db: AsyncSession, username: str) -> bool:
        """Delete the record for an identity.

        Returns:
            True if a record existed
        """
        key = normalize_identity(username)
        async with store_operation("attempts.reset"):
            result = await db.execute(
                delete(AttemptRecord).where(col(AttemptRecord.username) == key)
            )
            await db.commit()
        return result.rowcount > 0

    @staticmethod
    async def reset_all(db: AsyncSession) -> int:
        """Delete every record. Returns the number removed."""
        async with store_operation("attempts.reset_all"):
            result = await db.execute(delete(AttemptRecord))
            await db.commit()

        logger.info(
            "All lockouts cleared",
            extra={"event": LogEvent.LOCKOUT_CLEARED, "count": result.rowcount},
        )
        return result.rowcount

    @staticmethod
    async def list_locked(db: AsyncSession) -> list[AttemptRecord]:
        """Records whose lockout is still running, longest first."""
        now_ms = epoch_ms(utc_now())
        async with store_operation("attempts.list_locked"):
            result = await db.execute(
                select(AttemptRecord)
                .where(col(AttemptRecord.lockout_until) > now_ms)
                .order_by(col(AttemptRecord.lockout_until).desc())
            )
            return list(result.scalars().all())
