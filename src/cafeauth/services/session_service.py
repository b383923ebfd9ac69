"""Session management service for cafe-auth.

Provides session lifecycle management:
- Create: Issue a random token with TTL
- Validate: Resolve token to (session, user), lazily expiring old sessions
- Refresh: Extend expiry of a valid session
- Destroy / destroy all: Soft-deactivate one or every session of a user
- Sweep: Bulk-deactivate expired sessions

Sessions are never deleted; is_active=False marks both destroyed and expired
sessions. Configuration via SecurityConfig (SECURITY_ env prefix).
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col

from cafeauth.app.config import get_settings
from cafeauth.app.metrics.collector import SESSIONS_CREATED_TOTAL, SESSIONS_SWEPT_TOTAL
from cafeauth.core.errors import NotAuthenticatedError
from cafeauth.core.interfaces import UserDirectory, UserRecord
from cafeauth.core.logging_schema import LogEvent
from cafeauth.core.models import Session, as_utc, utc_now
from cafeauth.core.security import generate_session_token
from cafeauth.infra.postgresql import store_operation

logger = logging.getLogger(__name__)

USER_AGENT_MAX_LENGTH = 255


class SessionService:
    """Service for managing user sessions."""

    @staticmethod
    def default_ttl() -> int:
        return get_settings().security.session_ttl

    @staticmethod
    async def create(
        db: AsyncSession,
        user_id: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
        ttl_seconds: int | None = None,
    ) -> Session:
        """Create a new session for a user.

        Other sessions of the user stay active (multi-device).

        Args:
            db: Database session
            user_id: User ID to create session for
            ip_address: Client address (diagnostic)
            user_agent: Client user agent, truncated to 255 chars (diagnostic)
            ttl_seconds: Session TTL in seconds (defaults to SECURITY_SESSION_TTL)

        Returns:
            Created session with expires_at set based on TTL
        """
        if ttl_seconds is None:
            ttl_seconds = SessionService.default_ttl()

        now = utc_now()
        session = Session(
            token=generate_session_token(),
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent[:USER_AGENT_MAX_LENGTH] if user_agent else None,
            created_at=now,
            last_activity=now,
            expires_at=now + timedelta(seconds=ttl_seconds),
            is_active=True,
        )
        async with store_operation("sessions.create"):
            db.add(session)
            await db.commit()

        SESSIONS_CREATED_TOTAL.inc()
        logger.info(
            "Session created",
            extra={"event": LogEvent.SESSION_CREATED, "user_id": user_id},
        )
        return session

    @staticmethod
    def is_valid(session: Session, now: datetime | None = None) -> bool:
        """Check if a session is valid (active and not expired)."""
        if not session.is_active:
            return False
        now = now or utc_now()
        return as_utc(session.expires_at) > now

    @staticmethod
    async def _get_active(db: AsyncSession, token: str) -> Session | None:
        result = await db.execute(
            select(Session)
            .where(col(Session.token) == token, col(Session.is_active).is_(True))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def validate(
        db: AsyncSession, users: UserDirectory, token: str | None
    ) -> tuple[Session, UserRecord] | None:
        """Resolve a token to its session and user.

        Returns None if the token is unknown, inactive or expired, or the
        user no longer exists or is inactive. An expired session is marked
        inactive on the way out. A valid session gets last_activity updated;
        expires_at is left alone.

        Args:
            db: Database session
            users: User directory used to resolve the owner
            token: Session token (may be None)

        Returns:
            Tuple of (session, user) or None
        """
        if not token:
            return None

        async with store_operation("sessions.validate"):
            session = await SessionService._get_active(db, token)
            if session is None:
                return None

            now = utc_now()
            if as_utc(session.expires_at) <= now:
                session.is_active = False
                await db.commit()
                logger.info(
                    "Session expired",
                    extra={"event": LogEvent.SESSION_EXPIRED, "user_id": session.user_id},
                )
                return None

            user = await users.get_by_id(session.user_id)
            if user is None or not user.is_active:
                return None

            session.last_activity = now
            await db.commit()

        return session, user

    @staticmethod
    async def refresh(
        db: AsyncSession,
        users: UserDirectory,
        token: str | None,
        ttl_seconds: int | None = None,
    ) -> datetime:
        """Extend the expiry of a valid session.

        Returns:
            The new expires_at

        Raises:
            NotAuthenticatedError: If the session is not valid
        """
        resolved = await SessionService.validate(db, users, token)
        if resolved is None:
            raise NotAuthenticatedError()

        if ttl_seconds is None:
            ttl_seconds = SessionService.default_ttl()

        session, _ = resolved
        now = utc_now()
        async with store_operation("sessions.refresh"):
            session.expires_at = now + timedelta(seconds=ttl_seconds)
            session.last_activity = now
            await db.commit()

        logger.info(
            "Session refreshed",
            extra={"event": LogEvent.SESSION_REFRESHED, "user_id": session.user_id},
        )
        return as_utc(session.expires_at)

    @staticmethod
    async def destroy(db: AsyncSession, token: str | None) -> bool:
        """Deactivate one session. Idempotent.

        Returns:
            True if an active session was deactivated
        """
        if not token:
            return False

        async with store_operation("sessions.destroy"):
            result = await db.execute(
                update(Session)
                .where(col(Session.token) == token, col(Session.is_active).is_(True))
                .values(is_active=False)
                .execution_options(synchronize_session=False)
            )
            await db.commit()

        if result.rowcount > 0:
            logger.info("Session destroyed", extra={"event": LogEvent.SESSION_DESTROYED})
            return True
        return False

    @staticmethod
    async def destroy_all_for_user(db: AsyncSession, user_id: str) -> int:
        """Deactivate every active session of one user.

        Returns:
            Number of sessions deactivated
        """
        async with store_operation("sessions.destroy_all"):
            result = await db.execute(
                update(Session)
                .where(col(Session.user_id) == user_id, col(Session.is_active).is_(True))
                .values(is_active=False)
                .execution_options(synchronize_session=False)
            )
            await db.commit()

        logger.info(
            "All sessions destroyed for user",
            extra={
                "event": LogEvent.SESSION_DESTROYED,
                "user_id": user_id,
                "count": result.rowcount,
            },
        )
        return result.rowcount

    @staticmethod
    async def sweep_expired(db: AsyncSession) -> int:
        """Deactivate every active session past its expiry.

        Returns:
            Number of sessions deactivated
        """
        async with store_operation("sessions.sweep"):
            result = await db.execute(
                update(Session)
                .where(col(Session.is_active).is_(True), col(Session.expires_at) <= utc_now())
                .values(is_active=False)
                .execution_options(synchronize_session=False)
            )
            await db.commit()

        if result.rowcount:
            SESSIONS_SWEPT_TOTAL.inc(result.rowcount)
            logger.info(
                "Expired sessions swept",
                extra={"event": LogEvent.SESSIONS_SWEPT, "count": result.rowcount},
            )
        return result.rowcount
