"""Authorization guard: session validation plus role check."""

import logging
from collections.abc import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from cafeauth.core.errors import ForbiddenError, NotAuthenticatedError
from cafeauth.core.interfaces import UserDirectory, UserRecord
from cafeauth.core.logging_schema import LogEvent
from cafeauth.core.models import Session
from cafeauth.services.session_service import SessionService

logger = logging.getLogger(__name__)


def _accepted_roles(required_role: str | Iterable[str] | None) -> tuple[str, ...]:
    if required_role is None:
        return ()
    if isinstance(required_role, str):
        return (required_role,)
    return tuple(required_role)


async def require_role(
    db: AsyncSession,
    users: UserDirectory,
    token: str | None,
    required_role: str | Iterable[str] | None = None,
) -> tuple[Session, UserRecord]:
    """Resolve the caller and enforce a role.

    Args:
        db: Database session
        users: User directory
        token: Session token from cookie or bearer header
        required_role: One role name, a collection of accepted role names,
            or None to only require a valid session

    Returns:
        Tuple of (session, user)

    Raises:
        NotAuthenticatedError: Missing, expired or invalid session
        ForbiddenError: Valid session without an accepted role
    """
    resolved = await SessionService.validate(db, users, token)
    if resolved is None:
        raise NotAuthenticatedError()

    roles = _accepted_roles(required_role)
    session, user = resolved
    if roles and not user.has_role(*roles):
        logger.warning(
            "Access denied",
            extra={
                "event": LogEvent.ACCESS_DENIED,
                "user_id": user.id,
                "role": user.role_name,
                "required": list(roles),
            },
        )
        raise ForbiddenError()
    return session, user
