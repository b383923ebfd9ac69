"""API v1 dependencies.

The session token is read from the session cookie first, then from an
`Authorization: Bearer <token>` header. Both resolve through the same
session store.
"""

from typing import Annotated

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cafeauth.adapters import SqlAuditSink, SqlUserDirectory
from cafeauth.app.config import get_settings
from cafeauth.core.interfaces import AuditSink, UserDirectory, UserRecord
from cafeauth.core.models import Session
from cafeauth.infra import get_session
from cafeauth.services import AuthGateway, ClientInfo, require_role

DbSession = Annotated[AsyncSession, Depends(get_session)]


def get_user_directory(db: DbSession) -> UserDirectory:
    return SqlUserDirectory(db)


def get_audit_sink(db: DbSession) -> AuditSink:
    return SqlAuditSink(db)


Users = Annotated[UserDirectory, Depends(get_user_directory)]


def get_gateway(
    db: DbSession,
    users: Users,
    audit: Annotated[AuditSink, Depends(get_audit_sink)],
) -> AuthGateway:
    return AuthGateway(db, users, audit)


Gateway = Annotated[AuthGateway, Depends(get_gateway)]


def get_session_token(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
) -> str | None:
    """Session token from cookie, falling back to a bearer header."""
    token = request.cookies.get(get_settings().cookie.name)
    if token:
        return token

    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
    return None


SessionToken = Annotated[str | None, Depends(get_session_token)]


def get_client_info(request: Request) -> ClientInfo:
    return ClientInfo(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


Client = Annotated[ClientInfo, Depends(get_client_info)]


class RequireRole:
    """Route guard dependency.

    Usage:
        @router.get("/lockouts")
        async def list_lockouts(
            caller: Annotated[tuple[Session, UserRecord], Depends(RequireRole("admin"))],
        ): ...

    With no roles only a valid session is required.
    """

    def __init__(self, *roles: str) -> None:
        self.roles = roles

    def accepted_roles(self) -> tuple[str, ...]:
        return self.roles

    async def __call__(
        self, db: DbSession, users: Users, token: SessionToken
    ) -> tuple[Session, UserRecord]:
        return await require_role(db, users, token, self.accepted_roles() or None)


class RequireAdmin(RequireRole):
    """Guard accepting the configured admin roles (SECURITY_ADMIN_ROLES)."""

    def accepted_roles(self) -> tuple[str, ...]:
        return tuple(get_settings().security.admin_roles)


CurrentSession = Annotated[tuple[Session, UserRecord], Depends(RequireRole())]
AdminSession = Annotated[tuple[Session, UserRecord], Depends(RequireAdmin())]
