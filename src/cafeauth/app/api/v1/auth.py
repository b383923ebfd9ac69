"""Authentication API endpoints.

Endpoints:
- POST /api/v1/login - Login with username/password
- GET /api/v1/login/cooldown - Remaining lockout time for a username
- GET /api/v1/session/check - Current session and user
- POST /api/v1/session/refresh - Extend the current session
- POST /api/v1/logout - End this session (or all sessions of the caller)
- POST /api/v1/password - Change password, invalidating other sessions
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Query, Request, Response
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, Field

from cafeauth.app.api.v1.dependencies import (
    Client,
    CurrentSession,
    DbSession,
    Gateway,
    SessionToken,
    Users,
)
from cafeauth.app.config import get_settings
from cafeauth.core.errors import NotAuthenticatedError, ValidationError
from cafeauth.core.interfaces import UserRecord
from cafeauth.core.models import Session, as_utc
from cafeauth.services import AttemptTracker, SessionService

router = APIRouter(tags=["auth"])


# =============================================================================
# Request/Response Models
# =============================================================================


class LoginRequest(BaseModel):
    """Login request. Field checks happen in the gateway so that every
    malformed input gets the same 400 envelope."""

    username: str | None = None
    password: str | None = None


class LogoutRequest(BaseModel):
    # POS terminals send the camelCase spelling
    logout_all: bool = Field(
        default=False, validation_alias=AliasChoices("logout_all", "logoutAll")
    )


class ChangePasswordRequest(BaseModel):
    current_password: str | None = None
    new_password: str | None = None


class UserResponse(BaseModel):
    id: str
    username: str
    full_name: str
    role_id: int | None
    role_name: str
    status: str

    @classmethod
    def from_record(cls, user: UserRecord) -> "UserResponse":
        return cls(**user.public())


class LoginResponse(BaseModel):
    token: str
    expires_at: datetime
    user: UserResponse


class CooldownResponse(BaseModel):
    on_cooldown: bool
    remaining_seconds: int


class SessionInfo(BaseModel):
    expires_at: datetime
    last_activity: datetime


class SessionCheckResponse(BaseModel):
    authenticated: bool
    user: UserResponse
    session: SessionInfo


class RefreshResponse(BaseModel):
    expires_at: datetime


class LogoutResponse(BaseModel):
    success: bool
    message: str


# =============================================================================
# Cookie helpers
# =============================================================================


def set_session_cookie(response: Response, request: Request, token: str) -> None:
    """Attach the session cookie for a full TTL.

    Secure when configured or served over https.
    """
    cookie = get_settings().cookie
    response.set_cookie(
        key=cookie.name,
        value=token,
        httponly=True,
        samesite=cookie.samesite,
        secure=cookie.secure or request.url.scheme == "https",
        path="/",
        max_age=SessionService.default_ttl(),
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=get_settings().cookie.name, path="/")


def login_response(
    response: Response, request: Request, session: Session, user: UserRecord
) -> LoginResponse:
    set_session_cookie(response, request, session.token)
    return LoginResponse(
        token=session.token,
        expires_at=as_utc(session.expires_at),
        user=UserResponse.from_record(user),
    )


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/login")
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    gateway: Gateway,
    client: Client,
) -> LoginResponse:
    """Login with username and password.

    On success, sets the session cookie and returns the token and user.
    Wrong credentials return 401 with attempts_remaining; a locked identity
    returns 423 with remaining_seconds and a Retry-After header.
    """
    result = await gateway.login(body.username, body.password, client)
    return login_response(response, request, result.session, result.user)


@router.get("/login/cooldown")
async def login_cooldown(
    db: DbSession,
    username: Annotated[str | None, Query()] = None,
) -> CooldownResponse:
    """Remaining lockout for a username (client countdown only)."""
    if not username or not username.strip():
        raise ValidationError("Missing username")

    status = await AttemptTracker.check_cooldown(db, username)
    return CooldownResponse(
        on_cooldown=status.on_cooldown, remaining_seconds=status.remaining_seconds
    )


@router.get("/session/check", response_model=SessionCheckResponse)
async def check_session(db: DbSession, users: Users, token: SessionToken):
    """Current session info; 401 with authenticated=false otherwise."""
    resolved = await SessionService.validate(db, users, token)
    if resolved is None:
        error = NotAuthenticatedError()
        return JSONResponse(
            status_code=error.status_code,
            content={"authenticated": False, **error.to_response().to_content()},
        )

    session, user = resolved
    return SessionCheckResponse(
        authenticated=True,
        user=UserResponse.from_record(user),
        session=SessionInfo(
            expires_at=as_utc(session.expires_at),
            last_activity=as_utc(session.last_activity),
        ),
    )


@router.post("/session/refresh")
async def refresh_session(
    request: Request,
    response: Response,
    db: DbSession,
    users: Users,
    token: SessionToken,
) -> RefreshResponse:
    """Extend the current session and renew the cookie lifetime."""
    expires_at = await SessionService.refresh(db, users, token)
    set_session_cookie(response, request, token)
    return RefreshResponse(expires_at=expires_at)


@router.post("/logout")
async def logout(
    response: Response,
    gateway: Gateway,
    token: SessionToken,
    client: Client,
    body: LogoutRequest | None = None,
) -> LogoutResponse:
    """Logout by deactivating the session and clearing the cookie.

    Always succeeds (even without a session).
    """
    logout_all = body.logout_all if body else False
    message = await gateway.logout(token, logout_all=logout_all, client=client)
    clear_session_cookie(response)
    return LogoutResponse(success=True, message=message)


@router.post("/password")
async def change_password(
    body: ChangePasswordRequest,
    request: Request,
    response: Response,
    gateway: Gateway,
    caller: CurrentSession,
    client: Client,
) -> LoginResponse:
    """Change the caller's password.

    Every session of the caller is ended; a new one is issued and returned.
    """
    _, user = caller
    session = await gateway.change_password(
        user, body.current_password, body.new_password, client
    )
    return login_response(response, request, session, user)
