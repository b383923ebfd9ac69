"""Lockout administration endpoints.

Endpoints:
- GET /api/v1/lockouts - Identities currently locked out (admin)
- POST /api/v1/lockouts/unlock - Clear one identity (admin)
- POST /api/v1/lockouts/reset-all - Clear every identity (admin)
- POST /api/v1/lockouts/master-unlock - Emergency admin login with access code
"""

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel

from cafeauth.app.api.v1.auth import LoginResponse, login_response
from cafeauth.app.api.v1.dependencies import AdminSession, Client, DbSession, Gateway, Users
from cafeauth.core.interfaces import UserRecord
from cafeauth.core.models import AttemptRecord
from cafeauth.services import AttemptTracker

router = APIRouter(prefix="/lockouts", tags=["lockouts"])


class LockoutResponse(BaseModel):
    username: str
    lockout_level: int
    remaining_seconds: int
    lockout_until: int  # epoch milliseconds
    full_name: str | None = None
    role_name: str | None = None

    @classmethod
    def from_record(
        cls, record: AttemptRecord, user: UserRecord | None = None
    ) -> "LockoutResponse":
        """Lockout row; full_name and role_name stay None for identities
        without an account (mistyped usernames, pseudo-identities)."""
        status = AttemptTracker.cooldown_of(record)
        return cls(
            username=record.username,
            full_name=user.full_name if user else None,
            role_name=user.role_name if user else None,
            lockout_level=record.lockout_level,
            remaining_seconds=status.remaining_seconds,
            lockout_until=record.lockout_until,
        )


class LockoutListResponse(BaseModel):
    lockouts: list[LockoutResponse]


class UnlockRequest(BaseModel):
    username: str | None = None


class UnlockResponse(BaseModel):
    success: bool
    message: str


class ResetAllResponse(BaseModel):
    success: bool
    cleared: int


class MasterUnlockRequest(BaseModel):
    access_code: str | None = None


@router.get("")
async def list_lockouts(
    db: DbSession, users: Users, caller: AdminSession
) -> LockoutListResponse:
    lockouts = []
    for record in await AttemptTracker.list_locked(db):
        user = await users.get_by_username(record.username)
        lockouts.append(LockoutResponse.from_record(record, user))
    return LockoutListResponse(lockouts=lockouts)


@router.post("/unlock")
async def unlock(
    body: UnlockRequest, gateway: Gateway, caller: AdminSession, client: Client
) -> UnlockResponse:
    """Forget failures and lockout level of one identity. Idempotent."""
    _, admin = caller
    await gateway.unlock(body.username or "", admin, client)
    return UnlockResponse(success=True, message=f"Unlocked {body.username.strip().lower()}")


@router.post("/reset-all")
async def reset_all(gateway: Gateway, caller: AdminSession, client: Client) -> ResetAllResponse:
    _, admin = caller
    cleared = await gateway.reset_all_lockouts(admin, client)
    return ResetAllResponse(success=True, cleared=cleared)


@router.post("/master-unlock")
async def master_unlock(
    body: MasterUnlockRequest,
    request: Request,
    response: Response,
    gateway: Gateway,
    client: Client,
) -> LoginResponse:
    """Sign in as the first admin account using the master access code."""
    result = await gateway.master_unlock(body.access_code, client)
    return login_response(response, request, result.session, result.user)
