"""Staff administration endpoints (admin only)."""

from fastapi import APIRouter
from pydantic import BaseModel

from cafeauth.app.api.v1.auth import UserResponse
from cafeauth.app.api.v1.dependencies import AdminSession, Client, Gateway, Users

router = APIRouter(prefix="/staff", tags=["staff"])


class StaffListResponse(BaseModel):
    users: list[UserResponse]


class StatusRequest(BaseModel):
    status: str | None = None


@router.get("")
async def list_staff(users: Users, caller: AdminSession) -> StaffListResponse:
    records = await users.list_users()
    return StaffListResponse(users=[UserResponse.from_record(r) for r in records])


@router.post("/{user_id}/status")
async def set_status(
    user_id: str,
    body: StatusRequest,
    gateway: Gateway,
    caller: AdminSession,
    client: Client,
) -> UserResponse:
    """Activate or deactivate an account. Deactivation ends its sessions."""
    _, admin = caller
    record = await gateway.set_user_status(user_id, body.status or "", admin, client)
    return UserResponse.from_record(record)
