"""Manager approval endpoint.

POS screens ask for a manager's PIN (their password) before voids, refunds
and other sensitive operations. The caller must be signed in; the approver
is any active admin, owner or manager.
"""

from fastapi import APIRouter
from pydantic import BaseModel

from cafeauth.app.api.v1.dependencies import Client, CurrentSession, Gateway

router = APIRouter(prefix="/manager", tags=["manager"])


class ManagerVerifyRequest(BaseModel):
    pin: str | None = None


class ManagerVerifyResponse(BaseModel):
    success: bool
    manager_id: str
    manager_name: str


@router.post("/verify")
async def verify_manager(
    body: ManagerVerifyRequest, gateway: Gateway, caller: CurrentSession, client: Client
) -> ManagerVerifyResponse:
    _, requester = caller
    approver = await gateway.verify_manager_pin(body.pin, requester, client)
    return ManagerVerifyResponse(
        success=True,
        manager_id=approver.id,
        manager_name=approver.full_name or approver.username,
    )
