"""API v1 module."""

from cafeauth.app.api.v1.auth import router as auth_router
from cafeauth.app.api.v1.lockouts import router as lockouts_router
from cafeauth.app.api.v1.manager import router as manager_router
from cafeauth.app.api.v1.staff import router as staff_router

__all__ = ["auth_router", "lockouts_router", "manager_router", "staff_router"]
