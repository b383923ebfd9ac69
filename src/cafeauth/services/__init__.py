"""Authentication services."""

from cafeauth.services.attempt_tracker import AttemptTracker
from cafeauth.services.auth_service import (
    AuthGateway,
    ClientInfo,
    LoginResult,
    validate_credentials,
)
from cafeauth.services.authorization import require_role
from cafeauth.services.session_service import SessionService

__all__ = [
    "AttemptTracker",
    "AuthGateway",
    "ClientInfo",
    "LoginResult",
    "SessionService",
    "require_role",
    "validate_credentials",
]
