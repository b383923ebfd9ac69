"""User directory interface.

The directory owns staff records, password hashes and role resolution.
Authentication consumes it read-mostly and only ever receives a verified
boolean for a password.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class UserRecord:
    """Staff account as seen by the authentication services."""

    id: str
    username: str
    password_hash: str
    role_id: int | None
    role_name: str
    status: str
    full_name: str = ""

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def has_role(self, *roles: str) -> bool:
        """Case-insensitive role membership."""
        wanted = {role.lower() for role in roles}
        return self.role_name.lower() in wanted

    def public(self) -> dict:
        """Fields safe to return to clients (no password hash)."""
        return {
            "id": self.id,
            "username": self.username,
            "full_name": self.full_name,
            "role_id": self.role_id,
            "role_name": self.role_name,
            "status": self.status,
        }


class UserDirectory(ABC):
    """Abstract lookup of staff accounts.

    Implementations raise StoreUnavailableError when the backing store fails;
    a missing user is None, never an exception.
    """

    @abstractmethod
    async def get_by_username(self, username: str) -> UserRecord | None:
        """Look up a user by username (case-insensitive)."""
        ...

    @abstractmethod
    async def get_by_id(self, user_id: str) -> UserRecord | None:
        """Look up a user by ID."""
        ...

    @abstractmethod
    def verify_password(self, password: str, record: UserRecord | None) -> bool:
        """Check a password; a None record still costs one hash verification."""
        ...

    @abstractmethod
    async def find_admin(self, roles: list[str]) -> UserRecord | None:
        """Oldest active account holding one of the roles."""
        ...

    @abstractmethod
    async def list_active_in_roles(self, roles: list[str]) -> list[UserRecord]:
        """Every active account holding one of the roles, oldest first."""
        ...

    @abstractmethod
    async def list_users(self) -> list[UserRecord]:
        ...

    @abstractmethod
    async def set_password(self, user_id: str, password: str) -> None:
        ...

    @abstractmethod
    async def set_status(self, user_id: str, status: str) -> UserRecord | None:
        """Update status; returns the updated record or None if missing."""
        ...

    async def touch_login(self, user_id: str) -> None:
        """Record a successful login. Optional for implementations."""
        return None
