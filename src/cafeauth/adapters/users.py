"""SQL-backed user directory (users + roles tables)."""

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col

from cafeauth.core.errors import NotFoundError, ValidationError
from cafeauth.core.interfaces import UserDirectory, UserRecord
from cafeauth.core.models import Role, User, UserStatus, utc_now
from cafeauth.core.security import hash_password, verify_password
from cafeauth.infra.postgresql import store_operation

UNKNOWN_ROLE = "unknown"


def _to_record(user: User, role: Role | None) -> UserRecord:
    return UserRecord(
        id=user.id,
        username=user.username,
        password_hash=user.password_hash,
        role_id=user.role_id,
        role_name=role.name if role is not None else UNKNOWN_ROLE,
        status=user.status,
        full_name=user.full_name,
    )


class SqlUserDirectory(UserDirectory):
    """User directory reading the staff tables through the request session."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    def _select(self):
        return (
            select(User, Role)
            .join(Role, col(User.role_id) == col(Role.id), isouter=True)
            .execution_options(populate_existing=True)
        )

    async def get_by_username(self, username: str) -> UserRecord | None:
        async with store_operation("users.get_by_username"):
            result = await self._db.execute(
                self._select().where(func.lower(User.username) == username.strip().lower())
            )
            row = result.first()
        if row is None:
            return None
        return _to_record(*row)

    async def get_by_id(self, user_id: str) -> UserRecord | None:
        async with store_operation("users.get_by_id"):
            result = await self._db.execute(
                self._select().where(col(User.id) == user_id)
            )
            row = result.first()
        if row is None:
            return None
        return _to_record(*row)

    def verify_password(self, password: str, record: UserRecord | None) -> bool:
        return verify_password(password, record.password_hash if record else None)

    def _active_in_roles(self, roles: list[str]):
        wanted = [role.lower() for role in roles]
        return (
            self._select()
            .where(func.lower(Role.name).in_(wanted))
            .where(col(User.status) == UserStatus.ACTIVE)
            .order_by(col(User.created_at))
        )

    async def find_admin(self, roles: list[str]) -> UserRecord | None:
        async with store_operation("users.find_admin"):
            result = await self._db.execute(self._active_in_roles(roles).limit(1))
            row = result.first()
        if row is None:
            return None
        return _to_record(*row)

    async def list_active_in_roles(self, roles: list[str]) -> list[UserRecord]:
        async with store_operation("users.list_active_in_roles"):
            result = await self._db.execute(self._active_in_roles(roles))
            rows = result.all()
        return [_to_record(user, role) for user, role in rows]

    async def list_users(self) -> list[UserRecord]:
        async with store_operation("users.list"):
            result = await self._db.execute(self._select().order_by(col(User.username)))
            rows = result.all()
        return [_to_record(user, role) for user, role in rows]

    async def set_password(self, user_id: str, password: str) -> None:
        password_hash = hash_password(password)
        async with store_operation("users.set_password"):
            await self._db.execute(
                update(User)
                .where(col(User.id) == user_id)
                .values(password_hash=password_hash, updated_at=utc_now())
            )
            await self._db.commit()

    async def set_status(self, user_id: str, status: str) -> UserRecord | None:
        async with store_operation("users.set_status"):
            result = await self._db.execute(
                update(User)
                .where(col(User.id) == user_id)
                .values(status=status, updated_at=utc_now())
            )
            await self._db.commit()
        if result.rowcount == 0:
            return None
        return await self.get_by_id(user_id)

    async def touch_login(self, user_id: str) -> None:
        async with store_operation("users.touch_login"):
            await self._db.execute(
                update(User).where(col(User.id) == user_id).values(last_login=utc_now())
            )
            await self._db.commit()

    async def ensure_roles(self, names: list[str]) -> None:
        """Create any missing roles (startup seeding)."""
        async with store_operation("roles.ensure"):
            result = await self._db.execute(select(Role.name))
            existing = {name.lower() for name in result.scalars().all()}
            for name in names:
                if name.lower() not in existing:
                    self._db.add(Role(name=name))
                    existing.add(name.lower())
            await self._db.commit()

    async def create_user(
        self, username: str, password: str, role: str, full_name: str = ""
    ) -> UserRecord:
        """Create a staff account.

        Raises:
            ValidationError: Username already taken
            NotFoundError: Role does not exist
        """
        if await self.get_by_username(username) is not None:
            raise ValidationError(f"Username already exists: {username}")

        async with store_operation("users.create"):
            result = await self._db.execute(
                select(Role).where(func.lower(Role.name) == role.lower())
            )
            role_row = result.scalar_one_or_none()
            if role_row is None:
                raise NotFoundError(f"Role not found: {role}")

            user = User(
                username=username.strip(),
                full_name=full_name,
                password_hash=hash_password(password),
                role_id=role_row.id,
                status=UserStatus.ACTIVE,
            )
            self._db.add(user)
            await self._db.commit()

        return _to_record(user, role_row)
