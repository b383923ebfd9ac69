"""Staff account and lockout administration CLI (cafeauth-admin)."""

import argparse
import asyncio
import getpass
import sys
from collections.abc import Awaitable, Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from cafeauth.adapters import SqlUserDirectory
from cafeauth.app.config import get_settings
from cafeauth.core.errors import CafeAuthError
from cafeauth.infra import close_db, get_session_factory, init_db
from cafeauth.services import AttemptTracker, SessionService, validate_credentials


async def _with_session(action: Callable[[AsyncSession], Awaitable[None]]) -> None:
    await init_db()
    try:
        async with get_session_factory()() as db:
            await action(db)
    finally:
        await close_db()


def _run(action: Callable[[AsyncSession], Awaitable[None]]) -> None:
    try:
        asyncio.run(_with_session(action))
    except CafeAuthError as e:
        print(f"Error: {e.message}")
        sys.exit(1)


def create_user(username: str, password: str, role: str, full_name: str) -> None:
    """Create a new staff account."""

    async def action(db: AsyncSession) -> None:
        validate_credentials(username, password)
        users = SqlUserDirectory(db)
        await users.ensure_roles(get_settings().bootstrap.roles)
        record = await users.create_user(username, password, role, full_name)
        print(f"User '{record.username}' created with role '{record.role_name}'")

    _run(action)


def reset_password(username: str, password: str) -> None:
    """Reset a password and end every session of the account."""

    async def action(db: AsyncSession) -> None:
        users = SqlUserDirectory(db)
        record = await users.get_by_username(username)
        if record is None:
            print(f"Error: User '{username}' not found")
            sys.exit(1)

        await users.set_password(record.id, password)
        ended = await SessionService.destroy_all_for_user(db, record.id)
        print(f"Password reset for '{record.username}' ({ended} sessions ended)")

    _run(action)


def list_users() -> None:
    async def action(db: AsyncSession) -> None:
        records = await SqlUserDirectory(db).list_users()
        if not records:
            print("No users found")
            return

        print(f"{'Username':<20} {'Role':<12} {'Status':<10} {'Full name'}")
        print("-" * 60)
        for record in records:
            print(
                f"{record.username:<20} {record.role_name:<12} "
                f"{record.status:<10} {record.full_name}"
            )

    _run(action)


def list_lockouts() -> None:
    async def action(db: AsyncSession) -> None:
        records = await AttemptTracker.list_locked(db)
        if not records:
            print("No active lockouts")
            return

        print(f"{'Username':<20} {'Level':<6} {'Remaining':<10} {'Locked until'}")
        print("-" * 60)
        for record in records:
            remaining = AttemptTracker.cooldown_of(record).remaining_seconds
            until = datetime.fromtimestamp(record.lockout_until / 1000)
            print(
                f"{record.username:<20} {record.lockout_level:<6} "
                f"{remaining:<10} {until:%Y-%m-%d %H:%M:%S}"
            )

    _run(action)


def unlock(username: str) -> None:
    async def action(db: AsyncSession) -> None:
        if await AttemptTracker.reset(db, username):
            print(f"Unlocked '{username.strip().lower()}'")
        else:
            print(f"No attempt record for '{username.strip().lower()}'")

    _run(action)


def reset_lockouts() -> None:
    async def action(db: AsyncSession) -> None:
        count = await AttemptTracker.reset_all(db)
        print(f"Cleared {count} attempt records")

    _run(action)


def get_password_interactive(confirm: bool = True) -> str:
    """Get password interactively with optional confirmation."""
    password = getpass.getpass("Password: ")
    if not password:
        print("Error: Password cannot be empty")
        sys.exit(1)

    if confirm:
        password_confirm = getpass.getpass("Confirm password: ")
        if password != password_confirm:
            print("Error: Passwords do not match")
            sys.exit(1)

    return password


def _check_password_length(password: str) -> None:
    min_length = get_settings().security.min_password_length
    if len(password) < min_length:
        print(f"Error: Password must be at least {min_length} characters")
        sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="cafe-auth staff and lockout administration",
        prog="cafeauth-admin",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    create_parser = subparsers.add_parser("create-user", help="Create a staff account")
    create_parser.add_argument("username", help="Username to create")
    create_parser.add_argument("--role", "-r", default="cashier", help="Role name")
    create_parser.add_argument("--full-name", default="", help="Display name")
    create_parser.add_argument(
        "--password", "-p",
        help="Password (will prompt if not provided)",
    )

    reset_parser = subparsers.add_parser("reset-password", help="Reset a password")
    reset_parser.add_argument("username", help="Username to reset password")
    reset_parser.add_argument(
        "--password", "-p",
        help="New password (will prompt if not provided)",
    )

    subparsers.add_parser("list-users", help="List staff accounts")
    subparsers.add_parser("list-lockouts", help="List active lockouts")

    unlock_parser = subparsers.add_parser("unlock", help="Clear the lockout of one user")
    unlock_parser.add_argument("username", help="Username to unlock")

    subparsers.add_parser("reset-lockouts", help="Clear every attempt record")
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    if args.command == "create-user":
        password = args.password or get_password_interactive()
        _check_password_length(password)
        create_user(args.username, password, args.role, args.full_name)

    elif args.command == "reset-password":
        password = args.password or get_password_interactive()
        _check_password_length(password)
        reset_password(args.username, password)

    elif args.command == "list-users":
        list_users()

    elif args.command == "list-lockouts":
        list_lockouts()

    elif args.command == "unlock":
        unlock(args.username)

    elif args.command == "reset-lockouts":
        reset_lockouts()


if __name__ == "__main__":
    main()
