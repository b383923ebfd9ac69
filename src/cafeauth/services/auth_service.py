"""Authentication gateway.

Orchestrates a login in a fixed order:

1. Syntax validation (no side effects)
2. Cooldown check (password is not looked at while locked)
3. User lookup (unknown users still pay for one hash verification)
4. Password verification; a mismatch records a failed attempt
5. Success: reset attempts, issue a session, write the audit log

Store failures in steps 3/4 propagate as StoreUnavailableError and are never
counted as failed attempts. The gateway also owns the other audited account
actions: logout, lockout administration, master unlock, password change and
staff status changes.
"""

import hmac
import logging
import re
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from cafeauth.app.config import get_settings
from cafeauth.app.metrics.collector import LOGIN_ATTEMPTS_TOTAL
from cafeauth.core.cooldown import CooldownPolicy
from cafeauth.core.errors import (
    CooldownError,
    ForbiddenError,
    InvalidCredentialsError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from cafeauth.core.interfaces import AuditEntry, AuditSink, UserDirectory, UserRecord
from cafeauth.core.logging_schema import LogEvent, LoginOutcome
from cafeauth.core.models import Session, UserStatus, normalize_identity
from cafeauth.services.attempt_tracker import AttemptTracker
from cafeauth.services.session_service import SessionService

logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
USERNAME_MAX_LENGTH = 100
PASSWORD_MAX_LENGTH = 255

# Attempt tracker identity for wrong master access codes. Contains a hyphen,
# so no real username can collide with it.
MASTER_UNLOCK_IDENTITY = "master-unlock"

MANAGER_PIN_PREFIX = "manager-pin:"


def manager_pin_identity(username: str) -> str:
    """Attempt tracker identity for wrong manager pins entered by one user."""
    return normalize_identity(MANAGER_PIN_PREFIX + username)


def validate_credentials(username: str | None, password: str | None) -> str:
    """Check login input syntax.

    Returns:
        The username with surrounding whitespace removed

    Raises:
        ValidationError: On empty, oversized or malformed input
    """
    username = (username or "").strip()
    password = password or ""

    if not username or not password:
        raise ValidationError("Missing username or password")
    if len(username) > USERNAME_MAX_LENGTH or len(password) > PASSWORD_MAX_LENGTH:
        raise ValidationError("Input too long")
    if not USERNAME_PATTERN.match(username):
        raise ValidationError("Invalid username format")
    return username


@dataclass(frozen=True)
class ClientInfo:
    """Diagnostic request metadata stored with sessions and audit entries."""

    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True)
class LoginResult:
    session: Session
    user: UserRecord


class AuthGateway:
    """Credential verification, lockout escalation and session issuance."""

    def __init__(
        self,
        db: AsyncSession,
        users: UserDirectory,
        audit: AuditSink,
        policy: CooldownPolicy | None = None,
    ) -> None:
        self._db = db
        self._users = users
        self._audit_sink = audit
        self._policy = policy or CooldownPolicy.from_settings()

    async def login(
        self, username: str | None, password: str | None, client: ClientInfo | None = None
    ) -> LoginResult:
        """Authenticate a user and issue a session.

        Raises:
            ValidationError: Malformed input (nothing recorded)
            CooldownError: Identity is locked out
            InvalidCredentialsError: Wrong password or unknown user
            ForbiddenError: Correct password for an inactive account
            StoreUnavailableError: Backing store failed (nothing recorded)
        """
        try:
            return await self._login(username, password, client or ClientInfo())
        except StoreUnavailableError:
            LOGIN_ATTEMPTS_TOTAL.labels(outcome=LoginOutcome.ERROR).inc()
            raise

    async def _login(
        self, username: str | None, password: str | None, client: ClientInfo
    ) -> LoginResult:
        username = validate_credentials(username, password)
        identity = normalize_identity(username)

        status = await AttemptTracker.check_cooldown(self._db, identity)
        if status.on_cooldown:
            LOGIN_ATTEMPTS_TOTAL.labels(outcome=LoginOutcome.COOLDOWN).inc()
            logger.info(
                "Login refused during cooldown",
                extra={
                    "event": LogEvent.LOGIN_FAILED,
                    "username": identity,
                    "remaining_seconds": status.remaining_seconds,
                },
            )
            raise CooldownError(status.remaining_seconds)

        user = await self._users.get_by_username(username)
        verified = self._users.verify_password(password, user)
        if user is None or not verified:
            await self._reject_credentials(identity, user, client)

        if not user.is_active:
            LOGIN_ATTEMPTS_TOTAL.labels(outcome=LoginOutcome.REJECTED).inc()
            logger.warning(
                "Login rejected for inactive account",
                extra={"event": LogEvent.LOGIN_REJECTED, "user_id": user.id},
            )
            await self._audit(
                AuditEntry(
                    action="Login rejected",
                    user_id=user.id,
                    reference="Account inactive",
                    status="Failed",
                    ip_address=client.ip_address,
                )
            )
            raise ForbiddenError("Account is inactive")

        await AttemptTracker.reset(self._db, identity)
        session = await SessionService.create(
            self._db, user.id, client.ip_address, client.user_agent
        )
        await self._users.touch_login(user.id)
        await self._audit(
            AuditEntry(
                action="Logged in",
                user_id=user.id,
                reference="System",
                ip_address=client.ip_address,
            )
        )

        LOGIN_ATTEMPTS_TOTAL.labels(outcome=LoginOutcome.SUCCESS).inc()
        logger.info(
            "Login succeeded",
            extra={"event": LogEvent.LOGIN_SUCCEEDED, "user_id": user.id},
        )
        return LoginResult(session=session, user=user)

    async def _reject_credentials(
        self, identity: str, user: UserRecord | None, client: ClientInfo
    ) -> None:
        record = await AttemptTracker.record_failure(self._db, identity, self._policy)
        status = AttemptTracker.cooldown_of(record)

        await self._audit(
            AuditEntry(
                action="Failed login",
                user_id=user.id if user else None,
                reference=f"User: {identity}",
                status="Failed",
                ip_address=client.ip_address,
            )
        )

        if status.on_cooldown:
            LOGIN_ATTEMPTS_TOTAL.labels(outcome=LoginOutcome.LOCKED).inc()
            raise CooldownError(status.remaining_seconds)

        remaining = self._policy.attempts_remaining(record.attempts)
        LOGIN_ATTEMPTS_TOTAL.labels(outcome=LoginOutcome.INVALID).inc()
        logger.info(
            "Login failed",
            extra={
                "event": LogEvent.LOGIN_FAILED,
                "username": identity,
                "attempts_remaining": remaining,
            },
        )
        raise InvalidCredentialsError(attempts_remaining=remaining)

    async def logout(
        self,
        token: str | None,
        logout_all: bool = False,
        client: ClientInfo | None = None,
    ) -> str:
        """End the caller's session, or every session of the caller.

        Always succeeds; an unknown token is a no-op.

        Returns:
            Human-readable result message
        """
        client = client or ClientInfo()
        resolved = await SessionService.validate(self._db, self._users, token)
        user_id = resolved[1].id if resolved else None

        if logout_all and user_id is not None:
            await SessionService.destroy_all_for_user(self._db, user_id)
            await self._audit(
                AuditEntry(
                    action="Logged out from all devices",
                    user_id=user_id,
                    reference="Security Action",
                    ip_address=client.ip_address,
                )
            )
            return "Logged out from all devices"

        await SessionService.destroy(self._db, token)
        if user_id is not None:
            await self._audit(
                AuditEntry(
                    action="Logged out",
                    user_id=user_id,
                    reference="System",
                    ip_address=client.ip_address,
                )
            )
        return "Logged out successfully"

    async def unlock(
        self, username: str, actor: UserRecord, client: ClientInfo | None = None
    ) -> bool:
        """Admin unlock: forget failures and lockout level of one identity.

        Returns:
            True if the identity had an attempt record
        """
        client = client or ClientInfo()
        if not username or not username.strip():
            raise ValidationError("Missing username")

        identity = normalize_identity(username)
        removed = await AttemptTracker.reset(self._db, identity)
        logger.info(
            "Lockout cleared",
            extra={
                "event": LogEvent.LOCKOUT_CLEARED,
                "username": identity,
                "actor_id": actor.id,
            },
        )
        await self._audit(
            AuditEntry(
                action="Account Unlocked",
                user_id=actor.id,
                reference=f"User: {identity}",
                ip_address=client.ip_address,
            )
        )
        return removed

    async def reset_all_lockouts(
        self, actor: UserRecord, client: ClientInfo | None = None
    ) -> int:
        client = client or ClientInfo()
        count = await AttemptTracker.reset_all(self._db)
        await self._audit(
            AuditEntry(
                action="All lockouts reset",
                user_id=actor.id,
                reference=f"{count} records",
                ip_address=client.ip_address,
            )
        )
        return count

    async def master_unlock(
        self, access_code: str | None, client: ClientInfo | None = None
    ) -> LoginResult:
        """Emergency access with the configured master code.

        Clears the lockout of the oldest active admin/owner account and
        signs it in.
        Wrong codes are rate limited like logins.
        """
        client = client or ClientInfo()
        security = get_settings().security
        if not security.master_access_code:
            raise ForbiddenError("Master unlock is disabled")
        if not access_code or not access_code.strip():
            raise ValidationError("Missing access code")

        status = await AttemptTracker.check_cooldown(self._db, MASTER_UNLOCK_IDENTITY)
        if status.on_cooldown:
            raise CooldownError(status.remaining_seconds)

        if not hmac.compare_digest(
            access_code.strip().encode(), security.master_access_code.encode()
        ):
            record = await AttemptTracker.record_failure(
                self._db, MASTER_UNLOCK_IDENTITY, self._policy
            )
            status = AttemptTracker.cooldown_of(record)
            logger.warning(
                "Invalid master access code",
                extra={"event": LogEvent.MASTER_UNLOCK, "ip_address": client.ip_address},
            )
            if status.on_cooldown:
                raise CooldownError(status.remaining_seconds)
            raise InvalidCredentialsError(
                attempts_remaining=self._policy.attempts_remaining(record.attempts),
                message="Invalid access code",
            )

        await AttemptTracker.reset(self._db, MASTER_UNLOCK_IDENTITY)
        admin = await self._users.find_admin(security.admin_roles)
        if admin is None:
            raise NotFoundError("No active admin account found")

        await AttemptTracker.reset(self._db, admin.username)
        session = await SessionService.create(
            self._db, admin.id, client.ip_address, client.user_agent
        )
        await self._audit(
            AuditEntry(
                action="Master Unlock Login",
                user_id=admin.id,
                reference="Emergency Access - Lockout Cleared",
                ip_address=client.ip_address,
            )
        )
        logger.warning(
            "Master unlock used",
            extra={"event": LogEvent.MASTER_UNLOCK, "user_id": admin.id},
        )
        return LoginResult(session=session, user=admin)

    async def verify_manager_pin(
        self, pin: str | None, requester: UserRecord, client: ClientInfo | None = None
    ) -> UserRecord:
        """Approve a sensitive POS operation with a manager's password.

        The pin is checked against every active approver account. Wrong pins
        count against the requester's approval identity, so guessing is rate
        limited per staff member without touching their login lockout.

        Returns:
            The approving account

        Raises:
            ValidationError: Missing or oversized pin
            CooldownError: Too many wrong pins from this requester
            InvalidCredentialsError: No approver matches the pin
        """
        client = client or ClientInfo()
        if not pin:
            raise ValidationError("PIN is required")
        if len(pin) > PASSWORD_MAX_LENGTH:
            raise ValidationError("Input too long")

        identity = manager_pin_identity(requester.username)
        status = await AttemptTracker.check_cooldown(self._db, identity)
        if status.on_cooldown:
            raise CooldownError(status.remaining_seconds)

        approver = None
        roles = get_settings().security.approver_roles
        for candidate in await self._users.list_active_in_roles(roles):
            if self._users.verify_password(pin, candidate):
                approver = candidate
                break

        if approver is None:
            record = await AttemptTracker.record_failure(self._db, identity, self._policy)
            status = AttemptTracker.cooldown_of(record)
            logger.warning(
                "Manager approval refused",
                extra={"event": LogEvent.MANAGER_APPROVAL, "user_id": requester.id},
            )
            await self._audit(
                AuditEntry(
                    action="Manager approval failed",
                    user_id=requester.id,
                    reference=f"Requested by: {requester.username}",
                    status="Failed",
                    ip_address=client.ip_address,
                )
            )
            if status.on_cooldown:
                raise CooldownError(status.remaining_seconds)
            raise InvalidCredentialsError(
                attempts_remaining=self._policy.attempts_remaining(record.attempts),
                message="Invalid manager PIN or password",
            )

        await AttemptTracker.reset(self._db, identity)
        await self._audit(
            AuditEntry(
                action="Manager approval",
                user_id=approver.id,
                reference=f"Requested by: {requester.username}",
                ip_address=client.ip_address,
            )
        )
        logger.info(
            "Manager approval granted",
            extra={
                "event": LogEvent.MANAGER_APPROVAL,
                "user_id": approver.id,
                "requester_id": requester.id,
            },
        )
        return approver

    async def change_password(
        self,
        user: UserRecord,
        current_password: str | None,
        new_password: str | None,
        client: ClientInfo | None = None,
    ) -> Session:
        """Change a password and invalidate every session of the user.

        Returns:
            A fresh session for the caller
        """
        client = client or ClientInfo()
        min_length = get_settings().security.min_password_length
        if not current_password:
            raise ValidationError("Current password is required")
        if not new_password or len(new_password) < min_length:
            raise ValidationError(
                f"New password must be at least {min_length} characters"
            )
        if len(new_password) > PASSWORD_MAX_LENGTH:
            raise ValidationError("Input too long")

        if not self._users.verify_password(current_password, user):
            raise InvalidCredentialsError(message="Current password is incorrect")

        await self._users.set_password(user.id, new_password)
        await SessionService.destroy_all_for_user(self._db, user.id)
        session = await SessionService.create(
            self._db, user.id, client.ip_address, client.user_agent
        )
        await self._audit(
            AuditEntry(
                action="Password changed",
                user_id=user.id,
                reference="Security Action",
                ip_address=client.ip_address,
            )
        )
        logger.info(
            "Password changed",
            extra={"event": LogEvent.PASSWORD_CHANGED, "user_id": user.id},
        )
        return session

    async def set_user_status(
        self,
        user_id: str,
        status: str,
        actor: UserRecord,
        client: ClientInfo | None = None,
    ) -> UserRecord:
        """Activate or deactivate a staff account.

        Deactivation ends every session of the account.
        """
        client = client or ClientInfo()
        if status not in (UserStatus.ACTIVE, UserStatus.INACTIVE):
            raise ValidationError('Invalid status. Must be "active" or "inactive"')
        if user_id == actor.id and status == UserStatus.INACTIVE:
            raise ValidationError("Cannot deactivate your own account")

        record = await self._users.set_status(user_id, status)
        if record is None:
            raise NotFoundError("User not found")

        if status == UserStatus.INACTIVE:
            await SessionService.destroy_all_for_user(self._db, user_id)

        await self._audit(
            AuditEntry(
                action="User status changed",
                user_id=actor.id,
                reference=f"User: {record.username} -> {status}",
                ip_address=client.ip_address,
            )
        )
        return record

    async def _audit(self, entry: AuditEntry) -> None:
        """Write an audit entry; a failing sink does not undo the action."""
        try:
            await self._audit_sink.record(entry)
        except StoreUnavailableError:
            logger.error(
                "Audit write failed",
                extra={"event": LogEvent.AUDIT_WRITE_FAILED, "action": entry.action},
            )
