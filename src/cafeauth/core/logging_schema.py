"""Logging field schema - v1.0

Standard fields (added to all logs):
- schema_version: Log schema version
- service: Service name (cafe-auth)
- event: Event type (login_failed, lockout_triggered, etc.)
- trace_id: Request trace ID (X-Trace-ID)
- duration_ms: Duration in milliseconds

High cardinality fields (OK in logs, NOT in metric labels):
- username: Normalized login identity
- user_id: User ID
- ip_address: Client address
"""

from enum import StrEnum


class LogEvent(StrEnum):
    """Standard log event types.

    Use these event types in the 'event' extra field for consistent
    log filtering and analysis.
    """

    # Login events
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    LOGIN_REJECTED = "login_rejected"
    LOCKOUT_TRIGGERED = "lockout_triggered"
    LOCKOUT_CLEARED = "lockout_cleared"
    MASTER_UNLOCK = "master_unlock"
    MANAGER_APPROVAL = "manager_approval"
    PASSWORD_CHANGED = "password_changed"

    # Session events
    SESSION_CREATED = "session_created"
    SESSION_EXPIRED = "session_expired"
    SESSION_REFRESHED = "session_refreshed"
    SESSION_DESTROYED = "session_destroyed"
    SESSIONS_SWEPT = "sessions_swept"

    # Authorization events
    ACCESS_DENIED = "access_denied"

    # Store events
    DB_CONNECTED = "db_connected"
    DB_ERROR = "db_error"
    STORE_UNAVAILABLE = "store_unavailable"
    AUDIT_WRITE_FAILED = "audit_write_failed"

    # Lifecycle events
    APP_STARTED = "app_started"
    APP_STOPPED = "app_stopped"

    # API events
    REQUEST_COMPLETE = "request_complete"
    REQUEST_FAILED = "request_failed"
    REQUEST_SLOW = "request_slow"


class LoginOutcome(StrEnum):
    """Login outcome labels (metric label values, low cardinality)."""

    SUCCESS = "success"
    INVALID = "invalid"
    LOCKED = "locked"
    COOLDOWN = "cooldown"
    REJECTED = "rejected"
    ERROR = "error"
