"""Collaborator interfaces consumed by the authentication services."""

from cafeauth.core.interfaces.audit import AuditEntry, AuditSink
from cafeauth.core.interfaces.users import UserDirectory, UserRecord

__all__ = [
    "AuditEntry",
    "AuditSink",
    "UserDirectory",
    "UserRecord",
]
