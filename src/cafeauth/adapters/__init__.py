"""Store-backed implementations of the collaborator interfaces."""

from cafeauth.adapters.audit import SqlAuditSink
from cafeauth.adapters.users import SqlUserDirectory

__all__ = ["SqlAuditSink", "SqlUserDirectory"]
