"""Audit log sink interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

from cafeauth.core.models.auth import utc_now


@dataclass(frozen=True)
class AuditEntry:
    action: str
    user_id: str | None = None
    reference: str = "System"
    status: str = "Success"
    ip_address: str | None = None
    timestamp: datetime = field(default_factory=utc_now)


class AuditSink(ABC):
    """Append-only sink for security relevant actions."""

    @abstractmethod
    async def record(self, entry: AuditEntry) -> None:
        """Persist one entry. Raises StoreUnavailableError on store failure."""
        ...
