"""SQL-backed audit sink (activity_logs table)."""

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cafeauth.core.interfaces import AuditEntry, AuditSink
from cafeauth.core.models import AuditLog
from cafeauth.infra.postgresql import store_operation


class SqlAuditSink(AuditSink):
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def record(self, entry: AuditEntry) -> None:
        async with store_operation("audit.record"):
            self._db.add(
                AuditLog(
                    user_id=entry.user_id,
                    action=entry.action,
                    reference=entry.reference,
                    status=entry.status,
                    ip_address=entry.ip_address,
                    created_at=entry.timestamp,
                )
            )
            try:
                await self._db.commit()
            except SQLAlchemyError:
                # Keep the request session usable for the caller
                await self._db.rollback()
                raise
