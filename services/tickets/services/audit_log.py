"""Registro append-only de verificaciones exitosas"""
from abc import ABC, abstractmethod
from datetime import datetime, timezone
import logging

from fastapi import Depends
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.database.models import VerificationLog
from shared.database.session import get_db
from shared.utils.errors import AuditLogUnavailableError
from services.tickets.models.ticket import VerificationRecord

logger = logging.getLogger(__name__)


class AuditLog(ABC):
    """Interfaz del registro de verificaciones (sin update ni delete)"""

    @abstractmethod
    async def append(self, record: VerificationRecord) -> None:
        """Persistir record. Debe ser durable antes de retornar."""
        ...

    @abstractmethod
    async def count_since(self, since: datetime) -> int:
        """Cantidad de verificaciones con verified_at >= since."""
        ...


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SqlAlchemyAuditLog(AuditLog):
    """AuditLog sobre la tabla verification_logs"""

    def __init__(self, db: AsyncSession):
        self._db = db

    async def append(self, record: VerificationRecord) -> None:
        self._db.add(VerificationLog(
            user_id=record.passenger_id,
            driver_id=record.driver_id,
            shuttle_id=record.shuttle_id,
            verified_at=_as_utc(record.verified_at),
        ))
        try:
            await self._db.commit()
        except (SQLAlchemyError, OSError) as e:
            await self._db.rollback()
            logger.error(f"No se pudo registrar la verificación de {record.passenger_id}: {e}")
            raise AuditLogUnavailableError(str(e), operation="append") from e

    async def count_since(self, since: datetime) -> int:
        stmt = select(func.count(VerificationLog.id)).where(
            VerificationLog.verified_at >= _as_utc(since)
        )
        try:
            result = await self._db.execute(stmt)
        except (SQLAlchemyError, OSError) as e:
            raise AuditLogUnavailableError(str(e), operation="count_since") from e
        return result.scalar() or 0


def get_audit_log(db: AsyncSession = Depends(get_db)) -> AuditLog:
    """Dependency: audit log sobre la sesión de la request"""
    return SqlAlchemyAuditLog(db)
