"""Servicio para cálculo de estadísticas del dashboard"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from datetime import datetime, time
from typing import Callable, Dict, Iterable, Optional
from zoneinfo import ZoneInfo

from shared.auth.dependencies import ROLE_PASSENGER
from shared.database.models import User
from shared.utils.errors import DatabaseUnavailableError
from services.shuttle.services.location_service import LocationService
from services.tickets.services.audit_log import AuditLog
from services.tickets.services.ticket_issuer import utc_now


def start_of_day(now: datetime, tz_name: str) -> datetime:
    """Medianoche del día de `now` en la zona horaria dada"""
    tz = ZoneInfo(tz_name)
    local = now.astimezone(tz)
    return datetime.combine(local.date(), time.min, tzinfo=tz)


class StatsService:
    """Servicio para operaciones de estadísticas"""

    def __init__(
        self,
        audit_log: AuditLog,
        tz_name: str = "UTC",
        clock: Callable[[], datetime] = utc_now,
        locations: Optional[LocationService] = None,
        shuttle_ids: Iterable[str] = ()
    ):
        self._audit_log = audit_log
        self._tz_name = tz_name
        self._clock = clock
        self._locations = locations
        self._shuttle_ids = list(shuttle_ids)

    async def ride_count_since(self, since: datetime) -> int:
        """Viajes verificados desde `since` (respaldado por el audit log)"""
        return await self._audit_log.count_since(since)

    async def get_dashboard_stats(self, db: AsyncSession) -> Dict:
        """
        Obtener estadísticas del dashboard

        Returns:
            Dict con todayRides, activeShuttles y totalPassengers
        """
        today_rides = await self.ride_count_since(start_of_day(self._clock(), self._tz_name))

        try:
            result = await db.execute(
                select(func.count(User.id)).where(User.role == ROLE_PASSENGER)
            )
        except SQLAlchemyError as e:
            raise DatabaseUnavailableError(str(e), operation="count_passengers") from e
        total_passengers = result.scalar() or 0

        active_shuttles = 0
        if self._locations is not None:
            active_shuttles = await self._locations.count_active(self._shuttle_ids)

        return {
            "todayRides": today_rides,
            "activeShuttles": active_shuttles,
            "totalPassengers": total_passengers,
        }
