"""Paradas de la ruta"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from typing import List

from shared.database.models import Stop
from shared.utils.errors import DatabaseUnavailableError
from services.shuttle.models.location import StopResponse


class StopService:

    @staticmethod
    async def list_stops(db: AsyncSession) -> List[StopResponse]:
        """Paradas ordenadas por sequence"""
        try:
            result = await db.execute(select(Stop).order_by(Stop.sequence.asc()))
        except SQLAlchemyError as e:
            raise DatabaseUnavailableError(str(e), operation="list_stops") from e
        return [
            StopResponse(id=str(stop.id), name=stop.name, lat=stop.lat, lng=stop.lng, sequence=stop.sequence)
            for stop in result.scalars().all()
        ]
