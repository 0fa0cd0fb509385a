"""Última ubicación conocida de cada shuttle (passthrough al store)"""
from datetime import datetime
from typing import Callable, Iterable, Optional
import logging

from pydantic import ValidationError

from shared.cache.ticket_store import TicketStore
from services.shuttle.models.location import LocationUpdate, ShuttleStatus
from services.tickets.services.ticket_issuer import utc_now

logger = logging.getLogger(__name__)


def shuttle_key(shuttle_id: str) -> str:
    return f"shuttle:{shuttle_id}"


class LocationService:

    def __init__(
        self,
        store: TicketStore,
        ttl_seconds: int = 3600,
        clock: Callable[[], datetime] = utc_now
    ):
        self._store = store
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    async def publish(self, shuttle_id: str, update: LocationUpdate) -> ShuttleStatus:
        status = ShuttleStatus(
            coords=update.coords,
            speed=update.speed,
            heading=update.heading,
            currentStopIndex=update.currentStopIndex,
            distToNext=update.distToNext,
            lastUpdated=int(self._clock().timestamp() * 1000),
        )
        await self._store.put(shuttle_key(shuttle_id), status.model_dump(), self._ttl_seconds)
        return status

    async def get_status(self, shuttle_id: str) -> Optional[ShuttleStatus]:
        value = await self._store.get(shuttle_key(shuttle_id))
        if not isinstance(value, dict):
            return None
        try:
            return ShuttleStatus.model_validate(value)
        except ValidationError:
            logger.warning(f"Ubicación almacenada inválida para shuttle {shuttle_id}")
            return None

    async def count_active(self, shuttle_ids: Iterable[str]) -> int:
        """Shuttles con una ubicación vigente (publicada dentro del TTL)"""
        active = 0
        for shuttle_id in shuttle_ids:
            if await self.get_status(shuttle_id) is not None:
                active += 1
        return active
