"""Rutas de ubicación de shuttles y paradas"""
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, List, Optional

from shared.auth.dependencies import get_current_driver
from shared.cache.ticket_store import TicketStore, get_ticket_store
from shared.core.config import settings
from shared.database.session import get_db
from shared.utils.rate_limiter import limiter, RATE_LIMITS
from services.shuttle.models.location import LocationUpdate, ShuttleStatus, StopResponse
from services.shuttle.services.location_service import LocationService
from services.shuttle.services.stop_service import StopService


router = APIRouter()


def get_location_service(store: TicketStore = Depends(get_ticket_store)) -> LocationService:
    return LocationService(store, ttl_seconds=settings.SHUTTLE_LOCATION_TTL_SECONDS)


@router.post("/driver/location")
@limiter.limit(RATE_LIMITS["location"])
async def publish_location(
    request: Request,  # Necesario para rate limiter
    body: LocationUpdate,
    current_user: Dict = Depends(get_current_driver),
    service: LocationService = Depends(get_location_service)
):
    """Publicar la posición actual de un shuttle (conductor o admin)"""
    await service.publish(body.shuttleId or settings.DEFAULT_SHUTTLE_ID, body)
    return {"ok": True}


@router.get("/shuttle/status", response_model=Optional[ShuttleStatus])
async def shuttle_status(
    shuttleId: str = Query(default=None),
    service: LocationService = Depends(get_location_service)
):
    """Última posición conocida; null si no hay datos o expiraron"""
    return await service.get_status(shuttleId or settings.DEFAULT_SHUTTLE_ID)


@router.get("/stops", response_model=List[StopResponse])
@limiter.limit(RATE_LIMITS["default"])
async def list_stops(
    request: Request,  # Necesario para rate limiter
    db: AsyncSession = Depends(get_db)
):
    """Paradas de la ruta en orden de recorrido"""
    return await StopService.list_stops(db)
