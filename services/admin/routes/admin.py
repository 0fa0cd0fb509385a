"""Rutas de administración"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict
from datetime import datetime

from shared.auth.dependencies import get_current_admin
from shared.core.config import settings
from shared.database.session import get_db
from shared.utils.rate_limiter import limiter, RATE_LIMITS
from services.admin.models.admin import (
    CreatePassengerRequest,
    CreatePassengerResponse,
    DashboardStatsResponse,
    PassengerResponse,
    PassengersListResponse,
    RideCountResponse,
)
from services.admin.services.passenger_service import PassengerService
from services.admin.services.stats_service import StatsService
from services.shuttle.routes.shuttle import get_location_service
from services.shuttle.services.location_service import LocationService
from services.tickets.services.audit_log import AuditLog, get_audit_log


router = APIRouter()


def get_stats_service(
    audit_log: AuditLog = Depends(get_audit_log),
    locations: LocationService = Depends(get_location_service)
) -> StatsService:
    return StatsService(
        audit_log,
        tz_name=settings.STATS_TIMEZONE,
        locations=locations,
        shuttle_ids=settings.shuttle_ids,
    )


# ==================== STATS ====================

@router.get("/stats", response_model=DashboardStatsResponse)
@limiter.limit(RATE_LIMITS["admin"])
async def get_dashboard_stats(
    request: Request,  # Necesario para rate limiter
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(get_current_admin),
    stats: StatsService = Depends(get_stats_service)
):
    """Viajes de hoy, shuttles activos y total de pasajeros"""
    return DashboardStatsResponse(**await stats.get_dashboard_stats(db))


@router.get("/rides/count", response_model=RideCountResponse)
@limiter.limit(RATE_LIMITS["admin"])
async def get_ride_count(
    request: Request,  # Necesario para rate limiter
    since: datetime = Query(..., description="Fecha ISO 8601 desde la que contar"),
    current_user: Dict = Depends(get_current_admin),
    stats: StatsService = Depends(get_stats_service)
):
    """Cantidad de verificaciones registradas desde `since`"""
    return RideCountResponse(since=since, count=await stats.ride_count_since(since))


# ==================== PASSENGERS ====================

@router.get("/passengers", response_model=PassengersListResponse)
@limiter.limit(RATE_LIMITS["admin"])
async def list_passengers(
    request: Request,  # Necesario para rate limiter
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(get_current_admin)
):
    """Listar pasajeros registrados"""
    passengers = await PassengerService.list_passengers(db)
    return PassengersListResponse(
        passengers=[PassengerResponse(**p) for p in passengers],
        count=len(passengers)
    )


@router.post("/passengers", response_model=CreatePassengerResponse)
@limiter.limit(RATE_LIMITS["admin"])
async def create_passenger(
    request: Request,  # Necesario para rate limiter
    body: CreatePassengerRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(get_current_admin)
):
    """
    Registrar un pasajero

    Crea (o reutiliza) la cuenta passenger_{phone} y su perfil.
    """
    try:
        passenger = await PassengerService.create_passenger(
            db,
            name=(body.name or "").strip(),
            phone=(body.phone or "").strip(),
            company=body.company,
            position=body.position,
            password=body.password,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    return CreatePassengerResponse(passenger=PassengerResponse(**passenger))
