"""Modelos Pydantic para administración"""
from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime


# ==================== STATS ====================

class DashboardStatsResponse(BaseModel):
    """Estadísticas del dashboard"""
    todayRides: int
    activeShuttles: int = 0
    totalPassengers: int


class RideCountResponse(BaseModel):
    since: datetime
    count: int


# ==================== PASSENGERS ====================

class PassengerResponse(BaseModel):
    """Información de un pasajero"""
    passenger_id: int
    user_id: str
    name: str
    company: Optional[str] = None
    position: Optional[str] = None
    phone: str
    status: str
    openid: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PassengersListResponse(BaseModel):
    passengers: List[PassengerResponse]
    count: int


class CreatePassengerRequest(BaseModel):
    """Request para registrar un pasajero"""
    name: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    position: Optional[str] = None
    password: Optional[str] = None  # Habilita el login por teléfono


class CreatePassengerResponse(BaseModel):
    passenger: PassengerResponse
