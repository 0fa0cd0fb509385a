"""Modelos Pydantic de ubicación de shuttles"""
from pydantic import BaseModel, Field
from typing import Optional


class Coordinates(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class LocationUpdate(BaseModel):
    """Publicación de posición enviada por el vehículo"""
    shuttleId: Optional[str] = None
    coords: Coordinates
    speed: float = 0
    heading: float = 0
    currentStopIndex: int = 0
    distToNext: float = 0


class ShuttleStatus(BaseModel):
    """Última posición conocida"""
    coords: Coordinates
    speed: float = 0
    heading: float = 0
    currentStopIndex: int = 0
    distToNext: float = 0
    lastUpdated: int  # epoch en milisegundos


class StopResponse(BaseModel):
    """Parada de la ruta, en orden de recorrido"""
    id: str
    name: str
    lat: float
    lng: float
    sequence: int
