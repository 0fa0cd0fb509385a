"""Modelos de tickets, resultados de verificación y registros de auditoría"""
from pydantic import BaseModel, ValidationError
from typing import Optional, Any
from datetime import datetime
from enum import Enum


class TicketStatus(str, Enum):
    VALID = "VALID"
    USED = "USED"


class VerificationFailure(str, Enum):
    """Motivos de rechazo de dominio"""
    INVALID_OR_EXPIRED = "INVALID_OR_EXPIRED"
    ALREADY_USED = "ALREADY_USED"


FAILURE_MESSAGES = {
    VerificationFailure.INVALID_OR_EXPIRED: "Ticket inválido o expirado",
    VerificationFailure.ALREADY_USED: "Ticket ya utilizado",
}


def ticket_key(ticket_id: str) -> str:
    return f"ticket:{ticket_id}"


def dedup_key(ticket_id: str) -> str:
    return f"ticket-verify-dedup:{ticket_id}"


class TicketRecord(BaseModel):
    """Estado de un ticket tal como vive en el store"""
    passenger_id: str
    issued_at: int  # epoch en milisegundos
    status: TicketStatus = TicketStatus.VALID

    @classmethod
    def from_store(cls, value: Any) -> Optional["TicketRecord"]:
        """Construir desde el valor del store; None si falta o no es un ticket"""
        if not isinstance(value, dict):
            return None
        try:
            return cls.model_validate(value)
        except ValidationError:
            return None

    def to_store(self) -> dict:
        return self.model_dump(mode="json")

    def mark_used(self) -> "TicketRecord":
        return self.model_copy(update={"status": TicketStatus.USED})


class IssuedTicket(BaseModel):
    ticket_id: str
    expires_in: int


class PassengerProfile(BaseModel):
    name: Optional[str] = None
    company: Optional[str] = None
    position: Optional[str] = None
    phone: Optional[str] = None


class VerificationRecord(BaseModel):
    """Entrada inmutable del registro de verificaciones"""
    passenger_id: str
    driver_id: str
    shuttle_id: str
    verified_at: datetime

    model_config = {"frozen": True}


class VerificationResult(BaseModel):
    valid: bool
    duplicate: bool = False
    reason: Optional[VerificationFailure] = None
    passenger_id: Optional[str] = None
    profile: Optional[PassengerProfile] = None

    @property
    def message(self) -> Optional[str]:
        if self.reason is None:
            return None
        return FAILURE_MESSAGES[self.reason]

    @classmethod
    def accepted(cls, passenger_id: str, profile: Optional[PassengerProfile]) -> "VerificationResult":
        return cls(valid=True, passenger_id=passenger_id, profile=profile)

    @classmethod
    def repeated(cls, passenger_id: str, profile: Optional[PassengerProfile]) -> "VerificationResult":
        return cls(valid=True, duplicate=True, passenger_id=passenger_id, profile=profile)

    @classmethod
    def rejected(cls, reason: VerificationFailure) -> "VerificationResult":
        return cls(valid=False, reason=reason)


# ==================== API ====================

class GenerateTicketResponse(BaseModel):
    ticketId: str
    expiresIn: int


class VerifyTicketRequest(BaseModel):
    ticketId: str
    driverOpenid: Optional[str] = None
    shuttleId: Optional[str] = None


class VerifyTicketResponse(BaseModel):
    valid: bool
    duplicate: Optional[bool] = None
    reason: Optional[str] = None
    error: Optional[str] = None
    passengerId: Optional[str] = None
    passengerName: Optional[str] = None
    passengerCompany: Optional[str] = None
    passengerPosition: Optional[str] = None

    @classmethod
    def from_result(cls, result: VerificationResult) -> "VerifyTicketResponse":
        if not result.valid:
            return cls(valid=False, reason=result.reason.value, error=result.message)

        profile = result.profile or PassengerProfile()
        return cls(
            valid=True,
            duplicate=True if result.duplicate else None,
            passengerId=result.passenger_id,
            passengerName=profile.name,
            passengerCompany=profile.company,
            passengerPosition=profile.position,
        )
