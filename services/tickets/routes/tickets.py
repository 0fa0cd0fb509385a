"""Rutas de emisión y verificación de tickets"""
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Optional
from io import BytesIO
import qrcode

from shared.auth.dependencies import get_current_user
from shared.cache.ticket_store import TicketStore, get_ticket_store
from shared.core.config import settings
from shared.database.session import get_db
from shared.utils.rate_limiter import limiter, RATE_LIMITS
from services.accounts.services.directory import SqlAlchemyPassengerDirectory, SqlAlchemyUserDirectory
from services.tickets.models.ticket import (
    GenerateTicketResponse,
    VerifyTicketRequest,
    VerifyTicketResponse,
)
from services.tickets.services.audit_log import AuditLog, get_audit_log
from services.tickets.services.driver_identity import ScanContext, build_driver_resolver
from services.tickets.services.ticket_issuer import TicketIssuer
from services.tickets.services.ticket_verifier import TicketVerifier


router = APIRouter()


def get_ticket_issuer(store: TicketStore = Depends(get_ticket_store)) -> TicketIssuer:
    return TicketIssuer(store, ttl_seconds=settings.TICKET_TTL_SECONDS)


def get_ticket_verifier(
    store: TicketStore = Depends(get_ticket_store),
    audit_log: AuditLog = Depends(get_audit_log),
    db: AsyncSession = Depends(get_db)
) -> TicketVerifier:
    users = SqlAlchemyUserDirectory(db)
    return TicketVerifier(
        store=store,
        audit_log=audit_log,
        identity=build_driver_resolver(users, settings.DEFAULT_DRIVER_OPENID),
        passengers=SqlAlchemyPassengerDirectory(db),
        ticket_ttl_seconds=settings.TICKET_TTL_SECONDS,
        dedup_seconds=settings.TICKET_DEDUP_SECONDS,
        allow_reuse=settings.TICKET_ALLOW_REUSE,
    )


@router.post("/generate", response_model=GenerateTicketResponse)
@limiter.limit(RATE_LIMITS["ticket"])
async def generate_ticket(
    request: Request,  # Necesario para rate limiter
    current_user: Dict = Depends(get_current_user),
    issuer: TicketIssuer = Depends(get_ticket_issuer)
):
    """
    Emitir un ticket nuevo para el pasajero autenticado

    El cliente lo muestra como QR y lo renueva antes de que expire.
    """
    issued = await issuer.issue(current_user["user_id"])
    return GenerateTicketResponse(ticketId=issued.ticket_id, expiresIn=issued.expires_in)


@router.post("/verify", response_model=VerifyTicketResponse, response_model_exclude_none=True)
@limiter.limit(RATE_LIMITS["verification"])
async def verify_ticket(
    request: Request,  # Necesario para rate limiter
    body: VerifyTicketRequest,
    authorization: Optional[str] = Header(default=None),
    verifier: TicketVerifier = Depends(get_ticket_verifier)
):
    """
    Verificar un ticket escaneado

    No requiere autenticación: la identidad del conductor se toma de
    driverOpenid, del token Bearer o del conductor por defecto.
    Un rechazo de dominio responde 200 con valid=false; un fallo de
    Redis o de la base de datos responde 503 (reintentar).
    """
    result = await verifier.verify(
        body.ticketId,
        ScanContext(driver_openid=body.driverOpenid, authorization=authorization),
        shuttle_id=body.shuttleId or settings.DEFAULT_SHUTTLE_ID,
    )
    return VerifyTicketResponse.from_result(result)


@router.get("/{ticket_id}/qr")
@limiter.limit(RATE_LIMITS["ticket"])
async def ticket_qr(
    request: Request,  # Necesario para rate limiter
    ticket_id: str,
    current_user: Dict = Depends(get_current_user),
    issuer: TicketIssuer = Depends(get_ticket_issuer)
):
    """Imagen PNG del QR que codifica un ticket vigente del usuario (404 si no)"""
    if await issuer.find_owned(ticket_id, current_user["user_id"]) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Ticket no encontrado"
        )

    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=4,
    )
    qr.add_data(ticket_id)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buf = BytesIO()
    img.save(buf, format="PNG")
    buf.seek(0)
    return StreamingResponse(buf, media_type="image/png", headers={"Cache-Control": "no-store"})
