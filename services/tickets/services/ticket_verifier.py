"""Verificación de tickets escaneados por conductores

Protocolo (en este orden):

1. Resolver la identidad del conductor.
2. Leer el ticket. Si no existe o expiró → INVALID_OR_EXPIRED, sin tocar
   ningún otro estado (un ticket expirado no consume marca de dedup).
3. Crear la marca de dedup con SET NX. Si ya existía, es un re-escaneo
   dentro de la ventana: se responde valid + duplicate sin revisar el
   estado, sin auditar y sin modificar el ticket.
4. Si el ticket está USED y no se permite reuso → ALREADY_USED.
5. Sin reuso, reescribir el ticket como USED (el TTL vuelve a su valor
   completo).
6. Registrar la verificación en el audit log (durable).
7. Responder valid con los datos del pasajero.

El SET NX del store es el único punto de sincronización: entre dos
verificaciones concurrentes del mismo ticket, quien crea la marca gana y
la otra toma el camino de duplicado. No hay locks en proceso.

Los errores de infraestructura (InfrastructureError) se propagan tal cual;
nunca se convierten en valid=False.
"""
from datetime import datetime
from typing import Callable, Optional
import logging

from shared.cache.ticket_store import TicketStore
from shared.utils.errors import DatabaseUnavailableError
from services.accounts.services.directory import PassengerDirectory
from services.tickets.models.ticket import (
    PassengerProfile,
    TicketRecord,
    TicketStatus,
    VerificationFailure,
    VerificationRecord,
    VerificationResult,
    dedup_key,
    ticket_key,
)
from services.tickets.services.audit_log import AuditLog
from services.tickets.services.driver_identity import DriverIdentityResolver, ScanContext
from services.tickets.services.ticket_issuer import utc_now

logger = logging.getLogger(__name__)

DEDUP_MARKER = "1"


class TicketVerifier:

    def __init__(
        self,
        store: TicketStore,
        audit_log: AuditLog,
        identity: DriverIdentityResolver,
        passengers: PassengerDirectory,
        ticket_ttl_seconds: int = 180,
        dedup_seconds: int = 3,
        allow_reuse: bool = False,
        clock: Callable[[], datetime] = utc_now
    ):
        self._store = store
        self._audit_log = audit_log
        self._identity = identity
        self._passengers = passengers
        self._ticket_ttl_seconds = ticket_ttl_seconds
        self._dedup_seconds = dedup_seconds
        self._allow_reuse = allow_reuse
        self._clock = clock

    async def verify(
        self,
        ticket_id: str,
        scan: ScanContext,
        shuttle_id: str = "default"
    ) -> VerificationResult:
        driver_id = await self._identity.resolve(scan)

        ticket = None
        if ticket_id:
            ticket = TicketRecord.from_store(await self._store.get(ticket_key(ticket_id)))
        if ticket is None:
            logger.warning(f"Ticket {ticket_id!r} rechazado: inválido o expirado")
            return VerificationResult.rejected(VerificationFailure.INVALID_OR_EXPIRED)

        first_attempt = await self._store.set_if_absent(
            dedup_key(ticket_id), DEDUP_MARKER, self._dedup_seconds
        )
        if not first_attempt:
            logger.info(f"Ticket {ticket_id} re-escaneado dentro de la ventana de {self._dedup_seconds}s")
            profile = await self._lookup_profile(ticket.passenger_id)
            return VerificationResult.repeated(ticket.passenger_id, profile)

        if not self._allow_reuse:
            if ticket.status == TicketStatus.USED:
                logger.warning(f"Ticket {ticket_id} rechazado: ya utilizado")
                return VerificationResult.rejected(VerificationFailure.ALREADY_USED)
            await self._store.put(
                ticket_key(ticket_id), ticket.mark_used().to_store(), self._ticket_ttl_seconds
            )

        await self._audit_log.append(VerificationRecord(
            passenger_id=ticket.passenger_id,
            driver_id=driver_id,
            shuttle_id=shuttle_id,
            verified_at=self._clock(),
        ))

        logger.info(f"Ticket {ticket_id} verificado: pasajero {ticket.passenger_id}, conductor {driver_id}, shuttle {shuttle_id}")
        profile = await self._lookup_profile(ticket.passenger_id)
        return VerificationResult.accepted(ticket.passenger_id, profile)

    async def _lookup_profile(self, passenger_id: str) -> Optional[PassengerProfile]:
        """Enriquecimiento best-effort: la decisión ya está tomada y auditada"""
        try:
            return await self._passengers.get_profile(passenger_id)
        except DatabaseUnavailableError as e:
            logger.warning(f"Perfil de {passenger_id} no disponible: {e}")
            return None
