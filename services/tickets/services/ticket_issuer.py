"""Emisión de tickets"""
from datetime import datetime, timezone
from typing import Callable, Optional
import logging
import uuid

from shared.cache.ticket_store import TicketStore
from services.tickets.models.ticket import IssuedTicket, TicketRecord, TicketStatus, ticket_key

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TicketIssuer:
    """Crea tickets de corta duración para un pasajero

    Cada llamada produce un ticket nuevo e independiente; un pasajero puede
    tener varios tickets vigentes a la vez.
    """

    def __init__(
        self,
        store: TicketStore,
        ttl_seconds: int = 180,
        clock: Callable[[], datetime] = utc_now
    ):
        self._store = store
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    async def issue(self, passenger_id: str) -> IssuedTicket:
        # uuid4 usa os.urandom: 122 bits aleatorios
        ticket_id = str(uuid.uuid4())
        record = TicketRecord(
            passenger_id=passenger_id,
            issued_at=int(self._clock().timestamp() * 1000),
            status=TicketStatus.VALID,
        )
        await self._store.put(ticket_key(ticket_id), record.to_store(), self._ttl_seconds)

        logger.info(f"Ticket {ticket_id} emitido para {passenger_id} (ttl={self._ttl_seconds}s)")
        return IssuedTicket(ticket_id=ticket_id, expires_in=self._ttl_seconds)

    async def find_owned(self, ticket_id: str, passenger_id: str) -> Optional[TicketRecord]:
        """Ticket vigente emitido para passenger_id; None si no existe o es de otro"""
        record = TicketRecord.from_store(await self._store.get(ticket_key(ticket_id)))
        if record is None or record.passenger_id != passenger_id:
            return None
        return record
