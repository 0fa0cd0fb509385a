"""Servicio de administración de pasajeros"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from typing import Dict, List, Optional
import logging

from shared.auth.dependencies import ROLE_PASSENGER
from shared.auth.passwords import hash_password
from shared.database.models import Passenger, User
from shared.utils.errors import DatabaseUnavailableError
from services.accounts.services.directory import SqlAlchemyUserDirectory

logger = logging.getLogger(__name__)


def _to_dict(passenger: Passenger, openid: Optional[str]) -> Dict:
    return {
        "passenger_id": passenger.passenger_id,
        "user_id": passenger.user_id,
        "name": passenger.name,
        "company": passenger.company,
        "position": passenger.position,
        "phone": passenger.phone,
        "status": passenger.status,
        "openid": openid,
        "created_at": passenger.created_at,
        "updated_at": passenger.updated_at,
    }


class PassengerService:
    """Servicio para el padrón de pasajeros"""

    @staticmethod
    async def list_passengers(db: AsyncSession) -> List[Dict]:
        """Pasajeros ordenados por fecha de creación descendente"""
        stmt = (
            select(Passenger, User.openid)
            .outerjoin(User, Passenger.user_id == User.id)
            .order_by(Passenger.created_at.desc(), Passenger.passenger_id.desc())
        )
        try:
            result = await db.execute(stmt)
        except SQLAlchemyError as e:
            raise DatabaseUnavailableError(str(e), operation="list_passengers") from e
        return [_to_dict(passenger, openid) for passenger, openid in result.all()]

    @staticmethod
    async def create_passenger(
        db: AsyncSession,
        name: str,
        phone: str,
        company: Optional[str] = None,
        position: Optional[str] = None,
        password: Optional[str] = None
    ) -> Dict:
        """
        Registrar un pasajero

        La cuenta de usuario usa openid passenger_{phone}; si ya existe se reutiliza.
        El teléfono queda asociado a la cuenta y, con password, habilita el
        login por teléfono.

        Raises:
            ValueError: Si name o phone están vacíos, o el pasajero ya existe
        """
        if not name or not phone:
            raise ValueError("Nombre y teléfono son requeridos")

        openid = f"passenger_{phone}"
        user_id = await SqlAlchemyUserDirectory(db).ensure_user(openid, ROLE_PASSENGER)
        try:
            user = await db.get(User, user_id)
        except SQLAlchemyError as e:
            raise DatabaseUnavailableError(str(e), operation="create_passenger") from e
        user.phone = phone
        if password:
            user.password_hash = hash_password(password)

        passenger = Passenger(
            user_id=user_id,
            name=name,
            company=company or None,
            position=position or None,
            phone=phone,
            status="ACTIVE",
        )
        db.add(passenger)
        try:
            await db.commit()
            await db.refresh(passenger)
        except IntegrityError:
            await db.rollback()
            raise ValueError(f"Ya existe un pasajero con teléfono {phone}")
        except SQLAlchemyError as e:
            await db.rollback()
            raise DatabaseUnavailableError(str(e), operation="create_passenger") from e

        logger.info(f"Pasajero {name} registrado ({openid})")
        return _to_dict(passenger, openid)
