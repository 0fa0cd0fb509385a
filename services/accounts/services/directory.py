"""Directorios de usuarios y perfiles de pasajero

Interfaces intercambiables (repository pattern): el protocolo de tickets
depende solo de estas clases abstractas, nunca del ORM.
"""
from abc import ABC, abstractmethod
from typing import Optional
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.database.models import User, Passenger
from shared.utils.errors import DatabaseUnavailableError
from services.tickets.models.ticket import PassengerProfile

logger = logging.getLogger(__name__)


class UserDirectory(ABC):
    """Búsqueda y aprovisionamiento de usuarios por openid"""

    @abstractmethod
    async def find_id_by_openid(self, openid: str) -> Optional[str]:
        """Retornar el id del usuario con ese openid, o None."""
        ...

    @abstractmethod
    async def ensure_user(self, openid: str, role: str) -> str:
        """Retornar el id del usuario, creándolo con role si no existe."""
        ...


class PassengerDirectory(ABC):
    """Perfiles de pasajero (solo lectura)"""

    @abstractmethod
    async def get_profile(self, passenger_id: str) -> Optional[PassengerProfile]:
        """Retornar el perfil asociado al usuario, o None."""
        ...


class SqlAlchemyUserDirectory(UserDirectory):

    def __init__(self, db: AsyncSession):
        self._db = db

    async def find_id_by_openid(self, openid: str) -> Optional[str]:
        try:
            result = await self._db.execute(select(User.id).where(User.openid == openid))
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseUnavailableError(str(e), operation="find_user") from e

    async def ensure_user(self, openid: str, role: str) -> str:
        user_id = await self.find_id_by_openid(openid)
        if user_id:
            return user_id

        user = User(openid=openid, role=role)
        self._db.add(user)
        try:
            await self._db.commit()
        except IntegrityError:
            # Otra request creó el mismo openid en paralelo
            await self._db.rollback()
            user_id = await self.find_id_by_openid(openid)
            if user_id is None:
                raise
            return user_id
        except SQLAlchemyError as e:
            await self._db.rollback()
            raise DatabaseUnavailableError(str(e), operation="create_user") from e

        logger.info(f"Usuario {openid} creado con rol {role}")
        return user.id


class SqlAlchemyPassengerDirectory(PassengerDirectory):

    def __init__(self, db: AsyncSession):
        self._db = db

    async def get_profile(self, passenger_id: str) -> Optional[PassengerProfile]:
        try:
            result = await self._db.execute(
                select(Passenger).where(Passenger.user_id == passenger_id)
            )
            passenger = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseUnavailableError(str(e), operation="get_profile") from e

        if passenger is None:
            return None
        return PassengerProfile(
            name=passenger.name,
            company=passenger.company,
            position=passenger.position,
            phone=passenger.phone,
        )
