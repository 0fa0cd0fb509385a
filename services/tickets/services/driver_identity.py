"""Resolución de la identidad del conductor que escanea un ticket

El scanner puede operar sin sesión, así que la identidad se resuelve
consultando fuentes en orden hasta que una responda. La última fuente
(conductor por defecto) siempre responde.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence
import logging

from shared.auth.dependencies import ROLE_DRIVER, identity_from_claims
from shared.auth.jwt_handler import decode_token, extract_bearer
from services.accounts.services.directory import UserDirectory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanContext:
    """Datos de identidad que acompañan a un escaneo"""
    driver_openid: Optional[str] = None
    authorization: Optional[str] = None


class DriverIdentitySource(ABC):
    name = "source"

    @abstractmethod
    async def resolve(self, scan: ScanContext) -> Optional[str]:
        """Retornar el id del conductor, o None si esta fuente no aplica."""
        ...


class ExplicitDriverHint(DriverIdentitySource):
    """openid del conductor enviado explícitamente por el scanner"""

    name = "hint"

    def __init__(self, users: UserDirectory):
        self._users = users

    async def resolve(self, scan: ScanContext) -> Optional[str]:
        if not scan.driver_openid:
            return None
        return await self._users.find_id_by_openid(scan.driver_openid)


class BearerCredential(DriverIdentitySource):
    """Usuario del token Bearer; un token inválido se ignora"""

    name = "bearer"

    async def resolve(self, scan: ScanContext) -> Optional[str]:
        token = extract_bearer(scan.authorization)
        if token is None:
            return None
        payload = decode_token(token)
        user = identity_from_claims(payload) if payload else None
        return user["user_id"] if user else None


class DefaultDriver(DriverIdentitySource):
    """Conductor conocido por defecto, creado si no existe"""

    name = "default"

    def __init__(self, users: UserDirectory, openid: str):
        self._users = users
        self._openid = openid

    async def resolve(self, scan: ScanContext) -> Optional[str]:
        return await self._users.ensure_user(self._openid, ROLE_DRIVER)


class DriverIdentityResolver:

    def __init__(self, sources: Sequence[DriverIdentitySource]):
        self._sources = list(sources)

    async def resolve(self, scan: ScanContext) -> str:
        for source in self._sources:
            driver_id = await source.resolve(scan)
            if driver_id:
                logger.debug(f"Conductor {driver_id} resuelto vía {source.name}")
                return driver_id
        raise LookupError("Ninguna fuente pudo resolver la identidad del conductor")


def build_driver_resolver(users: UserDirectory, default_openid: str) -> DriverIdentityResolver:
    """Orden estándar: hint explícito → token Bearer → conductor por defecto"""
    return DriverIdentityResolver([
        ExplicitDriverHint(users),
        BearerCredential(),
        DefaultDriver(users, default_openid),
    ])
