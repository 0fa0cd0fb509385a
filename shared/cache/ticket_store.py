"""Key-value store con TTL para tickets, marcas de dedup y ubicaciones

El store es dueño exclusivo del ciclo de vida de sus entradas: todo valor
desaparece al cumplirse su TTL, sin borrado explícito.
"""
from abc import ABC, abstractmethod
from typing import Any, Optional
import asyncio
import json
import logging

import redis.asyncio as redis

from shared.utils.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


class TicketStore(ABC):
    """Interfaz del store (get / put / set-if-absent, todo con TTL)"""

    @abstractmethod
    async def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Guardar value bajo key; reemplaza el valor y reinicia el TTL."""
        ...

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Retornar el valor, o None si no existe o ya expiró."""
        ...

    @abstractmethod
    async def set_if_absent(self, key: str, value: Any, ttl_seconds: int) -> bool:
        """Crear key solo si no existe. Debe ser atómico en el store.

        Returns:
            True si esta llamada creó la entrada, False si ya existía
        """
        ...


def _encode(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _decode(value: Optional[str]) -> Optional[Any]:
    if value is None:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


class RedisTicketStore(TicketStore):
    """TicketStore sobre Redis

    set_if_absent usa SET NX EX, atómico en el servidor: es el único
    mecanismo de sincronización entre verificadores concurrentes.
    """

    def __init__(self, client: redis.Redis, timeout: float = 2.0):
        self._client = client
        self._timeout = timeout

    async def _call(self, operation: str, key: str, coro):
        try:
            return await asyncio.wait_for(coro, timeout=self._timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Timeout de Redis en {operation} ({key}) tras {self._timeout}s")
            raise StoreUnavailableError(f"timeout tras {self._timeout}s", operation=operation) from e
        except (redis.RedisError, OSError) as e:
            logger.error(f"Error de Redis en {operation} ({key}): {type(e).__name__}: {e}")
            raise StoreUnavailableError(str(e) or type(e).__name__, operation=operation) from e

    async def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        await self._call("put", key, self._client.set(key, _encode(value), ex=ttl_seconds))

    async def get(self, key: str) -> Optional[Any]:
        raw = await self._call("get", key, self._client.get(key))
        return _decode(raw)

    async def set_if_absent(self, key: str, value: Any, ttl_seconds: int) -> bool:
        # redis-py retorna True si se creó y None si la key ya existía
        created = await self._call(
            "set_if_absent", key, self._client.set(key, _encode(value), ex=ttl_seconds, nx=True)
        )
        return bool(created)


async def get_ticket_store() -> TicketStore:
    """Dependency: store respaldado por el cliente Redis compartido"""
    from shared.cache.redis_client import get_redis
    from shared.core.config import settings

    return RedisTicketStore(await get_redis(), timeout=settings.REDIS_SOCKET_TIMEOUT)
