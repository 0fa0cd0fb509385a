"""Cliente Redis compartido (tickets, dedup y ubicación de shuttles)"""
import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from typing import Optional
import logging

from shared.core.config import settings

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None
redis_pool: Optional[ConnectionPool] = None


def build_pool() -> ConnectionPool:
    """Pool con timeout corto: un Redis lento debe fallar rápido, no colgar el scanner"""
    return ConnectionPool.from_url(
        settings.REDIS_URL,
        password=settings.REDIS_PASSWORD,
        max_connections=settings.REDIS_MAX_CONNECTIONS,
        decode_responses=True,
        socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
        socket_keepalive=True,
        health_check_interval=30,
    )


async def init_redis():
    """Crear el cliente; un Redis caído no impide el arranque"""
    global redis_client, redis_pool

    if redis_client is not None:
        return

    redis_pool = build_pool()
    redis_client = redis.Redis(connection_pool=redis_pool)

    try:
        await redis_client.ping()
    except (redis.RedisError, OSError) as e:
        # Cada operación reportará StoreUnavailableError hasta que vuelva
        logger.error(f"Redis no disponible al arrancar: {e}")
    else:
        logger.info(f"Redis conectado (max_connections={settings.REDIS_MAX_CONNECTIONS})")


async def get_redis() -> redis.Redis:
    if redis_client is None:
        await init_redis()
    return redis_client


async def close_redis():
    """Cerrar cliente y pool"""
    global redis_client, redis_pool
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None
    if redis_pool is not None:
        await redis_pool.disconnect()
        redis_pool = None
    logger.info("Redis desconectado")
