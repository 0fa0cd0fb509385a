"""Conexión a la base de datos (PostgreSQL en producción, SQLite en tests)"""
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from typing import AsyncGenerator, Dict
import logging
import asyncio

from shared.core.config import settings
from shared.utils.errors import DatabaseUnavailableError

logger = logging.getLogger(__name__)

Base = declarative_base()

engine = None
async_session_maker = None

CONNECT_ATTEMPTS = 3
CONNECT_BACKOFF_SECONDS = 0.5

_ASYNC_DRIVERS = (
    ("postgresql://", "postgresql+asyncpg://"),
    ("postgresql+psycopg://", "postgresql+asyncpg://"),
    ("sqlite://", "sqlite+aiosqlite://"),
)


def to_async_url(database_url: str) -> str:
    """Convertir la URL al driver async correspondiente"""
    for prefix, async_prefix in _ASYNC_DRIVERS:
        if database_url.startswith(prefix):
            return async_prefix + database_url[len(prefix):]
    return database_url


def engine_options(database_url: str) -> Dict:
    """Opciones del engine; SQLite no usa pool de conexiones"""
    options = {"echo": settings.APP_DEBUG}
    if database_url.startswith("sqlite"):
        return options
    options.update(
        pool_pre_ping=True,
        pool_recycle=300,
        pool_timeout=30,
        pool_use_lifo=True,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
    )
    return options


async def init_db(database_url: str = None):
    """Inicializar conexión a la base de datos y crear tablas"""
    global engine, async_session_maker

    if engine is not None:
        logger.warning("Database engine already initialized, skipping...")
        return

    database_url = to_async_url(database_url or settings.DATABASE_URL)
    logger.info(f"Conectando a base de datos: {database_url.rsplit('@', 1)[-1]}")

    engine = create_async_engine(database_url, **engine_options(database_url))
    async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    # Registrar modelos en Base.metadata antes de crear tablas
    import shared.database.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database engine initialized successfully")


async def _open_session() -> AsyncSession:
    """
    Abrir una sesión con la conexión ya establecida.

    Reintenta con backoff exponencial ante errores de DNS o socket
    (socket.gaierror es subclase de OSError); agotados los intentos
    lanza DatabaseUnavailableError.
    """
    for attempt in range(1, CONNECT_ATTEMPTS + 1):
        session = async_session_maker()
        try:
            await session.connection()
            return session
        except OSError as e:
            await session.close()
            if attempt == CONNECT_ATTEMPTS:
                logger.error(f"Database connection failed after {CONNECT_ATTEMPTS} attempts: {e}")
                raise DatabaseUnavailableError(str(e), operation="connect") from e
            delay = CONNECT_BACKOFF_SECONDS * (2 ** (attempt - 1))
            logger.warning(
                f"Database connection error (attempt {attempt}/{CONNECT_ATTEMPTS}): "
                f"{type(e).__name__}: {e}. Retrying in {delay:.1f}s..."
            )
            await asyncio.sleep(delay)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency para obtener sesión de base de datos"""
    if async_session_maker is None:
        logger.error("Database not initialized! Call init_db() first.")
        raise RuntimeError("Database not initialized. Please check application startup.")

    session = await _open_session()
    try:
        yield session
    finally:
        await session.close()


async def close_db():
    """Cerrar conexiones a la base de datos"""
    global engine, async_session_maker
    if engine:
        await engine.dispose()
        engine = None
        async_session_maker = None
        logger.info("Database connections closed")
