"""API principal - Punto de entrada de la aplicación"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
import logging
from contextlib import asynccontextmanager

from shared.core.config import settings
from shared.database.connection import init_db, close_db
from shared.cache.redis_client import init_redis, close_redis
from shared.utils.errors import InfrastructureError
from shared.utils.rate_limiter import limiter, rate_limit_exceeded_handler

# Configurar logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Abrir base de datos (audit log, cuentas) y Redis (tickets) al arrancar"""
    await init_db()
    await init_redis()
    logger.info(
        f"CommuteSmart API lista (ticket_ttl={settings.TICKET_TTL_SECONDS}s, "
        f"dedup={settings.TICKET_DEDUP_SECONDS}s, reuse={settings.TICKET_ALLOW_REUSE})"
    )
    yield
    await close_db()
    await close_redis()
    logger.info("CommuteSmart API detenida")


app = FastAPI(
    title="CommuteSmart API",
    description="Backend del shuttle corporativo: tickets QR, verificación y ubicación",
    version="1.0.0",
    lifespan=lifespan
)


def cors_options() -> dict:
    """Orígenes CORS: todos en desarrollo (sin credentials), lista explícita en el resto"""
    if settings.APP_ENV == "development":
        return {"allow_origins": ["*"], "allow_credentials": False}
    origins = [origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()]
    logger.info(f"CORS origins configurados: {origins}")
    return {"allow_origins": origins, "allow_credentials": True}


# CORS antes del rate limiting
app.add_middleware(
    CORSMiddleware,
    **cors_options(),
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.exception_handler(InfrastructureError)
async def infrastructure_error_handler(request: Request, exc: InfrastructureError):
    """
    Redis o la base de datos no respondieron.

    Se responde 503 para que el cliente reintente; nunca se reporta como
    ticket inválido.
    """
    logger.error(f"Infraestructura no disponible en {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={
            "error": "service_unavailable",
            "code": exc.code,
            "detail": "Servicio temporalmente no disponible. Intenta nuevamente.",
            "retryable": True,
        },
        headers={"Retry-After": "1"}
    )


# Incluir routers de cada servicio
from services.accounts.routes.auth import router as auth_router
from services.tickets.routes.tickets import router as tickets_router
from services.shuttle.routes.shuttle import router as shuttle_router
from services.admin.routes.admin import router as admin_router

app.include_router(auth_router, prefix="/api/v1", tags=["auth"])
app.include_router(tickets_router, prefix="/api/v1/tickets", tags=["tickets"])
app.include_router(shuttle_router, prefix="/api/v1", tags=["shuttle"])
app.include_router(admin_router, prefix="/api/v1/admin", tags=["admin"])


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {"status": "ok", "service": "commutesmart-api"}


async def _check_database() -> None:
    from sqlalchemy import text
    from shared.database import connection

    if connection.async_session_maker is None:
        raise RuntimeError("Database not initialized")
    async with connection.async_session_maker() as session:
        await session.execute(text("SELECT 1"))


async def _check_ticket_store() -> None:
    from shared.cache.redis_client import get_redis

    client = await get_redis()
    await client.ping()


@app.get("/ready")
async def ready():
    """Listo solo si responden la base de datos y el store de tickets"""
    from redis.exceptions import RedisError
    from sqlalchemy.exc import SQLAlchemyError

    try:
        await _check_database()
        await _check_ticket_store()
    except (RuntimeError, SQLAlchemyError, RedisError, OSError) as e:
        logger.error(f"Ready check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "not ready", "error": str(e)})

    return {"status": "ready", "database": "connected", "redis": "connected"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.APP_DEBUG
    )
