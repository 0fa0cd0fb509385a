"""
Rate limiting usando slowapi + Redis

La cuota se comparte entre instancias de la API a través del mismo Redis
que guarda los tickets (o RATE_LIMIT_STORAGE_URI si se define).
"""
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request, Response
from starlette.responses import JSONResponse
import hashlib
import logging

from shared.core.config import settings

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 60

RATE_LIMITS = {
    # Scanners de cámara reintentan varias veces por segundo
    "verification": "120/minute",
    # El cliente del pasajero rota el QR antes de que expire
    "ticket": "30/minute",
    # Cada vehículo publica su posición cada pocos segundos
    "location": "120/minute",
    "login": "10/minute",
    "admin": "120/minute",
    "default": "30/minute",
}


def get_real_client_ip(request: Request) -> str:
    """IP del cliente detrás de proxies (primer X-Forwarded-For, luego X-Real-IP)"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.headers.get("X-Real-IP") or get_remote_address(request)


def get_user_identifier(request: Request) -> str:
    """
    Clave de cuota: IP, más un hash corto del token si hay sesión.

    Varios dispositivos de conductores detrás de la misma IP (p.ej. el
    mismo router del depósito) no comparten cuota si están autenticados.
    """
    ip = get_real_client_ip(request)
    authorization = request.headers.get("Authorization", "")
    if not authorization.startswith("Bearer "):
        return ip
    return f"{ip}:{hashlib.sha256(authorization.encode()).hexdigest()[:8]}"


limiter = Limiter(
    key_func=get_user_identifier,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI or settings.REDIS_URL,
    strategy="fixed-window",
    headers_enabled=False,  # Incompatible con response_model de FastAPI
    enabled=settings.RATE_LIMIT_ENABLED,
)
logger.info(f"Rate limiter inicializado (enabled={settings.RATE_LIMIT_ENABLED})")


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Responder 429 con Retry-After"""
    logger.warning(
        f"Rate limit excedido - IP: {get_real_client_ip(request)}, "
        f"Path: {request.url.path}, Limit: {exc.detail}"
    )
    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "detail": "Demasiadas solicitudes. Por favor espera antes de intentar nuevamente.",
            "retry_after_seconds": RETRY_AFTER_SECONDS,
        },
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)}
    )
