"""Errores de infraestructura

Estos errores NO son rechazos de dominio: un ticket inválido se reporta
como resultado (valid=False), nunca como excepción. Cualquier subclase de
InfrastructureError indica que el cliente debe reintentar la operación.
"""


class InfrastructureError(Exception):
    """Base para fallos transitorios de infraestructura"""

    code = "service_unavailable"

    def __init__(self, message: str, operation: str = None):
        super().__init__(message)
        self.message = message
        self.operation = operation

    def __str__(self) -> str:
        if self.operation:
            return f"{self.operation}: {self.message}"
        return self.message


class StoreUnavailableError(InfrastructureError):
    """El key-value store (Redis) no respondió, expiró el timeout o rechazó la operación"""

    code = "store_unavailable"


class DatabaseUnavailableError(InfrastructureError):
    """La base de datos durable no está disponible"""

    code = "database_unavailable"


class AuditLogUnavailableError(DatabaseUnavailableError):
    """No se pudo escribir o leer el registro de verificaciones"""

    code = "audit_log_unavailable"
