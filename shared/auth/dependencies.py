"""Dependencies de autenticación para FastAPI"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Callable, Dict, Optional
from shared.auth.jwt_handler import decode_token


security = HTTPBearer(auto_error=False)

ROLE_PASSENGER = 'PASSENGER'
ROLE_DRIVER = 'DRIVER'
ROLE_ADMIN = 'ADMIN'


def identity_from_claims(payload: Dict) -> Optional[Dict]:
    """Usuario {user_id, role, openid} a partir de los claims; None si falta el id"""
    user_id = payload.get('id') or payload.get('sub')
    if not user_id:
        return None
    return {
        'user_id': user_id,
        'role': payload.get('role', ROLE_PASSENGER),
        'openid': payload.get('openid'),
        'phone': payload.get('phone'),
    }


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={'WWW-Authenticate': 'Bearer'},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Dict:
    '''Obtener usuario actual desde token JWT'''
    if credentials is None:
        raise _unauthorized('No autenticado')

    payload = decode_token(credentials.credentials)
    if payload is None:
        raise _unauthorized('Token inválido o expirado')

    user = identity_from_claims(payload)
    if user is None:
        raise _unauthorized('Token inválido: falta user_id')
    return user


def require_roles(*roles: str, detail: str) -> Callable:
    """Dependency que deja pasar solo a usuarios con alguno de `roles` (403 si no)"""

    async def checker(current_user: Dict = Depends(get_current_user)) -> Dict:
        if current_user.get('role') not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
        return current_user

    return checker


# Publicar ubicación: conductores y admins
get_current_driver = require_roles(ROLE_DRIVER, ROLE_ADMIN, detail='Se requieren permisos de conductor')

get_current_admin = require_roles(ROLE_ADMIN, detail='Se requieren permisos de administrador')
