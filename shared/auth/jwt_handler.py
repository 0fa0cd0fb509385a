"""Manejo de JWT tokens"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict
from jose import JWTError, jwt

from shared.core.config import settings


def create_access_token(data: Dict, expires_delta: Optional[timedelta] = None) -> str:
    '''Crear token de acceso JWT'''
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({'exp': expire, 'type': 'access'})
    encoded_jwt = jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    return encoded_jwt


def create_user_token(
    user_id: str,
    role: str,
    openid: str,
    remember_me: bool = False,
    phone: Optional[str] = None
) -> str:
    '''Crear token para un usuario autenticado (24h, o 30 días con remember_me)'''
    if remember_me:
        expires = timedelta(days=settings.JWT_REMEMBER_ME_EXPIRE_DAYS)
    else:
        expires = timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {'sub': user_id, 'id': user_id, 'role': role, 'openid': openid}
    if phone:
        claims['phone'] = phone
    return create_access_token(claims, expires_delta=expires)


def decode_token(token: str) -> Optional[Dict]:
    '''Decodificar y validar token JWT. Retorna None si es inválido o expiró'''
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
    if payload.get('type') != 'access':
        return None
    return payload


def extract_bearer(authorization: Optional[str]) -> Optional[str]:
    '''Extraer el token de un header "Authorization: Bearer <token>"'''
    if not authorization or not authorization.startswith('Bearer '):
        return None
    token = authorization.split(' ', 1)[1].strip()
    return token or None
