"""Rutas de autenticación y perfil"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict

from shared.auth.dependencies import get_current_user
from shared.auth.jwt_handler import create_user_token
from shared.database.models import User
from shared.database.session import get_db
from shared.utils.rate_limiter import limiter, RATE_LIMITS
from services.accounts.models.account import (
    AdminLoginRequest,
    LoginRequest,
    LoginResponse,
    LoginUser,
    PhoneLoginRequest,
    ProfileResponse,
)
from services.accounts.services.account_service import (
    AccountDisabledError,
    AccountService,
    InvalidCredentialsError,
)


router = APIRouter()


def _login_response(user: User, remember_me: bool) -> LoginResponse:
    token = create_user_token(user.id, user.role, user.openid, remember_me=remember_me, phone=user.phone)
    return LoginResponse(
        token=token,
        user=LoginUser(
            id=user.id,
            role=user.role,
            openid=user.openid,
            device_id=user.device_id,
            phone=user.phone,
        )
    )


def _credentials_error(e: ValueError) -> HTTPException:
    if isinstance(e, AccountDisabledError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=str(e),
        headers={"WWW-Authenticate": "Bearer"},
    )


@router.post("/auth/login", response_model=LoginResponse)
@limiter.limit(RATE_LIMITS["login"])
async def login(
    request: Request,  # Necesario para rate limiter
    body: LoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Login por openid

    Crea el usuario en el primer login (rol según prefijo admin_/driver_)
    y retorna un JWT de 24h, o de 30 días con rememberMe.
    """
    openid = body.openid.strip()
    if not openid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="OpenID requerido"
        )

    user, _ = await AccountService.login(db, openid, body.device_id)
    if user.status != 1:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cuenta deshabilitada"
        )
    return _login_response(user, body.rememberMe)


@router.post("/auth/login/phone", response_model=LoginResponse)
@limiter.limit(RATE_LIMITS["login"])
async def login_phone(
    request: Request,  # Necesario para rate limiter
    body: PhoneLoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """Login con teléfono y contraseña"""
    phone = (body.phone or "").strip()
    if not phone or not body.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Teléfono y contraseña son requeridos"
        )

    try:
        user = await AccountService.login_by_phone(db, phone, body.password)
    except (InvalidCredentialsError, AccountDisabledError) as e:
        raise _credentials_error(e)
    return _login_response(user, body.rememberMe)


@router.post("/auth/login/admin", response_model=LoginResponse)
@limiter.limit(RATE_LIMITS["login"])
async def login_admin(
    request: Request,  # Necesario para rate limiter
    body: AdminLoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """Login de administradores (openid o teléfono + contraseña)"""
    username = (body.username or "").strip()
    if not username or not body.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Usuario y contraseña son requeridos"
        )

    try:
        user = await AccountService.login_admin(db, username, body.password)
    except (InvalidCredentialsError, AccountDisabledError) as e:
        raise _credentials_error(e)
    return _login_response(user, body.rememberMe)


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(get_current_user)
):
    """Perfil del usuario autenticado"""
    return await AccountService.get_profile(db, current_user)
