"""Servicio de cuentas: login (openid, teléfono, admin) y perfil"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple
import hmac
import logging

from shared.auth.dependencies import ROLE_ADMIN, ROLE_DRIVER, ROLE_PASSENGER
from shared.auth.passwords import check_password
from shared.core.config import settings
from shared.database.models import User
from shared.utils.errors import DatabaseUnavailableError
from services.accounts.models.account import ProfileResponse
from services.accounts.services.directory import SqlAlchemyPassengerDirectory

logger = logging.getLogger(__name__)

PLACEHOLDER_COMPANY = "两岸金融中心"


class InvalidCredentialsError(ValueError):
    """Usuario inexistente, sin contraseña o contraseña incorrecta (401)"""


class AccountDisabledError(ValueError):
    """Cuenta con status distinto de 1 (403)"""


def role_for_openid(openid: str) -> str:
    '''Rol inicial según el prefijo del openid'''
    if openid.startswith('admin_'):
        return ROLE_ADMIN
    if openid.startswith('driver_'):
        return ROLE_DRIVER
    return ROLE_PASSENGER


class AccountService:
    """Servicio para login y perfiles"""

    @staticmethod
    async def _find_by_openid(db: AsyncSession, openid: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.openid == openid))
        return result.scalar_one_or_none()

    @staticmethod
    async def login(
        db: AsyncSession,
        openid: str,
        device_id: Optional[str] = None
    ) -> Tuple[User, bool]:
        """
        Buscar o crear el usuario de un openid

        Si el usuario existe y llega un device_id distinto, se actualiza.
        Dos primeros logins simultáneos del mismo openid terminan en el
        mismo usuario.

        Returns:
            (usuario, creado)
        """
        try:
            user = await AccountService._find_by_openid(db, openid)

            if user is None:
                user = User(openid=openid, role=role_for_openid(openid), device_id=device_id, status=1)
                db.add(user)
                try:
                    await db.commit()
                except IntegrityError:
                    # Otra request creó el mismo openid entre el SELECT y el INSERT
                    await db.rollback()
                    user = await AccountService._find_by_openid(db, openid)
                    if user is None:
                        raise
                    return user, False
                logger.info(f"Usuario {openid} creado con rol {user.role}")
                return user, True

            if device_id and device_id != user.device_id:
                user.device_id = device_id
                await db.commit()
            return user, False
        except SQLAlchemyError as e:
            await db.rollback()
            raise DatabaseUnavailableError(str(e), operation="login") from e

    @staticmethod
    async def _touch_login(db: AsyncSession, user: User) -> User:
        user.last_login_at = datetime.now(timezone.utc)
        await db.commit()
        return user

    @staticmethod
    async def login_by_phone(db: AsyncSession, phone: str, password: str) -> User:
        """
        Login con teléfono y contraseña

        Raises:
            InvalidCredentialsError: Teléfono desconocido o contraseña incorrecta
            AccountDisabledError: Cuenta deshabilitada
        """
        try:
            result = await db.execute(select(User).where(User.phone == phone))
            user = result.scalar_one_or_none()

            if user is None or not check_password(password, user.password_hash):
                logger.warning(f"Login por teléfono rechazado: {phone}")
                raise InvalidCredentialsError("Teléfono o contraseña incorrectos")
            if user.status != 1:
                raise AccountDisabledError("Cuenta deshabilitada")

            return await AccountService._touch_login(db, user)
        except SQLAlchemyError as e:
            await db.rollback()
            raise DatabaseUnavailableError(str(e), operation="login_by_phone") from e

    @staticmethod
    async def login_admin(db: AsyncSession, username: str, password: str) -> User:
        """
        Login de administrador por openid o teléfono

        Si ADMIN_BOOTSTRAP_PASSWORD está configurado, el usuario
        ADMIN_BOOTSTRAP_USERNAME entra con esa contraseña y se aprovisiona
        como ADMIN_BOOTSTRAP_OPENID.

        Raises:
            InvalidCredentialsError: Admin desconocido, sin contraseña o contraseña incorrecta
            AccountDisabledError: Cuenta deshabilitada
        """
        bootstrap_password = settings.ADMIN_BOOTSTRAP_PASSWORD
        if (
            bootstrap_password
            and username == settings.ADMIN_BOOTSTRAP_USERNAME
            and hmac.compare_digest(password.encode('utf-8'), bootstrap_password.encode('utf-8'))
        ):
            user, created = await AccountService.login(db, settings.ADMIN_BOOTSTRAP_OPENID)
            if created:
                logger.info(f"Admin inicial {settings.ADMIN_BOOTSTRAP_OPENID} aprovisionado")
            if user.role != ROLE_ADMIN:
                raise InvalidCredentialsError("Credenciales de administrador incorrectas")
        else:
            try:
                result = await db.execute(
                    select(User).where(
                        User.role == ROLE_ADMIN,
                        or_(User.openid == username, User.phone == username)
                    )
                )
                user = result.scalars().first()
            except SQLAlchemyError as e:
                raise DatabaseUnavailableError(str(e), operation="login_admin") from e

            if user is None or not check_password(password, user.password_hash):
                logger.warning(f"Login de admin rechazado: {username}")
                raise InvalidCredentialsError("Credenciales de administrador incorrectas")

        if user.status != 1:
            raise AccountDisabledError("Cuenta deshabilitada")
        try:
            return await AccountService._touch_login(db, user)
        except SQLAlchemyError as e:
            await db.rollback()
            raise DatabaseUnavailableError(str(e), operation="login_admin") from e

    @staticmethod
    async def get_profile(db: AsyncSession, current_user: Dict) -> ProfileResponse:
        """
        Perfil del usuario autenticado

        Usuarios sin fila en passengers reciben un perfil genérico según su rol.
        """
        profile = await SqlAlchemyPassengerDirectory(db).get_profile(current_user['user_id'])
        if profile is not None:
            return ProfileResponse(**profile.model_dump())

        role = current_user.get('role')
        return ProfileResponse(
            name='管理员' if role == ROLE_ADMIN else '乘客',
            company=PLACEHOLDER_COMPANY,
            position=role,
            phone=current_user.get('phone') or '',
        )
