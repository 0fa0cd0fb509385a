"""Modelos Pydantic de cuentas"""
from pydantic import BaseModel
from typing import Optional


class LoginRequest(BaseModel):
    openid: str
    device_id: Optional[str] = None
    rememberMe: bool = False


class PhoneLoginRequest(BaseModel):
    """Login de pasajeros y conductores con teléfono + contraseña"""
    phone: Optional[str] = None
    password: Optional[str] = None
    rememberMe: bool = False


class AdminLoginRequest(BaseModel):
    """username puede ser el openid o el teléfono del admin"""
    username: Optional[str] = None
    password: Optional[str] = None
    rememberMe: bool = False


class LoginUser(BaseModel):
    id: str
    role: str
    openid: Optional[str] = None
    device_id: Optional[str] = None
    phone: Optional[str] = None


class LoginResponse(BaseModel):
    token: str
    user: LoginUser


class ProfileResponse(BaseModel):
    name: Optional[str] = None
    company: Optional[str] = None
    position: Optional[str] = None
    phone: Optional[str] = None
