"""Modelos SQLAlchemy (usuarios, perfiles de pasajero y registro de verificaciones)"""
from sqlalchemy import Column, String, Integer, DateTime, Float, ForeignKey, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
from shared.database.connection import Base


def new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    openid = Column(String, unique=True, nullable=False, index=True)
    role = Column(String, nullable=False, server_default="PASSENGER")  # PASSENGER, DRIVER, ADMIN
    device_id = Column(String, nullable=True)
    phone = Column(String, unique=True, nullable=True, index=True)
    password_hash = Column(Text, nullable=True)  # bcrypt; solo cuentas con login por contraseña
    status = Column(Integer, nullable=False, server_default="1")  # 1 = activo
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relaciones
    passenger = relationship("Passenger", back_populates="user", uselist=False)


class Passenger(Base):
    """Perfil de pasajero (solo lectura para el protocolo de tickets)"""
    __tablename__ = "passengers"

    passenger_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id"), unique=True, nullable=False)
    name = Column(String, nullable=False)
    company = Column(String, nullable=True)
    position = Column(String, nullable=True)
    phone = Column(String, nullable=False)
    status = Column(String, nullable=False, server_default="ACTIVE")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relaciones
    user = relationship("User", back_populates="passenger")


class VerificationLog(Base):
    """Registro append-only de verificaciones exitosas"""
    __tablename__ = "verification_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)  # Pasajero
    driver_id = Column(String(36), nullable=False)
    shuttle_id = Column(String, nullable=False, server_default="default")
    verified_at = Column(DateTime(timezone=True), nullable=False, index=True)


class Stop(Base):
    """Parada de la ruta del shuttle"""
    __tablename__ = "stops"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    sequence = Column(Integer, nullable=False, index=True)
