"""Hash y verificación de contraseñas (bcrypt)"""
from typing import Optional

import bcrypt


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def check_password(password: str, password_hash: Optional[str]) -> bool:
    '''False si la cuenta no tiene contraseña o no coincide'''
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Hash almacenado con formato inválido
        return False
