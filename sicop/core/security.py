"""
Seguridad de SICOP.

Incluye:
- Verificación de credenciales Bearer (JWT)
- Hashing de passwords
- Rate limiting del login
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from pydantic import ValidationError
from slowapi import Limiter
from slowapi.util import get_remote_address

from sicop.core.config import get_settings
from sicop.core.exceptions import InvalidCredentialException
from sicop.core.logger import get_logger
from sicop.models.identity import Identity

logger = get_logger()


# =========================================================
# CONFIGURACIÓN DE SEGURIDAD
# =========================================================

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Sin auto_error: el esquema se documenta en OpenAPI y la cabecera se lee a mano
security = HTTPBearer(auto_error=False)

limiter = Limiter(
    key_func=get_remote_address,
    enabled=get_settings().rate_limit_enabled,
)


# =========================================================
# GESTIÓN DE PASSWORDS
# =========================================================


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


# =========================================================
# JWT - CREACIÓN Y VERIFICACIÓN
# =========================================================


def create_access_token(identity: Identity, expires_delta: Optional[timedelta] = None) -> str:
    """
    Crea un token JWT de acceso para una identidad.

    Args:
        identity: Identidad a codificar (sub, role, area, name)
        expires_delta: Tiempo de expiración custom

    Returns:
        Token JWT codificado
    """
    config = get_settings()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=config.jwt_access_token_expire_minutes))

    to_encode = {
        "sub": identity.user_id,
        "role": identity.role.value,
        "area": identity.area,
        "name": identity.name,
        "type": "access",
        "iat": now,
        "exp": expire,
    }

    return jwt.encode(to_encode, config.jwt_secret_key, algorithm=config.jwt_algorithm)


def verify(token: Optional[str]) -> Identity:
    """
    Valida un token Bearer y extrae la identidad.

    Args:
        token: Token JWT

    Returns:
        Identity del portador

    Raises:
        InvalidCredentialException: token ausente, malformado, con firma
            inválida, expirado o con claims incompletos
    """
    if not token:
        raise InvalidCredentialException(reason="Token requerido", missing=True)

    config = get_settings()
    try:
        payload = jwt.decode(
            token,
            config.jwt_secret_key,
            algorithms=[config.jwt_algorithm],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token", action="token_expired")
        raise InvalidCredentialException(reason="Token expirado", expired=True)
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token", action="token_invalid", error=str(e))
        raise InvalidCredentialException(reason=str(e))

    if payload.get("type") != "access":
        logger.warning("Token is not an access token", action="token_invalid")
        raise InvalidCredentialException(reason="Tipo de token incorrecto")

    try:
        return Identity(
            user_id=payload.get("sub"),
            role=payload.get("role"),
            area=payload.get("area"),
            name=payload.get("name") or "",
        )
    except ValidationError:
        logger.warning("Token claims rejected", action="token_invalid", role=payload.get("role"))
        raise InvalidCredentialException(reason="Claims del token inválidos")


# =========================================================
# DEPENDENCIES PARA FASTAPI
# =========================================================


def credential_from_header(header: Optional[str]) -> Optional[str]:
    """
    Parte de credencial de una cabecera `Authorization: <esquema> <token>`.

    El esquema no se valida: cualquier valor presente se entrega al
    verificador. Devuelve None si no hay cabecera o no trae credencial.
    """
    if not header:
        return None
    parts = header.strip().split(None, 1)
    if len(parts) < 2:
        return None
    return parts[1].strip() or None


async def get_current_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Identity:
    """
    Identidad de la petición actual.

    Sin cabecera `Authorization` o sin credencial → 401; cualquier otro
    valor pasa por `verify` y, si se rechaza, → 403.
    """
    if credentials is not None:
        return verify(credentials.credentials)

    token = credential_from_header(request.headers.get("Authorization"))
    if token is None:
        raise InvalidCredentialException(reason="Token requerido", missing=True)

    return verify(token)
