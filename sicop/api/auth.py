"""
Endpoints de autenticación.

Login con email/password contra el directorio de usuarios y emisión
del token Bearer que consume el verificador de credenciales.
"""
from fastapi import APIRouter, Depends, Request

from sicop.api.deps import get_user_repository
from sicop.core.config import settings
from sicop.core.exceptions import AuthenticationException
from sicop.core.logger import get_logger
from sicop.core.security import (
    create_access_token,
    get_current_identity,
    limiter,
    verify_password,
)
from sicop.models.identity import Identity, Role
from sicop.models.user import LoginRequest, TokenResponse
from sicop.services.repository import SqlAlchemyUserRepository

logger = get_logger()

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
)


@router.post("/login", response_model=TokenResponse)
@limiter.limit(f"{settings.rate_limit_login_per_minute}/minute")
def login(
    request: Request,
    payload: LoginRequest,
    users: SqlAlchemyUserRepository = Depends(get_user_repository),
) -> TokenResponse:
    """
    Autentica un usuario y devuelve un token de acceso.

    El mismo error (401) para usuario inexistente, password incorrecto
    o usuario inactivo.
    """
    user = users.get_by_email(payload.email)

    if user is None:
        logger.warning("Login with unknown email", action="auth_failed", email=payload.email)
        raise AuthenticationException()

    if not verify_password(payload.password, user.hashed_password):
        logger.warning("Login with wrong password", action="auth_failed", user_id=user.id)
        raise AuthenticationException()

    if not user.is_active:
        logger.warning("Login with inactive user", action="auth_failed", user_id=user.id)
        raise AuthenticationException("Usuario inactivo")

    identity = Identity(user_id=user.id, role=Role(user.role), area=user.area, name=user.name)
    token = create_access_token(identity)
    users.touch_login(user)

    logger.info("User authenticated", action="auth_success", user_id=user.id, role=user.role)

    return TokenResponse(
        access_token=token,
        role=identity.role,
        expires_in=settings.jwt_access_token_expire_minutes * 60,
    )


@router.get("/me", response_model=Identity)
async def me(identity: Identity = Depends(get_current_identity)) -> Identity:
    return identity
