"""
Gestión de usuarios (solo rol administrativo).
"""
import uuid
from typing import List

from fastapi import APIRouter, Depends, status

from sicop.api.deps import get_user_repository
from sicop.core.exceptions import ForbiddenException
from sicop.core.logger import get_logger
from sicop.core.security import get_current_identity, hash_password
from sicop.models.identity import Identity
from sicop.models.user import CreateUserRequest, UserOut, UserRecord
from sicop.services.authorization import ManageUsers, authorize
from sicop.services.repository import SqlAlchemyUserRepository

logger = get_logger()

router = APIRouter(
    prefix="/users",
    tags=["users"],
)


def require_user_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    decision = authorize(identity, ManageUsers())
    if not decision.allowed:
        logger.warning(
            "Action denied",
            action=ManageUsers.name,
            reason=decision.reason.value,
            user_id=identity.user_id,
        )
        raise ForbiddenException(reason=decision.reason.value, action=ManageUsers.name)
    return identity


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: CreateUserRequest,
    identity: Identity = Depends(require_user_admin),
    users: SqlAlchemyUserRepository = Depends(get_user_repository),
) -> UserOut:
    user = users.add(
        UserRecord(
            id=str(uuid.uuid4()),
            email=payload.email,
            hashed_password=hash_password(payload.password),
            name=payload.name,
            role=payload.role.value,
            area=payload.area,
            is_active=True,
        )
    )

    logger.info("User created", action="create_user", user_id=user.id, role=user.role, by=identity.user_id)
    return UserOut.model_validate(user)


@router.get("", response_model=List[UserOut])
def list_users(
    identity: Identity = Depends(require_user_admin),
    users: SqlAlchemyUserRepository = Depends(get_user_repository),
) -> List[UserOut]:
    return [UserOut.model_validate(user) for user in users.list()]
