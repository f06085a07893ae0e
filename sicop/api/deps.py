"""
Dependencias FastAPI compartidas por los routers.
"""
from fastapi import Depends
from sqlalchemy.orm import Session

from sicop.core.database import get_db
from sicop.services.notifications import EmailProfessorNotifier
from sicop.services.repository import SqlAlchemyCaseRepository, SqlAlchemyUserRepository
from sicop.services.workflow import WorkflowService


def get_case_repository(db: Session = Depends(get_db)) -> SqlAlchemyCaseRepository:
    return SqlAlchemyCaseRepository(db)


def get_user_repository(db: Session = Depends(get_db)) -> SqlAlchemyUserRepository:
    return SqlAlchemyUserRepository(db)


def get_workflow_service(
    cases: SqlAlchemyCaseRepository = Depends(get_case_repository),
    users: SqlAlchemyUserRepository = Depends(get_user_repository),
) -> WorkflowService:
    """Un WorkflowService por petición, sobre la sesión de la petición."""
    return WorkflowService(
        cases=cases,
        users=users,
        notifier=EmailProfessorNotifier(users),
    )
