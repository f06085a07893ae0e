"""
Colaboradores de almacenamiento del núcleo.

El Workflow Service solo conoce las abstracciones `CaseRepository` y
`UserRepository`. Las implementaciones SQLAlchemy serializan las
escrituras de un mismo caso con un número de versión: gana un único
escritor por versión y el resto recibe ConflictException.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sicop.core.exceptions import ConflictException, DuplicateCaseException, DuplicateUserException
from sicop.models.case_record import LegalCaseRecord
from sicop.models.identity import Role
from sicop.models.legal_case import CaseStatus, LegalCase
from sicop.models.user import UserRecord

JSON_FIELDS = ("procesal_deadlines", "audit_log", "substitution_history")
IMMUTABLE_FIELDS = ("id", "radicado", "created_at", "version")


class CaseRepository(ABC):
    """Persistencia de expedientes."""

    @abstractmethod
    def get(self, case_id: str) -> Optional[LegalCase]:
        ...

    @abstractmethod
    def get_by_radicado(self, radicado: str) -> Optional[LegalCase]:
        ...

    @abstractmethod
    def list(
        self,
        student_id: Optional[str] = None,
        area: Optional[str] = None,
        professor_id: Optional[str] = None,
        status: Optional[CaseStatus] = None,
    ) -> List[LegalCase]:
        ...

    @abstractmethod
    def add(self, case: LegalCase) -> LegalCase:
        """Inserta un caso nuevo. DuplicateCaseException si el radicado existe."""

    @abstractmethod
    def save(self, case: LegalCase, expected_version: int) -> LegalCase:
        """
        Escribe el snapshot si la versión almacenada sigue siendo
        `expected_version`; si no, ConflictException.
        """


class UserRepository(ABC):
    """Directorio de usuarios."""

    @abstractmethod
    def get(self, user_id: str) -> Optional[UserRecord]:
        ...

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[UserRecord]:
        ...

    @abstractmethod
    def find_professor_for_area(self, area: str) -> Optional[UserRecord]:
        ...

    @abstractmethod
    def list(self) -> List[UserRecord]:
        ...

    @abstractmethod
    def add(self, user: UserRecord) -> UserRecord:
        ...


# =========================================================
# IMPLEMENTACIONES SQLALCHEMY
# =========================================================

def _to_columns(case: LegalCase) -> dict:
    data = case.model_dump()
    json_data = case.model_dump(mode="json", include=set(JSON_FIELDS))
    data.update(json_data)
    data["status"] = case.status.value
    data["semaphore"] = case.semaphore.value
    return data


def _to_domain(record: LegalCaseRecord) -> LegalCase:
    data = {column.name: getattr(record, column.name) for column in LegalCaseRecord.__table__.columns}
    return LegalCase.model_validate(data)


class SqlAlchemyCaseRepository(CaseRepository):

    def __init__(self, db: Session):
        self.db = db

    def get(self, case_id: str) -> Optional[LegalCase]:
        record = self.db.query(LegalCaseRecord).filter(LegalCaseRecord.id == case_id).first()
        return _to_domain(record) if record else None

    def get_by_radicado(self, radicado: str) -> Optional[LegalCase]:
        record = (
            self.db.query(LegalCaseRecord).filter(LegalCaseRecord.radicado == radicado).first()
        )
        return _to_domain(record) if record else None

    def list(
        self,
        student_id: Optional[str] = None,
        area: Optional[str] = None,
        professor_id: Optional[str] = None,
        status: Optional[CaseStatus] = None,
    ) -> List[LegalCase]:
        query = self.db.query(LegalCaseRecord)

        if student_id is not None:
            query = query.filter(LegalCaseRecord.assigned_student_id == student_id)

        if area is not None and professor_id is not None:
            query = query.filter(
                or_(
                    LegalCaseRecord.area == area,
                    LegalCaseRecord.assigned_professor_id == professor_id,
                )
            )
        elif area is not None:
            query = query.filter(LegalCaseRecord.area == area)
        elif professor_id is not None:
            query = query.filter(LegalCaseRecord.assigned_professor_id == professor_id)

        if status is not None:
            query = query.filter(LegalCaseRecord.status == status.value)

        records = query.order_by(LegalCaseRecord.created_at.desc()).all()
        return [_to_domain(record) for record in records]

    def add(self, case: LegalCase) -> LegalCase:
        if self.get_by_radicado(case.radicado) is not None:
            raise DuplicateCaseException(case.radicado)

        record = LegalCaseRecord(**_to_columns(case))
        self.db.add(record)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateCaseException(case.radicado)

        self.db.refresh(record)
        return _to_domain(record)

    def save(self, case: LegalCase, expected_version: int) -> LegalCase:
        values = {k: v for k, v in _to_columns(case).items() if k not in IMMUTABLE_FIELDS}
        values["version"] = expected_version + 1

        stmt = (
            update(LegalCaseRecord)
            .where(LegalCaseRecord.id == case.id)
            .where(LegalCaseRecord.version == expected_version)
            .values(**values)
        )
        result = self.db.execute(stmt)

        if result.rowcount == 0:
            self.db.rollback()
            raise ConflictException(case.id, expected_version)

        self.db.commit()
        return case.model_copy(update={"version": expected_version + 1})


class SqlAlchemyUserRepository(UserRepository):

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: str) -> Optional[UserRecord]:
        return self.db.query(UserRecord).filter(UserRecord.id == user_id).first()

    def get_by_email(self, email: str) -> Optional[UserRecord]:
        return self.db.query(UserRecord).filter(UserRecord.email == email.lower()).first()

    def find_professor_for_area(self, area: str) -> Optional[UserRecord]:
        return (
            self.db.query(UserRecord)
            .filter(
                UserRecord.role == Role.PROFESOR.value,
                UserRecord.area == area,
                UserRecord.is_active.is_(True),
            )
            .order_by(UserRecord.name)
            .first()
        )

    def list(self) -> List[UserRecord]:
        return self.db.query(UserRecord).order_by(UserRecord.created_at.desc()).all()

    def add(self, user: UserRecord) -> UserRecord:
        user.email = user.email.lower()
        if self.get_by_email(user.email) is not None:
            raise DuplicateUserException(user.email)

        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateUserException(user.email)

        self.db.refresh(user)
        return user

    def touch_login(self, user: UserRecord) -> None:
        user.last_login = datetime.now(timezone.utc)
        self.db.commit()
