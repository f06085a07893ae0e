"""Fixtures pytest: base de datos en memoria, usuarios sembrados y cliente HTTP."""
import os

os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-sicop"

from datetime import datetime  # noqa: E402
from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from sicop.core.database import Base, get_db  # noqa: E402
from sicop.core.security import create_access_token, hash_password  # noqa: E402
from sicop.models.case_record import LegalCaseRecord  # noqa: E402, F401
from sicop.models.identity import Identity, Role  # noqa: E402
from sicop.models.user import UserRecord  # noqa: E402

TEST_PASSWORD = "clave-segura-123"
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)

FIXED_NOW = datetime(2024, 3, 1, 9, 0, 0)


@pytest.fixture(scope="function")
def engine():
    """Engine SQLite en memoria compartido entre hilos (TestClient)."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """Sesión DB en memoria para tests."""
    session = session_factory()

    yield session

    session.close()


def _user(user_id, email, name, role, area):
    return UserRecord(
        id=user_id,
        email=email,
        hashed_password=TEST_PASSWORD_HASH,
        name=name,
        role=role.value,
        area=area,
        is_active=True,
    )


@pytest.fixture(scope="function")
def users(db_session):
    """Directorio sembrado: un administrativo, dos profesores y tres estudiantes."""
    records = SimpleNamespace(
        admin=_user("adm-1", "admin@sicop.test", "Admin Consultorio", Role.ADMINISTRATIVO, None),
        professor=_user("prof-civil", "civil@sicop.test", "Marta Rincón", Role.PROFESOR, "Civil"),
        other_professor=_user(
            "prof-laboral", "laboral@sicop.test", "Jaime Ortiz", Role.PROFESOR, "Laboral"
        ),
        student=_user("est-1", "laura@sicop.test", "Laura Gómez", Role.ESTUDIANTE, "Civil"),
        other_student=_user("est-2", "andres@sicop.test", "Andrés Pérez", Role.ESTUDIANTE, "Civil"),
        inactive_student=_user(
            "est-3", "inactivo@sicop.test", "Sofía Inactiva", Role.ESTUDIANTE, "Civil"
        ),
    )
    records.inactive_student.is_active = False

    db_session.add_all(vars(records).values())
    db_session.commit()
    return records


def identity_of(user: UserRecord) -> Identity:
    return Identity(user_id=user.id, role=Role(user.role), area=user.area, name=user.name)


@pytest.fixture
def admin(users):
    return identity_of(users.admin)


@pytest.fixture
def professor(users):
    return identity_of(users.professor)


@pytest.fixture
def other_professor(users):
    return identity_of(users.other_professor)


@pytest.fixture
def student(users):
    return identity_of(users.student)


@pytest.fixture
def other_student(users):
    return identity_of(users.other_student)


@pytest.fixture
def auth_headers():
    """Construye cabeceras Bearer para una identidad."""

    def _headers(identity: Identity) -> dict:
        return {"Authorization": f"Bearer {create_access_token(identity)}"}

    return _headers


@pytest.fixture(scope="function")
def client(session_factory, users):
    """TestClient con la dependencia get_db apuntando a la base en memoria."""
    from sicop.main import app

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def make_case():
    """Construye snapshots LegalCase en memoria."""
    from sicop.models.legal_case import CaseStatus, LegalCase

    counter = {"n": 0}

    def _make(**overrides) -> LegalCase:
        counter["n"] += 1
        data = {
            "id": f"case-{counter['n']}",
            "radicado": f"RAD-{counter['n']:04d}",
            "client_name": "Pedro Ramírez",
            "client_doc": "1020304050",
            "type": "Tutela",
            "area": "Civil",
            "status": CaseStatus.EVALUACION,
            "assigned_student_id": "est-1",
            "assigned_professor_id": "prof-civil",
            "created_at": FIXED_NOW,
            "updated_at": FIXED_NOW,
        }
        data.update(overrides)
        return LegalCase(**data)

    return _make
