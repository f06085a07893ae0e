"""
Inicialización de la base de datos de SICOP.

    python -m sicop.core.init_db            # crea las tablas
    python -m sicop.core.init_db --seed     # crea las tablas y usuarios demo
"""
import argparse
import uuid
from pathlib import Path

from dotenv import load_dotenv

from sicop.core.database import Base, get_engine, get_session
from sicop.core.logger import get_logger
from sicop.core.security import hash_password
from sicop.models.case_record import LegalCaseRecord  # noqa: F401
from sicop.models.identity import Role
from sicop.models.user import UserRecord

BASE_DIR = Path(__file__).resolve().parent.parent.parent
load_dotenv(BASE_DIR / ".env")

logger = get_logger()

DEMO_PASSWORD = "sicop-demo-2024"

# (email, nombre, rol, área)
DEMO_USERS = [
    ("admin@sicop.edu.co", "Administración Consultorio", Role.ADMINISTRATIVO, None),
    ("profesor.civil@sicop.edu.co", "Dra. Marta Rincón", Role.PROFESOR, "Civil"),
    ("profesor.laboral@sicop.edu.co", "Dr. Jaime Ortiz", Role.PROFESOR, "Laboral"),
    ("estudiante1@sicop.edu.co", "Laura Gómez", Role.ESTUDIANTE, "Civil"),
    ("estudiante2@sicop.edu.co", "Andrés Pérez", Role.ESTUDIANTE, "Laboral"),
]


def create_tables(engine=None) -> list:
    """Crea las tablas registradas y devuelve sus nombres."""
    engine = engine or get_engine()
    Base.metadata.create_all(bind=engine)
    tables = sorted(Base.metadata.tables.keys())
    logger.info("Tables ready", action="init_db", tables=tables)
    return tables


def seed_demo_users() -> int:
    """Inserta los usuarios demo que falten. Devuelve cuántos se crearon."""
    created = 0
    with get_session() as session:
        for email, name, role, area in DEMO_USERS:
            exists = session.query(UserRecord).filter(UserRecord.email == email).first()
            if exists:
                continue
            session.add(
                UserRecord(
                    id=str(uuid.uuid4()),
                    email=email,
                    hashed_password=hash_password(DEMO_PASSWORD),
                    name=name,
                    role=role.value,
                    area=area,
                    is_active=True,
                )
            )
            created += 1

    logger.info("Demo users seeded", action="init_db", created=created)
    return created


def main():
    parser = argparse.ArgumentParser(description="Inicializa la base de datos de SICOP")
    parser.add_argument("--seed", action="store_true", help="Crear usuarios demo")
    args = parser.parse_args()

    tables = create_tables()
    print("Tablas creadas / registradas en SQLAlchemy:")
    for table in tables:
        print(f"   - {table}")

    if args.seed:
        created = seed_demo_users()
        print(f"\nUsuarios demo creados: {created} (password: {DEMO_PASSWORD})")


if __name__ == "__main__":
    main()
