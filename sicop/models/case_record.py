from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, Date, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from sicop.core.database import Base


class LegalCaseRecord(Base):
    """
    Fila persistida de un expediente.

    Las secuencias anidadas (términos, bitácora, sustituciones) se guardan
    como JSON. `version` se incrementa en cada escritura para detectar
    escritores concurrentes.
    """

    __tablename__ = "legal_cases"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    radicado: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)

    numero_proceso: Mapped[Optional[str]] = mapped_column(String(23), nullable=True)
    demandante: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    demandado: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    despacho: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    fecha_notificacion: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_doc: Mapped[str] = mapped_column(String(32), nullable=False)
    client_doc_type: Mapped[str] = mapped_column(String(16), nullable=False, default="CC")
    client_phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    client_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    client_address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    type: Mapped[str] = mapped_column(String(64), nullable=False)
    area: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    is_minor: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    hours_spent: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    interview_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    deadline: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    procesal_deadlines: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    semaphore: Mapped[str] = mapped_column(String(8), nullable=False)
    high_risk_alert: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    high_risk_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    assigned_student_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    assigned_student_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    assigned_professor_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    assigned_professor_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    audit_log: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    substitution_history: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    def __repr__(self):
        return f"<LegalCaseRecord(id={self.id}, radicado={self.radicado}, status={self.status})>"
