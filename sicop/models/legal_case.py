"""
Modelo de dominio del expediente (LegalCase) y cuerpos de petición.

El expediente viaja entre capas como snapshot inmutable de Pydantic:
el Workflow Service trabaja siempre sobre copias (`model_copy`) y solo
el repositorio lo persiste.
"""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class CaseStatus(str, Enum):
    """
    Fases del expediente.

    Evaluacion es el estado inicial; Cerrado y Rechazado son terminales.
    """

    EVALUACION = "Evaluacion"
    SUSTANCIACION = "Sustanciacion"
    REVISION_DEL_PROFESOR = "Revision_del_profesor"
    APROBADO = "Aprobado"
    SEGUIMIENTO = "Seguimiento"
    CERRADO = "Cerrado"
    RECHAZADO = "Rechazado"


TERMINAL_STATUSES = frozenset({CaseStatus.CERRADO, CaseStatus.RECHAZADO})


class SemaphoreColor(str, Enum):
    """Color de urgencia derivado del vencimiento."""

    RED = "red"
    YELLOW = "yellow"
    GREEN = "green"


class AuditEntry(BaseModel):
    """Entrada append-only de la bitácora del caso."""

    date: datetime
    action: str
    user: str
    user_id: Optional[str] = None
    role: Optional[str] = None
    detail: Optional[str] = None

    model_config = {"frozen": True}


class SubstitutionEntry(BaseModel):
    """Reasignación del estudiante responsable."""

    from_student_id: Optional[str] = None
    to_student_id: str
    date: datetime
    reason: Optional[str] = None
    by: str

    model_config = {"frozen": True}


class ProcesalDeadline(BaseModel):
    """Término procesal dentro del ciclo de vida del caso."""

    date: date
    description: str
    days: Optional[int] = None


class LegalCase(BaseModel):
    """
    Expediente de la clínica jurídica.

    `semaphore` es una proyección de (deadline, hoy, status): nunca la
    escribe un llamador, la recalcula el núcleo en cada lectura y escritura.
    `version` sirve al control de concurrencia optimista del repositorio.
    """

    id: str
    radicado: str

    # Datos del proceso
    numero_proceso: Optional[str] = None
    demandante: Optional[str] = None
    demandado: Optional[str] = None
    despacho: Optional[str] = None
    fecha_notificacion: Optional[date] = None

    # Datos del cliente
    client_name: str
    client_doc: str
    client_doc_type: str = "CC"
    client_phone: Optional[str] = None
    client_email: Optional[str] = None
    client_address: Optional[str] = None

    type: str
    area: str
    description: str = ""
    is_minor: bool = False
    hours_spent: float = 0.0
    interview_notes: Optional[str] = None

    # Flujo
    status: CaseStatus = CaseStatus.EVALUACION
    deadline: Optional[date] = None
    procesal_deadlines: List[ProcesalDeadline] = Field(default_factory=list)
    semaphore: SemaphoreColor = SemaphoreColor.GREEN
    high_risk_alert: bool = False
    high_risk_reason: Optional[str] = None

    # Relaciones
    assigned_student_id: Optional[str] = None
    assigned_student_name: Optional[str] = None
    assigned_professor_id: Optional[str] = None
    assigned_professor_name: Optional[str] = None

    # Historial
    audit_log: List[AuditEntry] = Field(default_factory=list)
    substitution_history: List[SubstitutionEntry] = Field(default_factory=list)

    version: int = 1
    created_at: datetime
    updated_at: datetime

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


# =========================================================
# CUERPOS DE PETICIÓN
# =========================================================

class ProcesalDeadlineRequest(BaseModel):
    """Nuevo término procesal."""

    date: date
    description: str = Field(..., min_length=1, max_length=500)

    model_config = {"extra": "forbid"}


class CreateCaseRequest(BaseModel):
    """
    Borrador de expediente.

    Si no trae términos procesales se calculan a partir del tipo de
    proceso; si no trae `deadline` se usa el término más próximo.
    """

    radicado: str = Field(..., min_length=1, max_length=64)
    numero_proceso: Optional[str] = None
    demandante: Optional[str] = None
    demandado: Optional[str] = None
    despacho: Optional[str] = None
    fecha_notificacion: Optional[date] = None

    client_name: str = Field(..., min_length=1, max_length=255)
    client_doc: str = Field(..., min_length=1, max_length=32)
    client_doc_type: str = "CC"
    client_phone: Optional[str] = None
    client_email: Optional[str] = None
    client_address: Optional[str] = None

    type: str = Field(..., min_length=1, max_length=64)
    area: str = Field(..., min_length=1, max_length=64)
    description: str = ""
    is_minor: bool = False
    high_risk_alert: bool = False
    high_risk_reason: Optional[str] = None
    interview_notes: Optional[str] = None

    deadline: Optional[date] = None
    procesal_deadlines: Optional[List[ProcesalDeadlineRequest]] = None
    assigned_student_id: Optional[str] = None

    model_config = {"extra": "forbid"}


class ChangeStatusRequest(BaseModel):
    to: CaseStatus

    model_config = {"extra": "forbid"}


class ReassignStudentRequest(BaseModel):
    new_student_id: str = Field(..., min_length=1)
    reason: Optional[str] = Field(None, max_length=500)

    model_config = {"extra": "forbid"}


class UpdateCaseRequest(BaseModel):
    """Edición de los campos libres del expediente."""

    description: Optional[str] = None
    interview_notes: Optional[str] = None
    high_risk_alert: Optional[bool] = None
    high_risk_reason: Optional[str] = None
    add_hours: Optional[float] = Field(None, ge=0)

    model_config = {"extra": "forbid"}
