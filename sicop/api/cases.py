"""
Endpoints de expedientes.

Esta capa NO contiene lógica de negocio: traduce HTTP a operaciones
del WorkflowService. La autorización y la validación de transiciones
ocurren dentro del servicio.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from sicop.api.deps import get_workflow_service
from sicop.core.security import get_current_identity
from sicop.models.identity import Identity
from sicop.models.legal_case import (
    CaseStatus,
    ChangeStatusRequest,
    CreateCaseRequest,
    LegalCase,
    ProcesalDeadlineRequest,
    ReassignStudentRequest,
    UpdateCaseRequest,
)
from sicop.services.workflow import WorkflowService

router = APIRouter(
    prefix="/cases",
    tags=["cases"],
)


@router.post(
    "",
    response_model=LegalCase,
    status_code=status.HTTP_201_CREATED,
    summary="Registrar un expediente",
)
def create_case(
    payload: CreateCaseRequest,
    identity: Identity = Depends(get_current_identity),
    service: WorkflowService = Depends(get_workflow_service),
) -> LegalCase:
    return service.create_case(identity, payload)


@router.get(
    "",
    response_model=List[LegalCase],
    summary="Listar expedientes visibles",
)
def list_cases(
    status_filter: Optional[CaseStatus] = Query(None, alias="status"),
    identity: Identity = Depends(get_current_identity),
    service: WorkflowService = Depends(get_workflow_service),
) -> List[LegalCase]:
    """
    Estudiante: sus casos. Profesor: casos de su área o que revisa.
    Administrativo: todos.
    """
    return service.list_cases(identity, status=status_filter)


@router.get("/{case_id}", response_model=LegalCase)
def get_case(
    case_id: str,
    identity: Identity = Depends(get_current_identity),
    service: WorkflowService = Depends(get_workflow_service),
) -> LegalCase:
    return service.get_case(identity, case_id)


@router.patch(
    "/{case_id}/status",
    response_model=LegalCase,
    summary="Cambiar el estado del expediente",
)
def change_status(
    case_id: str,
    payload: ChangeStatusRequest,
    identity: Identity = Depends(get_current_identity),
    service: WorkflowService = Depends(get_workflow_service),
) -> LegalCase:
    return service.change_status(identity, case_id, payload.to)


@router.post("/{case_id}/reassign", response_model=LegalCase)
def reassign_student(
    case_id: str,
    payload: ReassignStudentRequest,
    identity: Identity = Depends(get_current_identity),
    service: WorkflowService = Depends(get_workflow_service),
) -> LegalCase:
    return service.reassign_student(identity, case_id, payload.new_student_id, payload.reason)


@router.post("/{case_id}/deadlines", response_model=LegalCase)
def add_procesal_deadline(
    case_id: str,
    payload: ProcesalDeadlineRequest,
    identity: Identity = Depends(get_current_identity),
    service: WorkflowService = Depends(get_workflow_service),
) -> LegalCase:
    return service.add_procesal_deadline(identity, case_id, payload)


@router.patch("/{case_id}", response_model=LegalCase)
def edit_case(
    case_id: str,
    payload: UpdateCaseRequest,
    identity: Identity = Depends(get_current_identity),
    service: WorkflowService = Depends(get_workflow_service),
) -> LegalCase:
    return service.edit_case(identity, case_id, payload)
