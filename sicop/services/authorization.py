"""
Política de autorización de SICOP.

Una sola función de decisión, `authorize(identity, action, case)`, sobre
acciones tipadas. No consulta estado externo: solo la identidad y el
snapshot del caso que recibe, por lo que la misma entrada siempre produce
la misma decisión.

Orden de evaluación en acciones sobre un caso:
1. alcance (propiedad del estudiante / área del profesor)
2. existencia de la arista (solo ChangeStatus)
3. rol permitido para la acción o arista
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from sicop.models.identity import Identity, Role
from sicop.models.legal_case import CaseStatus, LegalCase
from sicop.services.state_machine import get_transition


class DenyReason(str, Enum):
    NOT_OWNER = "NotOwner"
    WRONG_AREA = "WrongArea"
    ROLE_NOT_PERMITTED = "RoleNotPermitted"
    TRANSITION_NOT_ALLOWED = "TransitionNotAllowed"


# =========================================================
# ACCIONES
# =========================================================

@dataclass(frozen=True)
class CreateCase:
    name = "CreateCase"


@dataclass(frozen=True)
class ViewCase:
    name = "ViewCase"


@dataclass(frozen=True)
class EditCase:
    name = "EditCase"


@dataclass(frozen=True)
class ChangeStatus:
    from_status: CaseStatus
    to_status: CaseStatus

    name = "ChangeStatus"


@dataclass(frozen=True)
class ReassignStudent:
    name = "ReassignStudent"


@dataclass(frozen=True)
class AddProcesalDeadline:
    name = "AddProcesalDeadline"


@dataclass(frozen=True)
class ViewAllCases:
    name = "ViewAllCases"


@dataclass(frozen=True)
class ManageUsers:
    name = "ManageUsers"


Action = Union[
    CreateCase,
    ViewCase,
    EditCase,
    ChangeStatus,
    ReassignStudent,
    AddProcesalDeadline,
    ViewAllCases,
    ManageUsers,
]


# =========================================================
# DECISIONES
# =========================================================

@dataclass(frozen=True)
class Allow:
    allowed = True


@dataclass(frozen=True)
class Deny:
    reason: DenyReason

    allowed = False


Decision = Union[Allow, Deny]

ALLOW = Allow()


# Acciones que cada rol puede ejecutar; las de caso además pasan por el alcance.
ROLE_ACTIONS = {
    Role.ESTUDIANTE: {CreateCase, ViewCase, EditCase, AddProcesalDeadline, ChangeStatus},
    Role.PROFESOR: {ViewCase, ChangeStatus},
    Role.ADMINISTRATIVO: {
        CreateCase,
        ViewCase,
        EditCase,
        ChangeStatus,
        ReassignStudent,
        AddProcesalDeadline,
        ViewAllCases,
        ManageUsers,
    },
}

CASE_SCOPED = (ViewCase, EditCase, ChangeStatus, AddProcesalDeadline)


def _scope_denial(identity: Identity, case: LegalCase) -> Optional[DenyReason]:
    if identity.role == Role.ESTUDIANTE:
        if case.assigned_student_id != identity.user_id:
            return DenyReason.NOT_OWNER
    elif identity.role == Role.PROFESOR:
        is_reviewer = case.assigned_professor_id == identity.user_id
        if case.area != identity.area and not is_reviewer:
            return DenyReason.WRONG_AREA
    return None


def authorize(identity: Identity, action: Action, case: Optional[LegalCase] = None) -> Decision:
    """
    Decide si `identity` puede ejecutar `action` sobre `case`.

    Returns:
        Allow o Deny(reason)
    """
    if type(action) not in ROLE_ACTIONS[identity.role]:
        return Deny(DenyReason.ROLE_NOT_PERMITTED)

    if isinstance(action, CASE_SCOPED):
        if case is None:
            if identity.role != Role.ADMINISTRATIVO:
                return Deny(DenyReason.ROLE_NOT_PERMITTED)
        else:
            reason = _scope_denial(identity, case)
            if reason is not None:
                return Deny(reason)

    if isinstance(action, ChangeStatus):
        transition = get_transition(action.from_status, action.to_status)
        if transition is None:
            return Deny(DenyReason.TRANSITION_NOT_ALLOWED)
        if identity.role != Role.ADMINISTRATIVO and identity.role not in transition.roles:
            return Deny(DenyReason.ROLE_NOT_PERMITTED)

    return ALLOW
