"""
Máquina de estados del expediente.

Tabla única de transiciones: (origen, destino) → roles que la disparan,
acción registrada en la bitácora y si se notifica al profesor revisor.
Cualquier arista fuera de la tabla es InvalidTransition y deja el caso
intacto.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, FrozenSet, Optional, Tuple

from sicop.core.exceptions import InvalidTransitionException
from sicop.models.identity import Identity, Role
from sicop.models.legal_case import TERMINAL_STATUSES, AuditEntry, CaseStatus, LegalCase
from sicop.services.semaphore import color_for

S = CaseStatus


@dataclass(frozen=True)
class Transition:
    roles: FrozenSet[Role]
    audit_action: str
    notify_professor: bool = False


def _t(*roles: Role, action: str, notify: bool = False) -> Transition:
    return Transition(roles=frozenset(roles), audit_action=action, notify_professor=notify)


TRANSITIONS: Dict[Tuple[CaseStatus, CaseStatus], Transition] = {
    (S.EVALUACION, S.SUSTANCIACION): _t(Role.ESTUDIANTE, Role.ADMINISTRATIVO, action="status_changed"),
    (S.SUSTANCIACION, S.REVISION_DEL_PROFESOR): _t(
        Role.ESTUDIANTE, action="submitted_for_review", notify=True
    ),
    (S.REVISION_DEL_PROFESOR, S.APROBADO): _t(Role.PROFESOR, action="case_approved"),
    (S.REVISION_DEL_PROFESOR, S.SUSTANCIACION): _t(Role.PROFESOR, action="returned_for_correction"),
    (S.APROBADO, S.SEGUIMIENTO): _t(Role.ADMINISTRATIVO, Role.PROFESOR, action="status_changed"),
    (S.SEGUIMIENTO, S.CERRADO): _t(Role.ADMINISTRATIVO, action="case_closed"),
    (S.EVALUACION, S.RECHAZADO): _t(Role.ADMINISTRATIVO, Role.PROFESOR, action="case_rejected"),
    (S.SUSTANCIACION, S.RECHAZADO): _t(Role.ADMINISTRATIVO, Role.PROFESOR, action="case_rejected"),
    (S.REVISION_DEL_PROFESOR, S.RECHAZADO): _t(
        Role.ADMINISTRATIVO, Role.PROFESOR, action="case_rejected"
    ),
}

INITIAL_STATUS = S.EVALUACION


def is_terminal(status: CaseStatus) -> bool:
    return status in TERMINAL_STATUSES


def get_transition(from_status: CaseStatus, to_status: CaseStatus) -> Optional[Transition]:
    return TRANSITIONS.get((from_status, to_status))


def allowed_targets(status: CaseStatus, role: Role) -> FrozenSet[CaseStatus]:
    """
    Estados alcanzables desde `status` por `role`.

    El rol administrativo puede recorrer cualquier arista de la tabla.
    """
    return frozenset(
        to
        for (frm, to), transition in TRANSITIONS.items()
        if frm == status and (role == Role.ADMINISTRATIVO or role in transition.roles)
    )


def require_transition(from_status: CaseStatus, to_status: CaseStatus) -> Transition:
    transition = get_transition(from_status, to_status)
    if transition is None:
        raise InvalidTransitionException(from_status.value, to_status.value)
    return transition


def apply_transition(
    case: LegalCase,
    to_status: CaseStatus,
    identity: Identity,
    now: datetime,
) -> LegalCase:
    """
    Aplica una transición sobre una copia del caso.

    El estado, el semáforo y la entrada de bitácora cambian juntos o no
    cambia nada: la validación precede a cualquier mutación.

    Raises:
        InvalidTransitionException: si la arista no está en la tabla
    """
    transition = require_transition(case.status, to_status)

    entry = AuditEntry(
        date=now,
        action=transition.audit_action,
        user=identity.display_name,
        user_id=identity.user_id,
        role=identity.role.value,
        detail=f"{case.status.value} -> {to_status.value}",
    )

    return case.model_copy(
        update={
            "status": to_status,
            "semaphore": color_for(case.deadline, now, to_status),
            "audit_log": [*case.audit_log, entry],
            "updated_at": now,
        }
    )
