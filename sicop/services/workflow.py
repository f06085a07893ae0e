"""
Workflow Service: orquesta cada operación sobre un expediente.

Secuencia fija por operación:
1. Cargar el snapshot (CaseNotFoundException si no existe)
2. Autorizar con la política
3. Validar la petición
4. Aplicar el cambio sobre una copia + una entrada de bitácora
5. Persistir con control de versión
6. Efectos posteriores (aviso al profesor)

Ningún fallo en los pasos 1-5 deja el caso modificado.
"""
import re
import uuid
from datetime import datetime
from typing import Callable, List, Optional, Union

from sicop.core.config import get_settings
from sicop.core.exceptions import (
    CaseNotFoundException,
    ForbiddenException,
    InvalidTransitionException,
    ValidationException,
)
from sicop.core.logger import StructuredLogger
from sicop.models.identity import Identity, Role
from sicop.models.legal_case import (
    AuditEntry,
    CaseStatus,
    CreateCaseRequest,
    LegalCase,
    ProcesalDeadline,
    ProcesalDeadlineRequest,
    SubstitutionEntry,
    UpdateCaseRequest,
)
from sicop.services.authorization import (
    Action,
    AddProcesalDeadline,
    ChangeStatus,
    CreateCase,
    DenyReason,
    EditCase,
    ReassignStudent,
    ViewAllCases,
    ViewCase,
    authorize,
)
from sicop.services.base import BaseService
from sicop.services.notifications import ProfessorNotifier
from sicop.services.procesal_terms import compute_procesal_deadlines
from sicop.services.repository import CaseRepository, UserRepository
from sicop.services.semaphore import clinic_now, color_for, refresh_semaphore
from sicop.services.state_machine import INITIAL_STATUS, apply_transition, get_transition

def _clinic_clock() -> datetime:
    return clinic_now(get_settings().clinic_timezone)


NUMERO_PROCESO_RE = re.compile(r"^\d{23}$")

REQUIRED_DRAFT_FIELDS = ("radicado", "client_name", "client_doc", "type", "area")


class WorkflowService(BaseService):
    """
    Punto de entrada único para leer y modificar expedientes.

    Args:
        cases: Repositorio de expedientes
        users: Directorio de usuarios (asignación de profesor, reasignaciones)
        notifier: Canal de aviso al profesor revisor
        clock: Fuente de la hora actual (local del consultorio, naive)
        logger: Logger estructurado
    """

    def __init__(
        self,
        cases: CaseRepository,
        users: Optional[UserRepository] = None,
        notifier: Optional[ProfessorNotifier] = None,
        clock: Optional[Callable[[], datetime]] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        super().__init__(logger=logger)
        self.cases = cases
        self.users = users
        self.notifier = notifier
        self.clock = clock or _clinic_clock

    # =========================================================
    # LECTURAS
    # =========================================================

    def get_case(self, identity: Identity, case_id: str) -> LegalCase:
        case = self._load(case_id)
        self._require(identity, ViewCase(), case)
        return refresh_semaphore(case, self.clock())

    def list_cases(
        self,
        identity: Identity,
        status: Optional[CaseStatus] = None,
    ) -> List[LegalCase]:
        """
        Casos visibles para la identidad, del más reciente al más antiguo.

        El administrativo ve todos; el resto ve los que la política le
        deja consultar.
        """
        if authorize(identity, ViewAllCases()).allowed:
            candidates = self.cases.list(status=status)
        elif identity.role == Role.ESTUDIANTE:
            candidates = self.cases.list(student_id=identity.user_id, status=status)
        else:
            candidates = self.cases.list(
                area=identity.area,
                professor_id=identity.user_id,
                status=status,
            )

        now = self.clock()
        visible = [
            refresh_semaphore(case, now)
            for case in candidates
            if authorize(identity, ViewCase(), case).allowed
        ]
        visible.sort(key=lambda c: c.created_at, reverse=True)
        return visible

    # =========================================================
    # ESCRITURAS
    # =========================================================

    def create_case(self, identity: Identity, draft: CreateCaseRequest) -> LegalCase:
        """
        Registra un expediente nuevo en Evaluacion.

        Si el borrador no trae términos procesales se calculan según el
        tipo de proceso; sin `deadline` explícito vence con el primer término.

        Raises:
            ForbiddenException: el rol no puede crear casos
            ValidationException: borrador incompleto o mal formado
            DuplicateCaseException: radicado repetido
        """
        self._require(identity, CreateCase())
        self._log_info("Creating case", action="create_case", radicado=draft.radicado)

        try:
            self._validate_draft(draft)

            student_id, student_name = self._resolve_owner(identity, draft)
            professor_id, professor_name = self._resolve_professor(draft.area)

            now = self.clock()

            if draft.procesal_deadlines is not None:
                procesal = sorted(
                    (ProcesalDeadline(date=d.date, description=d.description.strip())
                     for d in draft.procesal_deadlines),
                    key=lambda d: d.date,
                )
            else:
                procesal = compute_procesal_deadlines(
                    draft.type, draft.fecha_notificacion or now.date()
                )

            deadline = draft.deadline
            if deadline is None and procesal:
                deadline = procesal[0].date

            case = LegalCase(
                id=str(uuid.uuid4()),
                radicado=draft.radicado.strip(),
                numero_proceso=draft.numero_proceso,
                demandante=draft.demandante,
                demandado=draft.demandado,
                despacho=draft.despacho,
                fecha_notificacion=draft.fecha_notificacion,
                client_name=draft.client_name.strip(),
                client_doc=draft.client_doc.strip(),
                client_doc_type=draft.client_doc_type,
                client_phone=draft.client_phone,
                client_email=draft.client_email,
                client_address=draft.client_address,
                type=draft.type.strip(),
                area=draft.area.strip(),
                description=draft.description,
                is_minor=draft.is_minor,
                interview_notes=draft.interview_notes,
                status=INITIAL_STATUS,
                deadline=deadline,
                procesal_deadlines=procesal,
                semaphore=color_for(deadline, now, INITIAL_STATUS),
                high_risk_alert=draft.high_risk_alert,
                high_risk_reason=draft.high_risk_reason,
                assigned_student_id=student_id,
                assigned_student_name=student_name,
                assigned_professor_id=professor_id,
                assigned_professor_name=professor_name,
                audit_log=[
                    self._audit(identity, now, "case_created", f"Radicado {draft.radicado.strip()}")
                ],
                created_at=now,
                updated_at=now,
            )

            saved = self.cases.add(case)
        except Exception as e:
            raise self._handle_exception(e, "create_case")

        self._log_info(
            "Case created",
            case_id=saved.id,
            action="create_case",
            radicado=saved.radicado,
            student_id=saved.assigned_student_id,
            professor_id=saved.assigned_professor_id,
        )
        return saved

    def change_status(
        self,
        identity: Identity,
        case_id: str,
        to: Union[CaseStatus, str],
    ) -> LegalCase:
        """
        Mueve el caso a `to` si la arista existe y el rol puede recorrerla.

        Pedir el estado actual es un éxito sin efectos: no añade bitácora
        ni persiste, pero exige poder ver el caso.

        Raises:
            CaseNotFoundException, ForbiddenException,
            InvalidTransitionException, ConflictException
        """
        to_status = self._parse_status(to)
        case = self._load(case_id)

        if case.status == to_status:
            self._require(identity, ViewCase(), case)
            self._log_info(
                "Status unchanged",
                case_id=case.id,
                action="change_status",
                status=to_status.value,
            )
            return refresh_semaphore(case, self.clock())

        action = ChangeStatus(from_status=case.status, to_status=to_status)
        decision = authorize(identity, action, case)
        if not decision.allowed:
            if decision.reason == DenyReason.TRANSITION_NOT_ALLOWED:
                self._log_warning(
                    "Transition not allowed",
                    case_id=case.id,
                    action="change_status",
                    from_status=case.status.value,
                    to_status=to_status.value,
                )
                raise InvalidTransitionException(case.status.value, to_status.value)
            self._deny(identity, action, decision.reason, case.id)

        try:
            updated = apply_transition(case, to_status, identity, self.clock())
            saved = self.cases.save(updated, expected_version=case.version)
        except Exception as e:
            raise self._handle_exception(e, "change_status", case.id)

        self._log_info(
            "Status changed",
            case_id=saved.id,
            action="change_status",
            from_status=case.status.value,
            to_status=to_status.value,
            user_id=identity.user_id,
        )

        transition = get_transition(case.status, to_status)
        if transition.notify_professor:
            self._notify_review(saved, identity)

        return saved

    def reassign_student(
        self,
        identity: Identity,
        case_id: str,
        new_student_id: str,
        reason: Optional[str] = None,
    ) -> LegalCase:
        case = self._load(case_id)
        self._require(identity, ReassignStudent(), case)
        self._reject_terminal(case, "reassign_student")

        if new_student_id == case.assigned_student_id:
            raise ValidationException(
                "El estudiante ya está asignado al caso", field="new_student_id"
            )

        student_name = None
        if self.users is not None:
            student = self.users.get(new_student_id)
            if student is None or student.role != Role.ESTUDIANTE.value or not student.is_active:
                raise ValidationException(
                    f"Estudiante no válido: {new_student_id}", field="new_student_id"
                )
            student_name = student.name

        now = self.clock()
        substitution = SubstitutionEntry(
            from_student_id=case.assigned_student_id,
            to_student_id=new_student_id,
            date=now,
            reason=reason,
            by=identity.display_name,
        )
        entry = self._audit(
            identity,
            now,
            "student_reassigned",
            f"{case.assigned_student_id or '-'} -> {new_student_id}",
        )

        updated = case.model_copy(
            update={
                "assigned_student_id": new_student_id,
                "assigned_student_name": student_name,
                "substitution_history": [*case.substitution_history, substitution],
                "audit_log": [*case.audit_log, entry],
                "semaphore": color_for(case.deadline, now, case.status),
                "updated_at": now,
            }
        )

        saved = self._persist(updated, case, "reassign_student")
        self._log_info(
            "Student reassigned",
            case_id=saved.id,
            action="reassign_student",
            from_student_id=case.assigned_student_id,
            to_student_id=new_student_id,
        )
        return saved

    def add_procesal_deadline(
        self,
        identity: Identity,
        case_id: str,
        entry: ProcesalDeadlineRequest,
    ) -> LegalCase:
        """
        Añade un término procesal manteniendo el orden por fecha.

        Un término anterior al vencimiento del caso lo adelanta.
        """
        case = self._load(case_id)
        self._require(identity, AddProcesalDeadline(), case)
        self._reject_terminal(case, "add_procesal_deadline")

        description = entry.description.strip()
        if not description:
            raise ValidationException("La descripción es obligatoria", field="description")

        now = self.clock()
        procesal = sorted(
            [*case.procesal_deadlines, ProcesalDeadline(date=entry.date, description=description)],
            key=lambda d: d.date,
        )

        deadline = case.deadline
        if deadline is None or entry.date < deadline:
            deadline = entry.date

        audit = self._audit(
            identity,
            now,
            "procesal_deadline_added",
            f"{entry.date.isoformat()}: {description}",
        )

        updated = case.model_copy(
            update={
                "procesal_deadlines": procesal,
                "deadline": deadline,
                "semaphore": color_for(deadline, now, case.status),
                "audit_log": [*case.audit_log, audit],
                "updated_at": now,
            }
        )

        saved = self._persist(updated, case, "add_procesal_deadline")
        self._log_info(
            "Procesal deadline added",
            case_id=saved.id,
            action="add_procesal_deadline",
            deadline=str(saved.deadline),
        )
        return saved

    def edit_case(
        self,
        identity: Identity,
        case_id: str,
        changes: UpdateCaseRequest,
    ) -> LegalCase:
        case = self._load(case_id)
        self._require(identity, EditCase(), case)
        self._reject_terminal(case, "edit_case")

        fields = changes.model_dump(exclude_none=True)
        if not fields:
            raise ValidationException("No hay cambios que aplicar")

        now = self.clock()
        update = {k: v for k, v in fields.items() if k != "add_hours"}
        if "add_hours" in fields:
            update["hours_spent"] = case.hours_spent + fields["add_hours"]

        audit = self._audit(identity, now, "case_edited", ", ".join(sorted(fields)))
        update.update(
            {
                "audit_log": [*case.audit_log, audit],
                "semaphore": color_for(case.deadline, now, case.status),
                "updated_at": now,
            }
        )

        saved = self._persist(case.model_copy(update=update), case, "edit_case")
        self._log_info("Case edited", case_id=saved.id, action="edit_case", fields=sorted(fields))
        return saved

    # =========================================================
    # INTERNOS
    # =========================================================

    def _load(self, case_id: str) -> LegalCase:
        case = self.cases.get(case_id)
        if case is None:
            self._log_warning("Case not found", case_id=case_id, action="load_case")
            raise CaseNotFoundException(case_id)
        return case

    def _require(self, identity: Identity, action: Action, case: Optional[LegalCase] = None) -> None:
        decision = authorize(identity, action, case)
        if not decision.allowed:
            self._deny(identity, action, decision.reason, case.id if case else None)

    def _deny(
        self,
        identity: Identity,
        action: Action,
        reason: DenyReason,
        case_id: Optional[str],
    ) -> None:
        self._log_warning(
            "Action denied",
            case_id=case_id,
            action=action.name,
            reason=reason.value,
            user_id=identity.user_id,
            role=identity.role.value,
        )
        raise ForbiddenException(reason=reason.value, action=action.name, case_id=case_id)

    def _reject_terminal(self, case: LegalCase, context: str) -> None:
        if case.is_terminal:
            self._log_warning(
                "Case is in a terminal status",
                case_id=case.id,
                action=context,
                status=case.status.value,
            )
            raise InvalidTransitionException(
                case.status.value,
                case.status.value,
                message=f"El caso está en estado terminal: {case.status.value}",
            )

    def _persist(self, updated: LegalCase, original: LegalCase, context: str) -> LegalCase:
        try:
            return self.cases.save(updated, expected_version=original.version)
        except Exception as e:
            raise self._handle_exception(e, context, original.id)

    def _notify_review(self, case: LegalCase, identity: Identity) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.notify_review_requested(case, identity)
        except Exception as e:
            # El caso ya está persistido; el aviso no revierte la transición.
            self._log_error(
                "Professor notification failed",
                error=e,
                case_id=case.id,
                action="notify_professor",
            )

    def _validate_draft(self, draft: CreateCaseRequest) -> None:
        for field in REQUIRED_DRAFT_FIELDS:
            if not getattr(draft, field).strip():
                raise ValidationException(f"Campo obligatorio vacío: {field}", field=field)

        if draft.numero_proceso is not None and not NUMERO_PROCESO_RE.match(draft.numero_proceso):
            raise ValidationException(
                "El número de proceso debe tener 23 dígitos", field="numero_proceso"
            )

        for entry in draft.procesal_deadlines or []:
            if not entry.description.strip():
                raise ValidationException(
                    "La descripción del término es obligatoria", field="procesal_deadlines"
                )

    def _resolve_owner(self, identity: Identity, draft: CreateCaseRequest):
        if identity.role == Role.ESTUDIANTE:
            return identity.user_id, identity.display_name

        if not draft.assigned_student_id:
            return None, None

        if self.users is None:
            return draft.assigned_student_id, None

        student = self.users.get(draft.assigned_student_id)
        if student is None or student.role != Role.ESTUDIANTE.value:
            raise ValidationException(
                f"Estudiante no válido: {draft.assigned_student_id}",
                field="assigned_student_id",
            )
        return student.id, student.name

    def _resolve_professor(self, area: str):
        if self.users is None:
            return None, None
        professor = self.users.find_professor_for_area(area.strip())
        if professor is None:
            self._log_warning("No professor for area", action="create_case", area=area)
            return None, None
        return professor.id, professor.name

    @staticmethod
    def _parse_status(value: Union[CaseStatus, str]) -> CaseStatus:
        try:
            return CaseStatus(value)
        except ValueError:
            raise ValidationException(f"Estado desconocido: {value}", field="to")

    @staticmethod
    def _audit(identity: Identity, now: datetime, action: str, detail: str) -> AuditEntry:
        return AuditEntry(
            date=now,
            action=action,
            user=identity.display_name,
            user_id=identity.user_id,
            role=identity.role.value,
            detail=detail,
        )
