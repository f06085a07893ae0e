"""
Tests del Workflow Service sobre repositorios SQLAlchemy en memoria.
"""
from datetime import date, datetime
from unittest.mock import Mock

import pytest

from sicop.core.exceptions import (
    CaseNotFoundException,
    ConflictException,
    DuplicateCaseException,
    ForbiddenException,
    InvalidTransitionException,
    SicopException,
    ValidationException,
)
from sicop.models.legal_case import (
    CaseStatus,
    CreateCaseRequest,
    ProcesalDeadlineRequest,
    SemaphoreColor,
    UpdateCaseRequest,
)
from sicop.services.notifications import ProfessorNotifier
from sicop.services.repository import SqlAlchemyCaseRepository, SqlAlchemyUserRepository
from sicop.services.workflow import WorkflowService

S = CaseStatus
NOW = datetime(2024, 3, 1, 9, 0)


@pytest.fixture
def notifier():
    return Mock(spec=ProfessorNotifier)


@pytest.fixture
def cases_repo(db_session):
    return SqlAlchemyCaseRepository(db_session)


@pytest.fixture
def service(db_session, users, cases_repo, notifier):
    return WorkflowService(
        cases=cases_repo,
        users=SqlAlchemyUserRepository(db_session),
        notifier=notifier,
        clock=lambda: NOW,
    )


def draft(**overrides) -> CreateCaseRequest:
    data = {
        "radicado": "2024-0001",
        "client_name": "Pedro Ramírez",
        "client_doc": "1020304050",
        "type": "Tutela",
        "area": "Civil",
        "description": "Vulneración del derecho a la salud",
    }
    data.update(overrides)
    return CreateCaseRequest(**data)


@pytest.fixture
def created(service, student):
    return service.create_case(student, draft())


def _move(service, case_id, *steps):
    case = None
    for identity, to in steps:
        case = service.change_status(identity, case_id, to)
    return case


class TestCreateCase:

    def test_student_creates_owned_case(self, service, student):
        """Test: El estudiante queda como responsable y el caso empieza en Evaluacion."""
        case = service.create_case(student, draft())

        assert case.status == S.EVALUACION
        assert case.assigned_student_id == "est-1"
        assert case.assigned_student_name == "Laura Gómez"
        assert case.version == 1
        assert [e.action for e in case.audit_log] == ["case_created"]
        assert case.audit_log[0].user_id == "est-1"

    def test_professor_of_area_is_assigned(self, service, student):
        case = service.create_case(student, draft())

        assert case.assigned_professor_id == "prof-civil"
        assert case.assigned_professor_name == "Marta Rincón"

    def test_area_without_professor(self, service, student):
        case = service.create_case(student, draft(area="Penal"))

        assert case.assigned_professor_id is None

    def test_terms_computed_from_type(self, service, student):
        """Test: Sin términos explícitos se calculan desde la notificación."""
        case = service.create_case(student, draft(fecha_notificacion=date(2024, 2, 28)))

        assert len(case.procesal_deadlines) == 6
        assert case.deadline == date(2024, 3, 1)
        assert case.semaphore == SemaphoreColor.RED

    def test_explicit_deadline_wins(self, service, student):
        case = service.create_case(
            student,
            draft(
                deadline=date(2024, 4, 30),
                procesal_deadlines=[
                    ProcesalDeadlineRequest(date=date(2024, 3, 20), description="Audiencia"),
                    ProcesalDeadlineRequest(date=date(2024, 3, 5), description="Contestación"),
                ],
            ),
        )

        assert case.deadline == date(2024, 4, 30)
        assert [d.description for d in case.procesal_deadlines] == ["Contestación", "Audiencia"]
        assert case.semaphore == SemaphoreColor.GREEN

    def test_admin_assigns_student(self, service, admin):
        case = service.create_case(admin, draft(assigned_student_id="est-2"))

        assert case.assigned_student_id == "est-2"
        assert case.assigned_student_name == "Andrés Pérez"

    def test_admin_assigns_non_student(self, service, admin):
        with pytest.raises(ValidationException):
            service.create_case(admin, draft(assigned_student_id="prof-civil"))

    def test_professor_cannot_create(self, service, professor):
        with pytest.raises(ForbiddenException) as exc:
            service.create_case(professor, draft())

        assert exc.value.reason == "RoleNotPermitted"

    def test_blank_required_field(self, service, student):
        with pytest.raises(ValidationException) as exc:
            service.create_case(student, draft(client_name="   "))

        assert exc.value.details["field"] == "client_name"

    @pytest.mark.parametrize("numero", ["123", "1100131030012024001230A", "1" * 24])
    def test_numero_proceso_must_have_23_digits(self, service, student, numero):
        with pytest.raises(ValidationException):
            service.create_case(student, draft(numero_proceso=numero))

    def test_valid_numero_proceso(self, service, student):
        case = service.create_case(student, draft(numero_proceso="11001310300120240012300"))

        assert case.numero_proceso == "11001310300120240012300"

    def test_duplicate_radicado(self, service, student):
        service.create_case(student, draft())

        with pytest.raises(DuplicateCaseException):
            service.create_case(student, draft())


class TestReads:

    def test_get_case_refreshes_semaphore(self, db_session, users, cases_repo, student):
        """Test: El semáforo se recalcula con la fecha de lectura."""
        creator = WorkflowService(cases=cases_repo, clock=lambda: datetime(2024, 1, 1))
        case = creator.create_case(student, draft(deadline=date(2024, 3, 2)))
        assert case.semaphore == SemaphoreColor.GREEN

        reader = WorkflowService(cases=cases_repo, clock=lambda: NOW)

        assert reader.get_case(student, case.id).semaphore == SemaphoreColor.RED

    def test_get_missing_case(self, service, admin):
        with pytest.raises(CaseNotFoundException):
            service.get_case(admin, "missing")

    def test_non_owner_cannot_view(self, service, created, other_student):
        with pytest.raises(ForbiddenException) as exc:
            service.get_case(other_student, created.id)

        assert exc.value.reason == "NotOwner"

    def test_professor_other_area(self, service, created, other_professor):
        with pytest.raises(ForbiddenException) as exc:
            service.get_case(other_professor, created.id)

        assert exc.value.reason == "WrongArea"

    def test_list_by_role(self, service, student, other_student, admin, professor, other_professor):
        service.create_case(student, draft(radicado="A"))
        service.create_case(other_student, draft(radicado="B"))
        service.create_case(admin, draft(radicado="C", area="Laboral"))

        assert {c.radicado for c in service.list_cases(student)} == {"A"}
        assert {c.radicado for c in service.list_cases(professor)} == {"A", "B"}
        assert {c.radicado for c in service.list_cases(other_professor)} == {"C"}
        assert {c.radicado for c in service.list_cases(admin)} == {"A", "B", "C"}

    def test_list_filtered_by_status(self, service, student, admin):
        case = service.create_case(student, draft(radicado="A"))
        service.create_case(student, draft(radicado="B"))
        service.change_status(student, case.id, S.SUSTANCIACION)

        result = service.list_cases(admin, status=S.SUSTANCIACION)

        assert [c.radicado for c in result] == ["A"]


class TestChangeStatus:

    def test_happy_path_to_closed(self, service, created, student, professor, admin):
        """Test: Recorrido completo hasta Cerrado con una entrada por transición."""
        case = _move(
            service,
            created.id,
            (student, S.SUSTANCIACION),
            (student, S.REVISION_DEL_PROFESOR),
            (professor, S.APROBADO),
            (professor, S.SEGUIMIENTO),
            (admin, S.CERRADO),
        )

        assert case.status == S.CERRADO
        assert case.semaphore == SemaphoreColor.GREEN
        assert [e.action for e in case.audit_log] == [
            "case_created",
            "status_changed",
            "submitted_for_review",
            "case_approved",
            "status_changed",
            "case_closed",
        ]
        assert case.version == 6

    def test_return_for_correction(self, service, created, student, professor):
        case = _move(
            service,
            created.id,
            (student, S.SUSTANCIACION),
            (student, S.REVISION_DEL_PROFESOR),
            (professor, S.SUSTANCIACION),
        )

        assert case.status == S.SUSTANCIACION
        assert case.audit_log[-1].action == "returned_for_correction"

    def test_submit_notifies_professor(self, service, created, student, notifier):
        _move(service, created.id, (student, S.SUSTANCIACION))
        notifier.notify_review_requested.assert_not_called()

        case = service.change_status(student, created.id, S.REVISION_DEL_PROFESOR)

        notifier.notify_review_requested.assert_called_once_with(case, student)

    def test_notification_failure_keeps_transition(self, service, created, student, notifier):
        notifier.notify_review_requested.side_effect = RuntimeError("smtp down")
        _move(service, created.id, (student, S.SUSTANCIACION))

        case = service.change_status(student, created.id, S.REVISION_DEL_PROFESOR)

        assert case.status == S.REVISION_DEL_PROFESOR
        assert service.get_case(student, created.id).status == S.REVISION_DEL_PROFESOR

    def test_student_cannot_approve(self, service, created, student):
        _move(service, created.id, (student, S.SUSTANCIACION), (student, S.REVISION_DEL_PROFESOR))

        with pytest.raises(ForbiddenException) as exc:
            service.change_status(student, created.id, S.APROBADO)

        assert exc.value.reason == "RoleNotPermitted"

    def test_edge_not_in_table(self, service, created, admin):
        """Test: Evaluacion → Aprobado no existe ni para el administrativo."""
        with pytest.raises(InvalidTransitionException):
            service.change_status(admin, created.id, S.APROBADO)

        stored = service.get_case(admin, created.id)
        assert stored.status == S.EVALUACION
        assert len(stored.audit_log) == 1
        assert stored.version == 1

    def test_terminal_case_cannot_move(self, service, created, professor, admin):
        service.change_status(professor, created.id, S.RECHAZADO)

        with pytest.raises(InvalidTransitionException):
            service.change_status(admin, created.id, S.EVALUACION)

    def test_same_status_is_noop(self, service, created, student):
        """Test: Pedir el estado actual no añade bitácora ni persiste."""
        case = service.change_status(student, created.id, S.EVALUACION)

        assert case.status == S.EVALUACION
        assert len(case.audit_log) == 1
        assert service.get_case(student, created.id).version == 1

    def test_same_status_requires_view(self, service, created, other_student):
        with pytest.raises(ForbiddenException):
            service.change_status(other_student, created.id, S.EVALUACION)

    def test_unknown_status_string(self, service, created, student):
        with pytest.raises(ValidationException):
            service.change_status(student, created.id, "Archivado")

    def test_accepts_status_value_string(self, service, created, student):
        assert service.change_status(student, created.id, "Sustanciacion").status == S.SUSTANCIACION

    def test_admin_override_on_student_edge(self, service, created, admin):
        case = service.change_status(admin, created.id, S.SUSTANCIACION)

        assert case.status == S.SUSTANCIACION
        assert case.audit_log[-1].role == "administrativo"

    def test_concurrent_writers_one_wins(self, db_session, users, cases_repo, created, student, professor):
        """Test: Dos servicios leen la misma versión; el segundo recibe ConflictException."""
        _move(
            WorkflowService(cases=cases_repo, clock=lambda: NOW),
            created.id,
            (student, S.SUSTANCIACION),
        )
        stale = cases_repo.get(created.id)

        stale_repo = Mock(wraps=cases_repo)
        stale_repo.get.return_value = stale
        first = WorkflowService(cases=cases_repo, clock=lambda: NOW)
        second = WorkflowService(cases=stale_repo, clock=lambda: NOW)

        first.change_status(student, created.id, S.REVISION_DEL_PROFESOR)

        with pytest.raises(ConflictException):
            second.change_status(professor, created.id, S.RECHAZADO)

        stored = cases_repo.get(created.id)
        assert stored.status == S.REVISION_DEL_PROFESOR
        assert [e.action for e in stored.audit_log].count("case_rejected") == 0

    def test_unexpected_storage_error_is_wrapped(self, created, student):
        broken = Mock()
        broken.get.return_value = created
        broken.save.side_effect = RuntimeError("disk full")
        service = WorkflowService(cases=broken, clock=lambda: NOW)

        with pytest.raises(SicopException) as exc:
            service.change_status(student, created.id, S.SUSTANCIACION)

        assert exc.value.code == "INTERNAL_ERROR"


class TestReassignStudent:

    def test_admin_reassigns(self, service, created, admin):
        case = service.reassign_student(admin, created.id, "est-2", reason="Cambio de semestre")

        assert case.assigned_student_id == "est-2"
        assert case.assigned_student_name == "Andrés Pérez"
        assert len(case.substitution_history) == 1
        entry = case.substitution_history[0]
        assert (entry.from_student_id, entry.to_student_id) == ("est-1", "est-2")
        assert entry.reason == "Cambio de semestre"
        assert case.audit_log[-1].action == "student_reassigned"

    def test_new_owner_gains_access(self, service, created, admin, student, other_student):
        service.reassign_student(admin, created.id, "est-2")

        assert service.get_case(other_student, created.id).id == created.id
        with pytest.raises(ForbiddenException):
            service.get_case(student, created.id)

    @pytest.mark.parametrize("target", ["est-1", "prof-civil", "est-3", "nobody"])
    def test_invalid_target(self, service, created, admin, target):
        with pytest.raises(ValidationException):
            service.reassign_student(admin, created.id, target)

    def test_only_admin(self, service, created, professor):
        with pytest.raises(ForbiddenException):
            service.reassign_student(professor, created.id, "est-2")

    def test_terminal_case(self, service, created, admin):
        service.change_status(admin, created.id, S.RECHAZADO)

        with pytest.raises(InvalidTransitionException):
            service.reassign_student(admin, created.id, "est-2")


class TestProcesalDeadlines:

    def test_earlier_deadline_pulls_case_deadline(self, service, student):
        case = service.create_case(student, draft(deadline=date(2024, 4, 30), procesal_deadlines=[]))

        updated = service.add_procesal_deadline(
            student,
            case.id,
            ProcesalDeadlineRequest(date=date(2024, 3, 2), description="Impugnación"),
        )

        assert updated.deadline == date(2024, 3, 2)
        assert updated.semaphore == SemaphoreColor.RED
        assert updated.procesal_deadlines[-1].description == "Impugnación"
        assert updated.audit_log[-1].action == "procesal_deadline_added"

    def test_later_deadline_keeps_case_deadline(self, service, student):
        case = service.create_case(student, draft(deadline=date(2024, 3, 20), procesal_deadlines=[]))

        updated = service.add_procesal_deadline(
            student,
            case.id,
            ProcesalDeadlineRequest(date=date(2024, 5, 1), description="Alegatos"),
        )

        assert updated.deadline == date(2024, 3, 20)

    def test_deadlines_stay_sorted(self, service, created, student):
        updated = service.add_procesal_deadline(
            student,
            created.id,
            ProcesalDeadlineRequest(date=date(2024, 3, 2), description="Medida provisional"),
        )

        dates = [d.date for d in updated.procesal_deadlines]
        assert dates == sorted(dates)

    def test_professor_cannot_add(self, service, created, professor):
        with pytest.raises(ForbiddenException):
            service.add_procesal_deadline(
                professor,
                created.id,
                ProcesalDeadlineRequest(date=date(2024, 3, 2), description="Audiencia"),
            )

    def test_terminal_case(self, service, created, professor, student):
        service.change_status(professor, created.id, S.RECHAZADO)

        with pytest.raises(InvalidTransitionException):
            service.add_procesal_deadline(
                student,
                created.id,
                ProcesalDeadlineRequest(date=date(2024, 3, 2), description="Audiencia"),
            )


class TestEditCase:

    def test_edit_and_add_hours(self, service, created, student):
        service.edit_case(student, created.id, UpdateCaseRequest(add_hours=1.5))
        case = service.edit_case(
            student,
            created.id,
            UpdateCaseRequest(interview_notes="Cliente aporta historia clínica", add_hours=2),
        )

        assert case.hours_spent == 3.5
        assert case.interview_notes == "Cliente aporta historia clínica"
        assert case.audit_log[-1].action == "case_edited"
        assert case.audit_log[-1].detail == "add_hours, interview_notes"

    def test_empty_changes(self, service, created, student):
        with pytest.raises(ValidationException):
            service.edit_case(student, created.id, UpdateCaseRequest())

    def test_non_owner(self, service, created, other_student):
        with pytest.raises(ForbiddenException):
            service.edit_case(other_student, created.id, UpdateCaseRequest(description="x"))

    def test_terminal_case(self, service, created, professor, admin):
        service.change_status(professor, created.id, S.RECHAZADO)

        with pytest.raises(InvalidTransitionException):
            service.edit_case(admin, created.id, UpdateCaseRequest(description="x"))


def test_default_clock_is_clinic_local_time(cases_repo):
    """Test: Sin reloj inyectado, la hora es la local del consultorio (naive)."""
    now = WorkflowService(cases=cases_repo).clock()

    assert now.tzinfo is None
