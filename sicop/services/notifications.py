"""
Aviso al profesor revisor cuando un caso pasa a revisión.

Envío vía SMTP con STARTTLS. Sin SMTP configurado el aviso se omite
y queda solo en el log.
"""
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage
from typing import Optional

from sicop.core.config import Settings, get_settings
from sicop.core.logger import StructuredLogger, get_logger
from sicop.models.identity import Identity
from sicop.models.legal_case import LegalCase
from sicop.services.repository import UserRepository


class EmailSendError(RuntimeError):
    pass


class ProfessorNotifier(ABC):
    """Canal de aviso al profesor asignado a un caso."""

    @abstractmethod
    def notify_review_requested(self, case: LegalCase, requested_by: Identity) -> None:
        ...


def send_email(
    *,
    to_email: str,
    subject: str,
    body_text: str,
    config: Optional[Settings] = None,
) -> None:
    config = config or get_settings()

    if not config.smtp_host or not config.smtp_port:
        raise EmailSendError("SMTP_HOST/SMTP_PORT no configurados")
    if not config.smtp_user or not config.smtp_password:
        raise EmailSendError("SMTP_USER/SMTP_PASSWORD no configurados")
    if not config.mail_from:
        raise EmailSendError("MAIL_FROM no configurado")

    msg = EmailMessage()
    msg["From"] = config.mail_from
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body_text)

    try:
        with smtplib.SMTP(config.smtp_host, config.smtp_port, timeout=30) as smtp:
            if config.smtp_use_tls:
                smtp.starttls()
            smtp.login(config.smtp_user, config.smtp_password)
            smtp.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        raise EmailSendError(f"Fallo enviando email SMTP: {e}")


class EmailProfessorNotifier(ProfessorNotifier):

    def __init__(
        self,
        users: UserRepository,
        config: Optional[Settings] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self.users = users
        self.config = config or get_settings()
        self.logger = logger or get_logger()

    def notify_review_requested(self, case: LegalCase, requested_by: Identity) -> None:
        if not case.assigned_professor_id:
            self.logger.warning(
                "Case has no reviewing professor",
                case_id=case.id,
                action="notify_professor",
            )
            return

        professor = self.users.get(case.assigned_professor_id)
        if professor is None:
            self.logger.warning(
                "Reviewing professor not found",
                case_id=case.id,
                action="notify_professor",
                professor_id=case.assigned_professor_id,
            )
            return

        if not self.config.smtp_configured:
            self.logger.info(
                "SMTP not configured, notification skipped",
                case_id=case.id,
                action="notify_professor",
                professor_id=professor.id,
            )
            return

        send_email(
            to_email=professor.email,
            subject=f"[SICOP] Caso {case.radicado} enviado a revisión",
            body_text=(
                f"Hola {professor.name},\n\n"
                f"{requested_by.display_name} envió a revisión el caso {case.radicado} "
                f"({case.type}, área {case.area}).\n"
                f"Cliente: {case.client_name}\n"
                f"Vencimiento: {case.deadline.isoformat() if case.deadline else 'sin definir'}\n"
            ),
            config=self.config,
        )

        self.logger.info(
            "Review notification sent",
            case_id=case.id,
            action="notify_professor",
            professor_id=professor.id,
        )
