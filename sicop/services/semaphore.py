"""
Semáforo de riesgo del expediente.

El color es una función pura de (deadline, hoy, status):
- terminal (Cerrado/Rechazado) → verde
- vence hoy, vencido o a 2 días o menos → rojo
- entre 3 y 7 días → amarillo
- más de 7 días → verde
"""
from datetime import date, datetime, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

from sicop.models.legal_case import TERMINAL_STATUSES, CaseStatus, LegalCase, SemaphoreColor

RED_MAX_DAYS = 2
YELLOW_MAX_DAYS = 7


def clinic_now(tz_name: str, utc_now: Optional[datetime] = None) -> datetime:
    """
    Hora local del consultorio, sin tzinfo.

    El "hoy" del semáforo es la fecha de calendario en `tz_name`, no la UTC.
    """
    moment = utc_now or datetime.now(timezone.utc)
    return moment.astimezone(ZoneInfo(tz_name)).replace(tzinfo=None)


def _as_date(value: Union[date, datetime]) -> date:
    return value.date() if isinstance(value, datetime) else value


def days_until(deadline: Union[date, datetime], now: Union[date, datetime]) -> int:
    """Días naturales entre hoy y el vencimiento (negativo si ya venció)."""
    return (_as_date(deadline) - _as_date(now)).days


def color_for(
    deadline: Optional[Union[date, datetime]],
    now: Union[date, datetime],
    status: CaseStatus,
) -> SemaphoreColor:
    if status in TERMINAL_STATUSES:
        return SemaphoreColor.GREEN
    if deadline is None:
        return SemaphoreColor.GREEN

    remaining = days_until(deadline, now)
    if remaining <= RED_MAX_DAYS:
        return SemaphoreColor.RED
    if remaining <= YELLOW_MAX_DAYS:
        return SemaphoreColor.YELLOW
    return SemaphoreColor.GREEN


def refresh_semaphore(case: LegalCase, now: Union[date, datetime]) -> LegalCase:
    """Copia del caso con el semáforo recalculado para `now`."""
    color = color_for(case.deadline, now, case.status)
    if color == case.semaphore:
        return case
    return case.model_copy(update={"semaphore": color})
