"""
Términos procesales estándar por tipo de proceso.

Cada término vence `dias` después del anterior; el primero cuenta
desde la fecha de notificación (o desde hoy si no se conoce).
"""
from datetime import date, timedelta
from typing import Dict, List, Tuple

from sicop.models.legal_case import ProcesalDeadline

DEFAULT_CASE_TYPE = "Demanda"

PROCESAL_TERMS: Dict[str, List[Tuple[str, int]]] = {
    "Tutela": [
        ("Notificación al demandado", 2),
        ("Admisorio o rechazo", 10),
        ("Trámite al juez de conocimiento", 2),
        ("Decisión de tutela", 10),
        ("Notificación del fallo", 1),
        ("Cumplimiento", 48),
    ],
    "Accion_de_tutela": [
        ("Notificación al demandado", 2),
        ("Admisorio o rechazo", 10),
        ("Decisión de tutela", 10),
        ("Notificación del fallo", 1),
    ],
    "Demanda": [
        ("Admisión de la demanda", 30),
        ("Notificación al demandado", 20),
        ("Contestación de demanda", 30),
        ("Audiencia de conciliación", 30),
        ("Alegatos de cierre", 10),
        ("Sentencia de primera instancia", 30),
    ],
    "Ordinario": [
        ("Admisión de la demanda", 30),
        ("Notificación al demandado", 20),
        ("Contestación de demanda", 30),
        ("Audiencia inicial", 30),
        ("Práctica de pruebas", 60),
        ("Alegatos", 10),
        ("Sentencia", 30),
    ],
    "Verbal": [
        ("Admisión de la demanda", 20),
        ("Notificación", 10),
        ("Audiencia de conciliación", 30),
        ("Sentencia", 10),
    ],
    "Proceso_sumario": [
        ("Admisión", 15),
        ("Notificación", 10),
        ("Contestación", 15),
        ("Sentencia", 20),
    ],
    "Derecho_de_peticion": [
        ("Respuesta a la petición", 15),
        ("Silencio administrativo positivo", 30),
    ],
    "Consulta": [
        ("Atención de consulta", 30),
        ("Respuesta", 10),
    ],
}


def terms_for(case_type: str) -> List[Tuple[str, int]]:
    """Plantilla de términos del tipo; los tipos desconocidos usan la de Demanda."""
    key = case_type.strip().replace(" ", "_")
    return PROCESAL_TERMS.get(key, PROCESAL_TERMS[DEFAULT_CASE_TYPE])


def compute_procesal_deadlines(case_type: str, start: date) -> List[ProcesalDeadline]:
    deadlines = []
    current = start

    for name, days in terms_for(case_type):
        current = current + timedelta(days=days)
        deadlines.append(ProcesalDeadline(date=current, description=name, days=days))

    return deadlines
