"""
Excepciones estandarizadas de SICOP.

Todas las excepciones del núcleo heredan de SicopException y llevan:
- Código de error único
- Mensaje descriptivo
- Detalles adicionales (dict)
- Severidad
- Código HTTP con el que se expone en la API
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(str, Enum):
    """Niveles de severidad para errores."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SicopException(Exception):
    """
    Excepción base del núcleo de SICOP.
    """

    http_status: int = 500

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        original_error: Optional[Exception] = None,
    ):
        """
        Args:
            code: Código único del error (ej: "CASE_NOT_FOUND")
            message: Mensaje descriptivo para humanos
            details: Detalles adicionales
            severity: Nivel de severidad
            original_error: Excepción original si es un wrap
        """
        self.code = code
        self.message = message
        self.details = details or {}
        self.severity = severity
        self.original_error = original_error

        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convierte la excepción a diccionario (para API/logging)."""
        result = {
            "error_code": self.code,
            "message": self.message,
            "severity": self.severity.value,
            "details": self.details,
        }

        if self.original_error:
            result["original_error"] = {
                "type": type(self.original_error).__name__,
                "message": str(self.original_error),
            }

        return result

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base


# =========================================================
# AUTENTICACIÓN
# =========================================================

class InvalidCredentialException(SicopException):
    """
    Credencial ausente, malformada, con firma inválida o expirada.

    Una credencial ausente se expone como 401; el resto como 403.
    """

    def __init__(self, reason: str = "Token inválido", missing: bool = False, expired: bool = False):
        if missing:
            code = "CREDENTIAL_MISSING"
        elif expired:
            code = "CREDENTIAL_EXPIRED"
        else:
            code = "INVALID_CREDENTIAL"

        super().__init__(
            code=code,
            message=f"Credencial inválida: {reason}",
            details={"reason": reason},
        )
        self.missing = missing
        self.http_status = 401 if missing else 403


class AuthenticationException(SicopException):
    """Login fallido (usuario inexistente, password incorrecto o usuario inactivo)."""

    http_status = 401

    def __init__(self, message: str = "Credenciales incorrectas"):
        super().__init__(code="AUTH_ERROR", message=message)


# =========================================================
# AUTORIZACIÓN
# =========================================================

class ForbiddenException(SicopException):
    """La política de autorización denegó la acción."""

    http_status = 403

    def __init__(self, reason: str, action: str, case_id: Optional[str] = None):
        details = {"reason": reason, "action": action}
        if case_id:
            details["case_id"] = case_id

        super().__init__(
            code="FORBIDDEN",
            message=f"Acción '{action}' denegada: {reason}",
            details=details,
        )
        self.reason = reason


# =========================================================
# RECURSOS
# =========================================================

class CaseNotFoundException(SicopException):
    """Expediente no encontrado."""

    http_status = 404

    def __init__(self, case_id: str):
        super().__init__(
            code="CASE_NOT_FOUND",
            message=f"Caso no encontrado: {case_id}",
            details={"case_id": case_id},
            severity=ErrorSeverity.LOW,
        )


class DuplicateCaseException(SicopException):
    """Ya existe un expediente con el mismo radicado."""

    http_status = 409

    def __init__(self, radicado: str):
        super().__init__(
            code="DUPLICATE_CASE",
            message=f"Ya existe un caso con radicado: {radicado}",
            details={"radicado": radicado},
        )


class DuplicateUserException(SicopException):
    """Ya existe un usuario con el mismo email."""

    http_status = 409

    def __init__(self, email: str):
        super().__init__(
            code="DUPLICATE_USER",
            message=f"Ya existe un usuario con email: {email}",
            details={"email": email},
        )


# =========================================================
# FLUJO DEL CASO
# =========================================================

class InvalidTransitionException(SicopException):
    """Cambio de estado fuera de la tabla de transiciones."""

    http_status = 409

    def __init__(self, from_status: str, to_status: str, message: Optional[str] = None):
        super().__init__(
            code="INVALID_TRANSITION",
            message=message or f"Transición no permitida: {from_status} -> {to_status}",
            details={"from": from_status, "to": to_status},
        )


class ConflictException(SicopException):
    """Otra petición modificó el caso primero; el llamador debe reintentar."""

    http_status = 409

    def __init__(self, case_id: str, expected_version: int):
        super().__init__(
            code="CONFLICT",
            message=f"El caso {case_id} fue modificado por otra petición",
            details={"case_id": case_id, "expected_version": expected_version},
        )


# =========================================================
# VALIDACIÓN
# =========================================================

class ValidationException(SicopException):
    """Error de validación de datos."""

    http_status = 400

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field

        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            details=details,
            severity=ErrorSeverity.LOW,
            **kwargs,
        )
