"""
Servicio base para los servicios del núcleo.

Proporciona funcionalidad común:
- Logging estructurado
- Manejo de excepciones
"""
from typing import Optional

from sicop.core.exceptions import SicopException
from sicop.core.logger import StructuredLogger, get_logger


class BaseService:
    """
    Clase base para todos los servicios.

    Los servicios encapsulan la lógica de negocio y orquestan
    operaciones entre la política, la máquina de estados y el
    almacenamiento.
    """

    def __init__(self, logger: Optional[StructuredLogger] = None):
        self.logger = logger or get_logger()

    def _log_info(self, message: str, **kwargs):
        """Log nivel INFO."""
        self.logger.info(message, **kwargs)

    def _log_warning(self, message: str, **kwargs):
        """Log nivel WARNING."""
        self.logger.warning(message, **kwargs)

    def _log_error(self, message: str, error: Optional[Exception] = None, **kwargs):
        """Log nivel ERROR."""
        self.logger.error(message, error=error, **kwargs)

    def _handle_exception(
        self,
        error: Exception,
        context: str,
        case_id: Optional[str] = None,
    ) -> SicopException:
        """
        Maneja una excepción de manera consistente.

        Args:
            error: Excepción original
            context: Operación donde ocurrió
            case_id: ID del caso (si aplica)

        Returns:
            SicopException wrapeada
        """
        if isinstance(error, SicopException):
            self._log_warning(
                f"{error.code} in {context}",
                case_id=case_id,
                action=context,
            )
            return error

        self._log_error(
            f"Unexpected error in {context}",
            error=error,
            case_id=case_id,
            action=context,
        )

        return SicopException(
            code="INTERNAL_ERROR",
            message=f"Error interno en {context}",
            details={"context": context},
            original_error=error,
        )
