"""
Configuración centralizada de SICOP con Pydantic Settings.

Todas las variables se pueden sobrescribir con variables de entorno
o con un archivo `.env` en la raíz del proyecto.
"""
from pathlib import Path
from typing import Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "change_this_secret_key_in_production"


class Settings(BaseSettings):
    """
    Configuración global del núcleo de SICOP.
    """

    # =========================================================
    # ENTORNO
    # =========================================================

    environment: Literal["development", "test", "staging", "production"] = Field(
        default="development", description="Entorno de ejecución"
    )

    debug: bool = Field(default=False, description="Modo debug (solo para development)")

    app_name: str = Field(default="SICOP")

    app_version: str = Field(default="1.0.0")

    # =========================================================
    # DATABASE
    # =========================================================

    database_url: str = Field(
        default="sqlite:///./sicop.db",
        description="URL de conexión a base de datos",
    )

    auto_create_tables: bool = Field(
        default=True, description="Crear tablas al arrancar la API si no existen"
    )

    # =========================================================
    # CONSULTORIO
    # =========================================================

    clinic_timezone: str = Field(
        default="America/Bogota",
        description="Zona horaria que define el \"hoy\" del semáforo y de la bitácora",
    )

    # =========================================================
    # SEGURIDAD
    # =========================================================

    jwt_secret_key: str = Field(default=DEFAULT_JWT_SECRET, description="Clave secreta para JWT")

    jwt_algorithm: str = Field(default="HS256")

    jwt_access_token_expire_minutes: int = Field(default=480, ge=1, le=1440)

    rate_limit_enabled: bool = Field(default=True, description="Habilitar rate limiting")

    rate_limit_login_per_minute: int = Field(
        default=20, ge=1, le=1000, description="Intentos de login por minuto y cliente"
    )

    # =========================================================
    # EMAIL (SMTP) - notificaciones a profesores
    # =========================================================

    smtp_host: Optional[str] = Field(default=None)
    smtp_port: Optional[int] = Field(default=None)
    smtp_user: Optional[str] = Field(default=None)
    smtp_password: Optional[str] = Field(default=None)
    smtp_use_tls: bool = Field(default=True)
    mail_from: Optional[str] = Field(default=None)

    # =========================================================
    # OBSERVABILIDAD
    # =========================================================

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    log_file: Optional[Path] = Field(
        default=None, description="Archivo de log JSON (solo consola si no se define)"
    )

    # =========================================================
    # VALIDACIONES
    # =========================================================

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Valida formato de URL de base de datos."""
        if not v.startswith(("sqlite://", "postgresql://", "postgresql+psycopg2://")):
            raise ValueError(
                "database_url debe empezar con sqlite://, postgresql:// o postgresql+psycopg2://"
            )
        return v

    @field_validator("clinic_timezone")
    @classmethod
    def validate_clinic_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Zona horaria desconocida: {v}")
        return v

    @model_validator(mode="after")
    def validate_production(self) -> "Settings":
        """En producción no se admiten secretos por defecto ni debug."""
        if self.is_production:
            if self.jwt_secret_key == DEFAULT_JWT_SECRET:
                raise ValueError("JWT_SECRET_KEY debe ser cambiada en producción")
            if self.debug:
                raise ValueError("DEBUG debe estar deshabilitado en producción")
        return self

    # =========================================================
    # PROPIEDADES COMPUTADAS
    # =========================================================

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def smtp_configured(self) -> bool:
        """Verifica si hay configuración suficiente para enviar emails."""
        return bool(
            self.smtp_host and self.smtp_port and self.smtp_user and self.smtp_password and self.mail_from
        )

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_assignment=True,
        extra="ignore",
    )


# =========================================================
# INSTANCIA GLOBAL (SINGLETON)
# =========================================================

_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Obtiene la instancia global de configuración (singleton).
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Recarga la configuración (útil para tests).
    """
    global _settings
    _settings = None
    return get_settings()


settings = get_settings()
