"""
Identidad autenticada de una petición.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Roles de la clínica jurídica."""

    ESTUDIANTE = "estudiante"
    PROFESOR = "profesor"
    ADMINISTRATIVO = "administrativo"


class Identity(BaseModel):
    """
    Identidad extraída de un token válido.

    Inmutable durante toda la petición; nunca se persiste.
    """

    user_id: str = Field(..., min_length=1)
    role: Role
    area: Optional[str] = None
    name: str = ""

    model_config = {"frozen": True}

    @property
    def display_name(self) -> str:
        return self.name or self.user_id
