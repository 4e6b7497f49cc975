"""Identity and profile schemas for request/response validation."""

from datetime import date
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class UserRole(str, Enum):
    """Role assigned to a user; set at most once from UNASSIGNED."""

    UNASSIGNED = "sin_asignar"
    PHYSICIAN = "Medico"
    PATIENT = "Paciente"


class ResolvedUser(BaseModel):
    """Internal identity resolved from an Auth0 subject."""

    id_usuario: int
    auth0_id: str
    rol: UserRole
    email: str | None = None

    model_config = ConfigDict(from_attributes=True)


class PhysicianData(BaseModel):
    """Physician registration payload."""

    nombre: str = Field(..., min_length=1, max_length=100)
    apellido: str = Field(..., min_length=1, max_length=100)
    especialidad: str | None = Field(None, max_length=150)
    cedula_profesional: str | None = Field(None, max_length=50)
    telefono: str | None = Field(None, max_length=20)
    email: EmailStr | None = None


class PatientData(BaseModel):
    """Patient registration payload."""

    nombre: str = Field(..., min_length=1, max_length=100)
    apellido: str = Field(..., min_length=1, max_length=100)
    fecha_nacimiento: date | None = None
    sexo: str | None = Field(None, max_length=20)
    telefono: str | None = Field(None, max_length=20)
    email: EmailStr | None = None
    direccion: str | None = None


class ProfileRegisterRequest(BaseModel):
    """Body of the profile registration endpoint."""

    rol: str
    data: dict[str, Any] = Field(default_factory=dict)


class ProfileRegisterResponse(BaseModel):
    """Result of a successful profile registration."""

    message: str
    role: UserRole


class ProfileResponse(BaseModel):
    """Current user's role plus the role-specific profile fields."""

    role: UserRole
    auth0Id: str
    id_usuario: int

    # Role-specific columns (id_medico, nombre, ...) are passed through
    model_config = ConfigDict(extra="allow")
