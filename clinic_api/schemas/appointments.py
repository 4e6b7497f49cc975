"""Appointment schemas for request/response validation."""

from datetime import date, time
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "Agendada"
    CONFIRMED = "Confirmada"
    CANCELLED = "Cancelada"
    COMPLETED = "Completada"


class AppointmentBookRequest(BaseModel):
    """Schema for booking a new appointment."""

    fecha: date
    hora: time
    id_servicio: int = Field(..., gt=0)
    id_medico: int | None = Field(None, gt=0)
    notas: str | None = Field(None, max_length=1000)


class AppointmentBookResponse(BaseModel):
    """Schema for a newly booked appointment."""

    message: str
    id_cita: int
    estado: AppointmentStatus
    id_medico: int | None = None
    warning: str | None = None


class AppointmentActionResponse(BaseModel):
    """Schema for the result of a lifecycle transition."""

    message: str
    id_cita: int
    estado: AppointmentStatus
    warning: str | None = None


class OccupiedSlot(BaseModel):
    """A booked time on a physician's day."""

    hora: time


class AvailabilityResponse(BaseModel):
    """Booked times for one physician and date."""

    horas_ocupadas: list[OccupiedSlot]


class AppointmentDetail(BaseModel):
    """Appointment row joined with service, physician and patient names."""

    id_cita: int
    fecha: date
    hora: time
    notas: str | None = None
    estado: AppointmentStatus
    id_paciente: int
    id_servicio: int
    id_medico: int | None = None
    servicio: str | None = None
    medico_nombre: str | None = None
    medico_apellido: str | None = None
    paciente_nombre: str | None = None
    paciente_apellido: str | None = None

    model_config = ConfigDict(from_attributes=True)
