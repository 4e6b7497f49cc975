"""Clinical record schemas."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class PatientRecord(BaseModel):
    """Patient demographics as seen by a linked physician."""

    id_paciente: int
    nombre: str
    apellido: str
    fecha_nacimiento: date | None = None
    sexo: str | None = None
    telefono: str | None = None
    email: str | None = None
    direccion: str | None = None

    model_config = ConfigDict(from_attributes=True)


class AntecedentItem(BaseModel):
    """One antecedent entry as submitted by a physician."""

    tipo: str = Field(..., min_length=1, max_length=50)
    descripcion: str = Field(..., min_length=1)


class AntecedentsReplace(BaseModel):
    """Full replacement list of a patient's antecedents."""

    antecedentes: list[AntecedentItem]


class AntecedentResponse(AntecedentItem):
    """Stored antecedent."""

    id_antecedente: int
    fecha_registro: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class DentalHistoryUpdate(BaseModel):
    """Odontological history fields; omitted fields are left untouched."""

    motivo_consulta: str | None = None
    diagnostico: str | None = None
    plan_tratamiento: str | None = None
    observaciones: str | None = None


class DentalHistoryResponse(DentalHistoryUpdate):
    """Stored odontological history."""

    id_historia: int
    id_paciente: int
    id_medico: int | None = None
    fecha_actualizacion: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class EvolutionCreate(BaseModel):
    """New evolution entry."""

    descripcion: str = Field(..., min_length=1)
    tratamiento: str | None = None
    fecha: date | None = None
    id_cita: int | None = Field(None, gt=0)


class EvolutionResponse(BaseModel):
    """Stored evolution entry."""

    id_evolucion: int
    id_paciente: int
    id_medico: int
    id_cita: int | None = None
    fecha: date
    descripcion: str
    tratamiento: str | None = None

    model_config = ConfigDict(from_attributes=True)
