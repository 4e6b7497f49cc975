"""Service catalog and physician directory schemas."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, field_serializer


class ServiceResponse(BaseModel):
    """Service catalog entry."""

    id_servicio: int
    nombre: str
    descripcion: str | None = None
    duracion_minutos: int | None = None
    costo: Decimal | None = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("costo", when_used="json")
    def serialize_decimal(self, value: Decimal | None) -> float | None:
        """Serialize Decimal to float for JSON."""
        return float(value) if value is not None else None


class PhysicianSummary(BaseModel):
    """Physician entry in the public directory."""

    id_medico: int
    nombre: str
    apellido: str
    especialidad: str | None = None

    model_config = ConfigDict(from_attributes=True)
