"""Service catalog model definition using SQLAlchemy Core."""

from sqlalchemy import Column, Integer, Numeric, String, Table, Text

from clinic_api.models.base import metadata

services = Table(
    "servicios",
    metadata,
    Column("id_servicio", Integer, primary_key=True, autoincrement=True),
    Column("nombre", String(150), nullable=False),
    Column("descripcion", Text),
    Column("duracion_minutos", Integer),
    Column("costo", Numeric(10, 2)),
)
