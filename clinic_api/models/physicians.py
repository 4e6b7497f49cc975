"""Physician model definition using SQLAlchemy Core."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Table, text

from clinic_api.models.base import metadata

physicians = Table(
    "medicos",
    metadata,
    Column("id_medico", Integer, primary_key=True, autoincrement=True),
    Column(
        "id_usuario",
        Integer,
        ForeignKey("usuarios.id_usuario"),
        nullable=False,
        unique=True,
        index=True,
    ),
    Column("nombre", String(100), nullable=False),
    Column("apellido", String(100), nullable=False),
    Column("especialidad", String(150), index=True),
    Column("cedula_profesional", String(50), unique=True),
    Column("telefono", String(20)),
    Column("email", String(255)),
    Column(
        "fecha_registro",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
)
