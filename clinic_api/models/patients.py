"""Patient model definition using SQLAlchemy Core."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Table, Text, text

from clinic_api.models.base import metadata

patients = Table(
    "pacientes",
    metadata,
    Column("id_paciente", Integer, primary_key=True, autoincrement=True),
    Column(
        "id_usuario",
        Integer,
        ForeignKey("usuarios.id_usuario"),
        nullable=False,
        unique=True,
        index=True,
    ),
    # Demographics
    Column("nombre", String(100), nullable=False),
    Column("apellido", String(100), nullable=False),
    Column("fecha_nacimiento", Date),
    Column("sexo", String(20)),
    # Contact
    Column("telefono", String(20)),
    Column("email", String(255)),
    Column("direccion", Text),
    Column(
        "fecha_registro",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
)
