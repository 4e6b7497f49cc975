"""User model definition using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    String,
    Table,
    Text,
    text,
)

from clinic_api.models.base import metadata

users = Table(
    "usuarios",
    metadata,
    Column("id_usuario", Integer, primary_key=True, autoincrement=True),
    # Auth0 identity (SOURCE OF TRUTH)
    Column("auth0_id", String(255), nullable=False, unique=True, index=True),
    Column("email", Text),
    # Assigned once, at profile registration
    Column("rol", String(20), nullable=False, server_default=text("'sin_asignar'")),
    Column(
        "fecha_creacion",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    CheckConstraint(
        "rol IN ('sin_asignar', 'Medico', 'Paciente')",
        name="usuarios_rol_check",
    ),
)
