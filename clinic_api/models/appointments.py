"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    Time,
    text,
)

from clinic_api.models.base import metadata

appointments = Table(
    "citas",
    metadata,
    Column("id_cita", Integer, primary_key=True, autoincrement=True),
    # Slot
    Column("fecha", Date, nullable=False),
    Column("hora", Time, nullable=False),
    Column("notas", Text),
    # Status management
    Column("estado", String(20), nullable=False, server_default=text("'Agendada'")),
    # Ownership / references
    Column("id_paciente", Integer, ForeignKey("pacientes.id_paciente"), nullable=False, index=True),
    Column("id_servicio", Integer, ForeignKey("servicios.id_servicio"), nullable=False),
    # Unassigned until a physician accepts it
    Column("id_medico", Integer, ForeignKey("medicos.id_medico"), nullable=True, index=True),
    # Audit fields
    Column(
        "fecha_creacion",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    Column(
        "fecha_actualizacion",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    CheckConstraint(
        "estado IN ('Agendada', 'Confirmada', 'Cancelada', 'Completada')",
        name="citas_estado_check",
    ),
)

# One live appointment per physician slot; cancelled rows free the slot
ACTIVE_SLOT_INDEX = "uq_citas_medico_fecha_hora_activa"

Index(
    ACTIVE_SLOT_INDEX,
    appointments.c.id_medico,
    appointments.c.fecha,
    appointments.c.hora,
    unique=True,
    postgresql_where=text("estado <> 'Cancelada'"),
    sqlite_where=text("estado <> 'Cancelada'"),
)
