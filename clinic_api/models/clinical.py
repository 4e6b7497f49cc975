"""Clinical record tables using SQLAlchemy Core."""

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    text,
)

from clinic_api.models.base import metadata

antecedents = Table(
    "antecedentes",
    metadata,
    Column("id_antecedente", Integer, primary_key=True, autoincrement=True),
    Column("id_paciente", Integer, ForeignKey("pacientes.id_paciente"), nullable=False, index=True),
    # e.g. Patologico, Alergico, Quirurgico, Familiar
    Column("tipo", String(50), nullable=False),
    Column("descripcion", Text, nullable=False),
    Column(
        "fecha_registro",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
)

dental_histories = Table(
    "historia_odontologica",
    metadata,
    Column("id_historia", Integer, primary_key=True, autoincrement=True),
    Column(
        "id_paciente",
        Integer,
        ForeignKey("pacientes.id_paciente"),
        nullable=False,
        unique=True,
    ),
    Column("motivo_consulta", Text),
    Column("diagnostico", Text),
    Column("plan_tratamiento", Text),
    Column("observaciones", Text),
    # Last physician who edited the record
    Column("id_medico", Integer, ForeignKey("medicos.id_medico")),
    Column(
        "fecha_actualizacion",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
)

evolution_entries = Table(
    "evoluciones",
    metadata,
    Column("id_evolucion", Integer, primary_key=True, autoincrement=True),
    Column("id_paciente", Integer, ForeignKey("pacientes.id_paciente"), nullable=False, index=True),
    Column("id_medico", Integer, ForeignKey("medicos.id_medico"), nullable=False),
    Column("id_cita", Integer, ForeignKey("citas.id_cita"), nullable=True),
    Column("fecha", Date, nullable=False),
    Column("descripcion", Text, nullable=False),
    Column("tratamiento", Text),
)
