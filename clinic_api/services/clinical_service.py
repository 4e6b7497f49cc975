"""Clinical records guarded by the physician-patient access link."""

from datetime import UTC, date, datetime

import structlog
from sqlalchemy import delete, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_api.config import settings
from clinic_api.core.exceptions import BadRequestException, ForbiddenException, NotFoundException
from clinic_api.database import atomic
from clinic_api.models.appointments import appointments
from clinic_api.models.clinical import antecedents, dental_histories, evolution_entries
from clinic_api.models.patients import patients
from clinic_api.schemas.appointments import AppointmentStatus
from clinic_api.schemas.clinical import (
    AntecedentItem,
    DentalHistoryUpdate,
    EvolutionCreate,
)

logger = structlog.get_logger(__name__)


class ClinicalRecordService:
    """Service for patient clinical records."""

    def __init__(self, db: AsyncSession, include_cancelled: bool | None = None):
        """
        Initialize service with database session.

        Args:
            db: Database session
            include_cancelled: Whether cancelled appointments still count as
                an access link; defaults to the configured policy
        """
        self.db = db
        self.include_cancelled = (
            settings.clinical_access_includes_cancelled
            if include_cancelled is None
            else include_cancelled
        )

    async def has_access_link(self, physician_id: int, patient_id: int) -> bool:
        """Whether at least one appointment links the physician and the patient."""
        conditions = [
            appointments.c.id_medico == physician_id,
            appointments.c.id_paciente == patient_id,
        ]
        if not self.include_cancelled:
            conditions.append(appointments.c.estado != AppointmentStatus.CANCELLED.value)

        result = await self.db.execute(
            select(appointments.c.id_cita).where(*conditions).limit(1)
        )
        return result.first() is not None

    async def ensure_access(self, physician_id: int, patient_id: int) -> None:
        """
        Gate a physician's access to a patient's record.

        Raises:
            NotFoundException: If the patient does not exist
            ForbiddenException: If no appointment links them
        """
        result = await self.db.execute(
            select(patients.c.id_paciente).where(patients.c.id_paciente == patient_id)
        )
        if result.first() is None:
            raise NotFoundException("Paciente no encontrado")

        if not await self.has_access_link(physician_id, patient_id):
            logger.warning(
                "clinical_access_denied",
                id_medico=physician_id,
                id_paciente=patient_id,
            )
            raise ForbiddenException("No tiene citas con este paciente")

    async def get_patient(self, patient_id: int) -> dict:
        """Get patient demographics."""
        result = await self.db.execute(
            select(patients).where(patients.c.id_paciente == patient_id)
        )
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Paciente no encontrado")
        return dict(row)

    # Antecedents

    async def list_antecedents(self, patient_id: int) -> list[dict]:
        """List a patient's antecedents in insertion order."""
        result = await self.db.execute(
            select(antecedents)
            .where(antecedents.c.id_paciente == patient_id)
            .order_by(antecedents.c.id_antecedente)
        )
        return [dict(row) for row in result.mappings().all()]

    async def replace_antecedents(
        self, patient_id: int, items: list[AntecedentItem]
    ) -> list[dict]:
        """Replace the whole antecedent list; either every write lands or none."""
        async with atomic(self.db):
            await self.db.execute(
                delete(antecedents).where(antecedents.c.id_paciente == patient_id)
            )
            if items:
                await self.db.execute(
                    insert(antecedents),
                    [{"id_paciente": patient_id, **item.model_dump()} for item in items],
                )

        logger.info("antecedents_replaced", id_paciente=patient_id, count=len(items))
        return await self.list_antecedents(patient_id)

    # Odontological history

    async def get_dental_history(self, patient_id: int) -> dict:
        """Get a patient's odontological history."""
        result = await self.db.execute(
            select(dental_histories).where(dental_histories.c.id_paciente == patient_id)
        )
        row = result.mappings().first()
        if not row:
            raise NotFoundException("El paciente no tiene historia odontológica")
        return dict(row)

    async def save_dental_history(
        self, patient_id: int, physician_id: int, data: DentalHistoryUpdate
    ) -> dict:
        """Create the odontological history or update the submitted fields."""
        values = data.model_dump(exclude_unset=True)
        values["id_medico"] = physician_id
        values["fecha_actualizacion"] = datetime.now(UTC)

        async with atomic(self.db):
            result = await self.db.execute(
                update(dental_histories)
                .where(dental_histories.c.id_paciente == patient_id)
                .values(**values)
            )
            if result.rowcount == 0:
                await self.db.execute(
                    insert(dental_histories).values(id_paciente=patient_id, **values)
                )

        logger.info("dental_history_saved", id_paciente=patient_id, id_medico=physician_id)
        return await self.get_dental_history(patient_id)

    # Evolution entries

    async def list_evolution(self, patient_id: int) -> list[dict]:
        """List evolution entries, most recent first."""
        result = await self.db.execute(
            select(evolution_entries)
            .where(evolution_entries.c.id_paciente == patient_id)
            .order_by(evolution_entries.c.fecha.desc(), evolution_entries.c.id_evolucion.desc())
        )
        return [dict(row) for row in result.mappings().all()]

    async def add_evolution(
        self, patient_id: int, physician_id: int, data: EvolutionCreate
    ) -> dict:
        """Record a new evolution entry for a patient."""
        if data.id_cita is not None:
            result = await self.db.execute(
                select(appointments.c.id_paciente).where(appointments.c.id_cita == data.id_cita)
            )
            owner = result.scalar_one_or_none()
            if owner is None:
                raise NotFoundException("Cita no encontrada")
            if owner != patient_id:
                raise BadRequestException("La cita no pertenece a este paciente")

        result = await self.db.execute(
            insert(evolution_entries).values(
                id_paciente=patient_id,
                id_medico=physician_id,
                id_cita=data.id_cita,
                fecha=data.fecha or date.today(),
                descripcion=data.descripcion,
                tratamiento=data.tratamiento,
            )
        )
        await self.db.commit()

        evolution_id = result.inserted_primary_key[0]
        logger.info(
            "evolution_added",
            id_evolucion=evolution_id,
            id_paciente=patient_id,
            id_medico=physician_id,
        )

        row = await self.db.execute(
            select(evolution_entries).where(evolution_entries.c.id_evolucion == evolution_id)
        )
        return dict(row.mappings().one())
