"""Appointment booking and lifecycle."""

import math
from datetime import UTC, date, datetime, time, timedelta
from enum import Enum
from typing import Any, assert_never

import structlog
from sqlalchemy import ColumnElement, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_api.config import settings
from clinic_api.core.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
)
from clinic_api.models.appointments import appointments
from clinic_api.models.patients import patients
from clinic_api.models.physicians import physicians
from clinic_api.models.services import services
from clinic_api.models.users import users
from clinic_api.schemas.appointments import (
    AppointmentActionResponse,
    AppointmentBookRequest,
    AppointmentBookResponse,
    AppointmentDetail,
    AppointmentStatus,
)
from clinic_api.services.catalog_service import CatalogService
from clinic_api.services.email_templates import (
    appointment_cancelled_template,
    appointment_confirmed_template,
    appointment_requested_template,
)
from clinic_api.services.notification_service import EmailMessage, NotificationDispatcher

logger = structlog.get_logger(__name__)

MS_PER_DAY = 24 * 60 * 60 * 1000

NOTIFICATION_WARNING = "La operación se realizó, pero no se pudo notificar al paciente por correo"

# States from which a physician can no longer cancel
PHYSICIAN_CANCEL_BLOCKED = (AppointmentStatus.CANCELLED.value, AppointmentStatus.COMPLETED.value)


class AppointmentEvent(str, Enum):
    """State changes the patient is told about."""

    REQUESTED = "requested"
    CONFIRMED = "confirmed"
    CANCELLED_BY_PATIENT = "cancelled_by_patient"
    CANCELLED_BY_PHYSICIAN = "cancelled_by_physician"


def days_until(target: date, today: date) -> int:
    """
    Whole calendar days from ``today`` to ``target``.

    Both dates are taken at midnight and the millisecond difference is
    divided by one day, rounding up.
    """
    delta = datetime.combine(target, time.min) - datetime.combine(today, time.min)
    return math.ceil((delta / timedelta(milliseconds=1)) / MS_PER_DAY)


def _detail_query():
    return select(
        appointments,
        services.c.nombre.label("servicio"),
        physicians.c.nombre.label("medico_nombre"),
        physicians.c.apellido.label("medico_apellido"),
        patients.c.nombre.label("paciente_nombre"),
        patients.c.apellido.label("paciente_apellido"),
    ).select_from(
        appointments.join(services, appointments.c.id_servicio == services.c.id_servicio)
        .join(patients, appointments.c.id_paciente == patients.c.id_paciente)
        .outerjoin(physicians, appointments.c.id_medico == physicians.c.id_medico)
    )


class AppointmentService:
    """Service for booking appointments and moving them through their lifecycle."""

    def __init__(
        self,
        db: AsyncSession,
        notifier: NotificationDispatcher,
        cancellation_lead_days: int | None = None,
    ):
        """Initialize service with database session and notification queue."""
        self.db = db
        self.notifier = notifier
        self.cancellation_lead_days = (
            settings.patient_cancellation_lead_days
            if cancellation_lead_days is None
            else cancellation_lead_days
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_occupied_slots(self, physician_id: int, appointment_date: date) -> list[time]:
        """Times already taken by non-cancelled appointments of a physician on a date."""
        query = (
            select(appointments.c.hora)
            .where(
                appointments.c.id_medico == physician_id,
                appointments.c.fecha == appointment_date,
                appointments.c.estado != AppointmentStatus.CANCELLED.value,
            )
            .order_by(appointments.c.hora)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_appointment(self, appointment_id: int) -> dict[str, Any]:
        """
        Get appointment row by ID.

        Raises:
            NotFoundException: If appointment not found
        """
        result = await self.db.execute(
            select(appointments).where(appointments.c.id_cita == appointment_id)
        )
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Cita no encontrada")
        return dict(row)

    async def list_for_patient(self, patient_id: int) -> list[AppointmentDetail]:
        """All appointments of a patient, newest first."""
        query = (
            _detail_query()
            .where(appointments.c.id_paciente == patient_id)
            .order_by(appointments.c.fecha.desc(), appointments.c.hora.desc())
        )
        return await self._fetch_details(query)

    async def list_for_physician(self, physician_id: int) -> list[AppointmentDetail]:
        """All appointments assigned to a physician, soonest first."""
        query = (
            _detail_query()
            .where(appointments.c.id_medico == physician_id)
            .order_by(appointments.c.fecha, appointments.c.hora)
        )
        return await self._fetch_details(query)

    async def list_pending(self, physician_id: int) -> list[AppointmentDetail]:
        """Scheduled appointments a physician can still accept or confirm."""
        query = (
            _detail_query()
            .where(
                appointments.c.estado == AppointmentStatus.SCHEDULED.value,
                or_(
                    appointments.c.id_medico.is_(None),
                    appointments.c.id_medico == physician_id,
                ),
            )
            .order_by(appointments.c.fecha, appointments.c.hora)
        )
        return await self._fetch_details(query)

    async def _fetch_details(self, query) -> list[AppointmentDetail]:
        result = await self.db.execute(query)
        return [AppointmentDetail.model_validate(dict(row)) for row in result.mappings().all()]

    async def _slot_taken(self, physician_id: int, appointment_date: date, hour: time) -> bool:
        query = (
            select(appointments.c.id_cita)
            .where(
                appointments.c.id_medico == physician_id,
                appointments.c.fecha == appointment_date,
                appointments.c.hora == hour,
                appointments.c.estado != AppointmentStatus.CANCELLED.value,
            )
            .limit(1)
        )
        result = await self.db.execute(query)
        return result.first() is not None

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------

    async def book_appointment(
        self,
        patient_id: int,
        data: AppointmentBookRequest,
        today: date | None = None,
    ) -> AppointmentBookResponse:
        """
        Book an appointment for a patient.

        The slot check gives a friendly early answer; the partial unique
        index on (id_medico, fecha, hora) is what actually prevents two
        concurrent requests from both taking the slot.

        Raises:
            BadRequestException: If the date is in the past
            NotFoundException: If the service or physician does not exist
            ConflictException: If the physician's slot is already taken
        """
        today = today or date.today()
        if data.fecha < today:
            raise BadRequestException("No se pueden agendar citas en fechas pasadas")

        catalog = CatalogService()
        if not await catalog.service_exists(self.db, data.id_servicio):
            raise NotFoundException("Servicio no encontrado")

        if data.id_medico is not None:
            if not await catalog.physician_exists(self.db, data.id_medico):
                raise NotFoundException("Médico no encontrado")
            if await self._slot_taken(data.id_medico, data.fecha, data.hora):
                raise ConflictException("El horario seleccionado ya está ocupado")

        try:
            result = await self.db.execute(
                appointments.insert().values(
                    fecha=data.fecha,
                    hora=data.hora,
                    notas=data.notas,
                    estado=AppointmentStatus.SCHEDULED.value,
                    id_paciente=patient_id,
                    id_servicio=data.id_servicio,
                    id_medico=data.id_medico,
                )
            )
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.info(
                "appointment_slot_conflict",
                id_medico=data.id_medico,
                fecha=str(data.fecha),
                hora=str(data.hora),
            )
            raise ConflictException("El horario seleccionado ya está ocupado") from e

        appointment_id = result.inserted_primary_key[0]
        logger.info(
            "appointment_booked",
            id_cita=appointment_id,
            id_paciente=patient_id,
            id_medico=data.id_medico,
        )

        warning = await self._notify_patient(appointment_id, AppointmentEvent.REQUESTED)
        return AppointmentBookResponse(
            message="Cita agendada correctamente",
            id_cita=appointment_id,
            estado=AppointmentStatus.SCHEDULED,
            id_medico=data.id_medico,
            warning=warning,
        )

    # ------------------------------------------------------------------
    # Lifecycle transitions
    # ------------------------------------------------------------------

    async def _apply_transition(
        self,
        appointment_id: int,
        guard: list[ColumnElement[bool]],
        values: dict[str, Any],
    ) -> bool:
        """Run one conditional UPDATE; True if the guard matched."""
        stmt = (
            update(appointments)
            .where(appointments.c.id_cita == appointment_id, *guard)
            .values(**values, fecha_actualizacion=datetime.now(UTC))
        )
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictException("El médico ya tiene una cita en ese horario") from e
        return result.rowcount > 0

    async def _finish_transition(
        self,
        appointment_id: int,
        new_status: AppointmentStatus,
        event: AppointmentEvent,
        message: str,
        **log_fields: Any,
    ) -> AppointmentActionResponse:
        logger.info(
            "appointment_status_changed",
            id_cita=appointment_id,
            estado=new_status.value,
            event=event.value,
            **log_fields,
        )
        warning = await self._notify_patient(appointment_id, event)
        return AppointmentActionResponse(
            message=message,
            id_cita=appointment_id,
            estado=new_status,
            warning=warning,
        )

    async def accept(self, physician_id: int, appointment_id: int) -> AppointmentActionResponse:
        """Take an unassigned scheduled appointment and confirm it."""
        changed = await self._apply_transition(
            appointment_id,
            [
                appointments.c.id_medico.is_(None),
                appointments.c.estado == AppointmentStatus.SCHEDULED.value,
            ],
            {"id_medico": physician_id, "estado": AppointmentStatus.CONFIRMED.value},
        )
        if not changed:
            current = await self.get_appointment(appointment_id)
            if current["id_medico"] == physician_id:
                raise InvalidTransitionException(
                    "La cita ya está asignada a usted; use confirmar"
                )
            if current["id_medico"] is not None:
                raise InvalidTransitionException("La cita ya fue asignada a otro médico")
            raise InvalidTransitionException(
                f"No se puede aceptar una cita en estado {current['estado']}"
            )

        return await self._finish_transition(
            appointment_id,
            AppointmentStatus.CONFIRMED,
            AppointmentEvent.CONFIRMED,
            "Cita aceptada",
            id_medico=physician_id,
        )

    async def confirm(self, physician_id: int, appointment_id: int) -> AppointmentActionResponse:
        """Confirm a scheduled appointment already assigned to the physician."""
        changed = await self._apply_transition(
            appointment_id,
            [
                appointments.c.id_medico == physician_id,
                appointments.c.estado == AppointmentStatus.SCHEDULED.value,
            ],
            {"estado": AppointmentStatus.CONFIRMED.value},
        )
        if not changed:
            current = await self.get_appointment(appointment_id)
            if current["id_medico"] != physician_id:
                raise ForbiddenException("La cita no está asignada a este médico")
            raise InvalidTransitionException(
                f"No se puede confirmar una cita en estado {current['estado']}"
            )

        return await self._finish_transition(
            appointment_id,
            AppointmentStatus.CONFIRMED,
            AppointmentEvent.CONFIRMED,
            "Cita confirmada",
            id_medico=physician_id,
        )

    async def cancel_by_physician(
        self, physician_id: int, appointment_id: int
    ) -> AppointmentActionResponse:
        """Cancel an assigned appointment that is not cancelled or completed."""
        changed = await self._apply_transition(
            appointment_id,
            [
                appointments.c.id_medico == physician_id,
                appointments.c.estado.not_in(PHYSICIAN_CANCEL_BLOCKED),
            ],
            {"estado": AppointmentStatus.CANCELLED.value},
        )
        if not changed:
            current = await self.get_appointment(appointment_id)
            if current["id_medico"] != physician_id:
                raise ForbiddenException("La cita no está asignada a este médico")
            raise InvalidTransitionException(
                f"No se puede cancelar una cita en estado {current['estado']}"
            )

        return await self._finish_transition(
            appointment_id,
            AppointmentStatus.CANCELLED,
            AppointmentEvent.CANCELLED_BY_PHYSICIAN,
            "Cita cancelada por el médico",
            id_medico=physician_id,
        )

    async def cancel_by_patient(
        self,
        patient_id: int,
        appointment_id: int,
        today: date | None = None,
    ) -> AppointmentActionResponse:
        """
        Cancel the patient's own appointment.

        Allowed only while the appointment is more than
        ``cancellation_lead_days`` days away; exactly that many is too late.
        """
        current = await self.get_appointment(appointment_id)
        if current["id_paciente"] != patient_id:
            raise ForbiddenException("La cita no pertenece a este paciente")
        if current["estado"] == AppointmentStatus.CANCELLED.value:
            raise InvalidTransitionException("La cita ya está cancelada")

        remaining = days_until(current["fecha"], today or date.today())
        if remaining <= self.cancellation_lead_days:
            raise BadRequestException(
                "Solo puede cancelar con más de "
                f"{self.cancellation_lead_days} días de anticipación"
            )

        changed = await self._apply_transition(
            appointment_id,
            [
                appointments.c.id_paciente == patient_id,
                appointments.c.estado != AppointmentStatus.CANCELLED.value,
            ],
            {"estado": AppointmentStatus.CANCELLED.value},
        )
        if not changed:
            raise InvalidTransitionException("La cita ya está cancelada")

        return await self._finish_transition(
            appointment_id,
            AppointmentStatus.CANCELLED,
            AppointmentEvent.CANCELLED_BY_PATIENT,
            "Cita cancelada",
            id_paciente=patient_id,
            dias_restantes=remaining,
        )

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    async def _notification_context(self, appointment_id: int) -> dict[str, Any] | None:
        query = (
            select(
                appointments.c.fecha,
                appointments.c.hora,
                services.c.nombre.label("servicio"),
                patients.c.nombre,
                patients.c.apellido,
                patients.c.email,
                users.c.email.label("usuario_email"),
                physicians.c.nombre.label("medico_nombre"),
                physicians.c.apellido.label("medico_apellido"),
            )
            .select_from(
                appointments.join(patients, appointments.c.id_paciente == patients.c.id_paciente)
                .join(users, patients.c.id_usuario == users.c.id_usuario)
                .join(services, appointments.c.id_servicio == services.c.id_servicio)
                .outerjoin(physicians, appointments.c.id_medico == physicians.c.id_medico)
            )
            .where(appointments.c.id_cita == appointment_id)
        )
        result = await self.db.execute(query)
        row = result.mappings().first()
        return dict(row) if row else None

    def _build_message(self, event: AppointmentEvent, ctx: dict[str, Any], to: str) -> EmailMessage:
        name = f"{ctx['nombre']} {ctx['apellido']}"
        physician = (
            f"Dr(a). {ctx['medico_nombre']} {ctx['medico_apellido']}"
            if ctx["medico_nombre"]
            else None
        )
        slot = (ctx["servicio"], ctx["fecha"], ctx["hora"])

        match event:
            case AppointmentEvent.REQUESTED:
                subject, html = appointment_requested_template(name, *slot)
            case AppointmentEvent.CONFIRMED:
                subject, html = appointment_confirmed_template(name, *slot, physician)
            case AppointmentEvent.CANCELLED_BY_PATIENT:
                subject, html = appointment_cancelled_template(name, *slot, by_physician=False)
            case AppointmentEvent.CANCELLED_BY_PHYSICIAN:
                subject, html = appointment_cancelled_template(name, *slot, by_physician=True)
            case _:
                assert_never(event)

        return EmailMessage(to=to, subject=subject, html=html, sender=settings.email_from)

    async def _notify_patient(self, appointment_id: int, event: AppointmentEvent) -> str | None:
        """
        Queue an email to the patient about ``event``.

        Returns:
            A warning for the response when the email could not be queued,
            otherwise None. The committed state change stands either way.
        """
        try:
            ctx = await self._notification_context(appointment_id)
            to = (ctx or {}).get("email") or (ctx or {}).get("usuario_email")
            if not ctx or not to:
                logger.warning(
                    "notification_skipped",
                    id_cita=appointment_id,
                    event=event.value,
                    reason="no_patient_email",
                )
                return NOTIFICATION_WARNING

            queued = self.notifier.enqueue(self._build_message(event, ctx, to))
        except Exception as e:
            # Log error but don't fail the request
            logger.warning(
                "failed_to_queue_notification",
                id_cita=appointment_id,
                event=event.value,
                error=str(e),
            )
            return NOTIFICATION_WARNING

        return None if queued else NOTIFICATION_WARNING
