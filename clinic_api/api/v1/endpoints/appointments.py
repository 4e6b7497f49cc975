"""Appointment endpoints."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Path, status

from clinic_api.dependencies import CurrentPatient, CurrentPhysician, DatabaseSession, Notifier
from clinic_api.schemas.appointments import (
    AppointmentActionResponse,
    AppointmentBookRequest,
    AppointmentBookResponse,
    AppointmentDetail,
    AvailabilityResponse,
    OccupiedSlot,
)
from clinic_api.services.appointment_service import AppointmentService

router = APIRouter(prefix="/citas")

AppointmentId = Annotated[int, Path(gt=0, description="Appointment ID")]


@router.get(
    "/disponibilidad/{id_medico}/{fecha}",
    response_model=AvailabilityResponse,
    status_code=status.HTTP_200_OK,
    summary="Booked times of a physician on a date",
)
async def get_availability(
    id_medico: Annotated[int, Path(gt=0)],
    fecha: date,
    db: DatabaseSession,
    notifier: Notifier,
) -> AvailabilityResponse:
    """
    Return the times already booked for a physician on a date.

    The client subtracts these from the physician's working hours.
    """
    hours = await AppointmentService(db, notifier).get_occupied_slots(id_medico, fecha)
    return AvailabilityResponse(horas_ocupadas=[OccupiedSlot(hora=hour) for hour in hours])


@router.post(
    "/agendar",
    response_model=AppointmentBookResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    summary="Book an appointment",
)
async def book_appointment(
    data: AppointmentBookRequest,
    patient: CurrentPatient,
    db: DatabaseSession,
    notifier: Notifier,
) -> AppointmentBookResponse:
    """
    Book an appointment for the authenticated patient.

    Without ``id_medico`` the request goes to the pending pool where any
    physician can accept it.
    """
    service = AppointmentService(db, notifier)
    return await service.book_appointment(patient["id_paciente"], data)


@router.post(
    "/aceptar/{id_cita}",
    response_model=AppointmentActionResponse,
    response_model_exclude_none=True,
    summary="Accept an unassigned appointment",
)
async def accept_appointment(
    id_cita: AppointmentId,
    physician: CurrentPhysician,
    db: DatabaseSession,
    notifier: Notifier,
) -> AppointmentActionResponse:
    """Assign an unassigned scheduled appointment to the caller and confirm it."""
    service = AppointmentService(db, notifier)
    return await service.accept(physician["id_medico"], id_cita)


@router.post(
    "/confirmar/{id_cita}",
    response_model=AppointmentActionResponse,
    response_model_exclude_none=True,
    summary="Confirm an assigned appointment",
)
async def confirm_appointment(
    id_cita: AppointmentId,
    physician: CurrentPhysician,
    db: DatabaseSession,
    notifier: Notifier,
) -> AppointmentActionResponse:
    """Confirm a scheduled appointment assigned to the caller."""
    service = AppointmentService(db, notifier)
    return await service.confirm(physician["id_medico"], id_cita)


@router.post(
    "/cancelar-medico/{id_cita}",
    response_model=AppointmentActionResponse,
    response_model_exclude_none=True,
    summary="Cancel an appointment as physician",
)
async def cancel_appointment_as_physician(
    id_cita: AppointmentId,
    physician: CurrentPhysician,
    db: DatabaseSession,
    notifier: Notifier,
) -> AppointmentActionResponse:
    """Cancel an appointment assigned to the caller."""
    service = AppointmentService(db, notifier)
    return await service.cancel_by_physician(physician["id_medico"], id_cita)


@router.post(
    "/cancelar/{id_cita}",
    response_model=AppointmentActionResponse,
    response_model_exclude_none=True,
    summary="Cancel an appointment as patient",
)
async def cancel_appointment_as_patient(
    id_cita: AppointmentId,
    patient: CurrentPatient,
    db: DatabaseSession,
    notifier: Notifier,
) -> AppointmentActionResponse:
    """Cancel one of the caller's appointments, if it is far enough away."""
    service = AppointmentService(db, notifier)
    return await service.cancel_by_patient(patient["id_paciente"], id_cita)


@router.get(
    "/mis-citas",
    response_model=list[AppointmentDetail],
    summary="Appointments of the authenticated patient",
)
async def list_my_appointments(
    patient: CurrentPatient,
    db: DatabaseSession,
    notifier: Notifier,
) -> list[AppointmentDetail]:
    """List the caller's appointments, newest first."""
    return await AppointmentService(db, notifier).list_for_patient(patient["id_paciente"])


@router.get(
    "/mis-citas-medico",
    response_model=list[AppointmentDetail],
    summary="Appointments assigned to the authenticated physician",
)
async def list_physician_appointments(
    physician: CurrentPhysician,
    db: DatabaseSession,
    notifier: Notifier,
) -> list[AppointmentDetail]:
    """List appointments assigned to the caller, soonest first."""
    return await AppointmentService(db, notifier).list_for_physician(physician["id_medico"])


@router.get(
    "/pendientes",
    response_model=list[AppointmentDetail],
    summary="Appointments awaiting acceptance or confirmation",
)
async def list_pending_appointments(
    physician: CurrentPhysician,
    db: DatabaseSession,
    notifier: Notifier,
) -> list[AppointmentDetail]:
    """List scheduled appointments that are unassigned or assigned to the caller."""
    return await AppointmentService(db, notifier).list_pending(physician["id_medico"])
