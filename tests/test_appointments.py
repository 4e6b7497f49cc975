"""Tests for booking, availability and the appointment lifecycle."""

import asyncio
from datetime import date, time

import pytest
from conftest import auth_headers, days_from_today, register
from httpx import AsyncClient
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_api.core.exceptions import ConflictException
from clinic_api.database import Database
from clinic_api.models.appointments import appointments
from clinic_api.schemas.appointments import AppointmentBookRequest, AppointmentBookResponse
from clinic_api.services.appointment_service import (
    NOTIFICATION_WARNING,
    AppointmentService,
    days_until,
)


async def book(
    client: AsyncClient,
    patient: dict,
    service_id: int,
    physician: dict | None = None,
    fecha: str | None = None,
    hora: str = "10:00",
):
    """Book through the API; returns the raw response."""
    payload = {
        "fecha": fecha or days_from_today(30),
        "hora": hora,
        "id_servicio": service_id,
    }
    if physician is not None:
        payload["id_medico"] = physician["id_medico"]
    return await client.post("/api/citas/agendar", json=payload, headers=patient["headers"])


async def set_status(db_session: AsyncSession, appointment_id: int, estado: str) -> None:
    await db_session.execute(
        update(appointments).where(appointments.c.id_cita == appointment_id).values(estado=estado)
    )
    await db_session.commit()


class TestDaysUntil:
    """Calendar-day distance used by the patient cancellation rule."""

    def test_same_day(self):
        assert days_until(date(2025, 3, 10), date(2025, 3, 10)) == 0

    def test_one_week(self):
        assert days_until(date(2025, 3, 10), date(2025, 3, 3)) == 7

    def test_across_month_boundary(self):
        assert days_until(date(2025, 3, 2), date(2025, 2, 22)) == 8

    def test_past_date_is_negative(self):
        assert days_until(date(2025, 3, 9), date(2025, 3, 10)) == -1


@pytest.mark.asyncio
async def test_book_appointment(
    client: AsyncClient, patient: dict, physician: dict, service_id: int, notifier, sender
) -> None:
    """Booking creates a scheduled appointment and queues the patient email."""
    response = await book(client, patient, service_id, physician)
    assert response.status_code == 201
    data = response.json()
    assert data["estado"] == "Agendada"
    assert data["id_medico"] == physician["id_medico"]
    assert isinstance(data["id_cita"], int)
    assert "warning" not in data

    assert await notifier.drain() == 1
    assert len(sender.sent) == 1
    message = sender.sent[0]
    assert message.to == "ana.lopez@example.com"
    assert message.subject == "Solicitud de cita recibida"
    assert "Limpieza dental" in message.html


@pytest.mark.asyncio
async def test_book_without_physician_goes_to_pool(
    client: AsyncClient, patient: dict, physician: dict, service_id: int
) -> None:
    """Unassigned bookings show up in every physician's pending list."""
    response = await book(client, patient, service_id)
    assert response.status_code == 201
    assert "id_medico" not in response.json()

    pending = await client.get("/api/citas/pendientes", headers=physician["headers"])
    assert pending.status_code == 200
    assert [c["id_cita"] for c in pending.json()] == [response.json()["id_cita"]]
    assert pending.json()[0]["id_medico"] is None


@pytest.mark.asyncio
async def test_unregistered_caller_cannot_book(client: AsyncClient, service_id: int) -> None:
    """Callers without a patient profile are sent to onboarding."""
    response = await client.post(
        "/api/citas/agendar",
        json={"fecha": days_from_today(10), "hora": "09:00", "id_servicio": service_id},
        headers=auth_headers("auth0|nobody"),
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_physician_cannot_book(
    client: AsyncClient, physician: dict, service_id: int
) -> None:
    response = await book(client, physician, service_id)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_book_unknown_service(client: AsyncClient, patient: dict, physician: dict) -> None:
    response = await book(client, patient, 999, physician)
    assert response.status_code == 404
    assert response.json()["message"] == "Servicio no encontrado"


@pytest.mark.asyncio
async def test_book_unknown_physician(
    client: AsyncClient, patient: dict, service_id: int
) -> None:
    response = await book(client, patient, service_id, {"id_medico": 999})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_book_in_the_past(
    client: AsyncClient, patient: dict, physician: dict, service_id: int
) -> None:
    response = await book(client, patient, service_id, physician, fecha=days_from_today(-1))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_book_rejects_malformed_body(
    client: AsyncClient, patient: dict, service_id: int
) -> None:
    response = await client.post(
        "/api/citas/agendar",
        json={"fecha": "mañana", "hora": "10:00", "id_servicio": service_id},
        headers=patient["headers"],
    )
    assert response.status_code == 422
    assert response.json()["error"] == "ValidationError"


@pytest.mark.asyncio
async def test_slot_conflict(
    client: AsyncClient,
    patient: dict,
    other_patient: dict,
    physician: dict,
    service_id: int,
) -> None:
    """A physician's slot holds one live appointment at a time."""
    fecha = days_from_today(20)
    first = await book(client, patient, service_id, physician, fecha=fecha)
    assert first.status_code == 201

    second = await book(client, other_patient, service_id, physician, fecha=fecha)
    assert second.status_code == 409

    # Another time on the same day is fine
    third = await book(client, other_patient, service_id, physician, fecha=fecha, hora="11:00")
    assert third.status_code == 201


@pytest.mark.asyncio
async def test_slot_conflict_enforced_by_index(
    client: AsyncClient,
    patient: dict,
    other_patient: dict,
    physician: dict,
    service_id: int,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Two requests that both pass the pre-check still cannot share a slot."""

    async def slot_free(self, physician_id, appointment_date, hour):
        return False

    monkeypatch.setattr(AppointmentService, "_slot_taken", slot_free)

    fecha = days_from_today(20)
    first = await book(client, patient, service_id, physician, fecha=fecha)
    assert first.status_code == 201

    second = await book(client, other_patient, service_id, physician, fecha=fecha)
    assert second.status_code == 409
    assert second.json()["message"] == "El horario seleccionado ya está ocupado"

    mine = await client.get("/api/citas/mis-citas-medico", headers=physician["headers"])
    assert len(mine.json()) == 1


@pytest.mark.asyncio
async def test_concurrent_bookings_take_slot_once(
    database: Database,
    patient: dict,
    other_patient: dict,
    physician: dict,
    service_id: int,
    notifier,
) -> None:
    """Two bookings racing on separate sessions leave one live appointment."""
    fecha = date.fromisoformat(days_from_today(20))
    request = AppointmentBookRequest(
        fecha=fecha, hora=time(10, 0), id_servicio=service_id, id_medico=physician["id_medico"]
    )

    async def attempt(caller: dict) -> AppointmentBookResponse:
        async with database.session() as session:
            service = AppointmentService(session, notifier)
            return await service.book_appointment(caller["id_paciente"], request)

    results = await asyncio.gather(
        attempt(patient), attempt(other_patient), return_exceptions=True
    )

    assert sum(isinstance(r, AppointmentBookResponse) for r in results) == 1
    assert sum(isinstance(r, ConflictException) for r in results) == 1

    async with database.session() as session:
        live = await session.scalar(
            select(func.count())
            .select_from(appointments)
            .where(
                appointments.c.id_medico == physician["id_medico"],
                appointments.c.fecha == fecha,
                appointments.c.estado != "Cancelada",
            )
        )
    assert live == 1


@pytest.mark.asyncio
async def test_cancelled_appointment_frees_slot(
    client: AsyncClient,
    patient: dict,
    other_patient: dict,
    physician: dict,
    service_id: int,
) -> None:
    fecha = days_from_today(20)
    first = await book(client, patient, service_id, physician, fecha=fecha)
    id_cita = first.json()["id_cita"]

    response = await client.post(
        f"/api/citas/cancelar-medico/{id_cita}", headers=physician["headers"]
    )
    assert response.status_code == 200

    again = await book(client, other_patient, service_id, physician, fecha=fecha)
    assert again.status_code == 201


@pytest.mark.asyncio
async def test_availability_lists_occupied_times(
    client: AsyncClient,
    patient: dict,
    physician: dict,
    other_physician: dict,
    service_id: int,
) -> None:
    """Only live appointments of that physician and date are reported."""
    fecha = days_from_today(15)
    await book(client, patient, service_id, physician, fecha=fecha, hora="12:30")
    await book(client, patient, service_id, physician, fecha=fecha, hora="09:00")
    cancelled = await book(client, patient, service_id, physician, fecha=fecha, hora="16:00")
    await book(client, patient, service_id, physician, fecha=days_from_today(16), hora="10:00")
    await book(client, patient, service_id, other_physician, fecha=fecha, hora="10:00")

    await client.post(
        f"/api/citas/cancelar-medico/{cancelled.json()['id_cita']}",
        headers=physician["headers"],
    )

    response = await client.get(
        f"/api/citas/disponibilidad/{physician['id_medico']}/{fecha}"
    )
    assert response.status_code == 200
    assert response.json() == {
        "horas_ocupadas": [{"hora": "09:00:00"}, {"hora": "12:30:00"}]
    }


@pytest.mark.asyncio
async def test_availability_rejects_bad_date(client: AsyncClient) -> None:
    response = await client.get("/api/citas/disponibilidad/1/2025-13-40")
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_confirm_then_cancel_lifecycle(
    client: AsyncClient,
    patient: dict,
    physician: dict,
    service_id: int,
    notifier,
    sender,
) -> None:
    """Book, confirm, cancel as physician; a cancelled appointment stays cancelled."""
    booked = await book(client, patient, service_id, physician)
    id_cita = booked.json()["id_cita"]

    confirmed = await client.post(f"/api/citas/confirmar/{id_cita}", headers=physician["headers"])
    assert confirmed.status_code == 200
    assert confirmed.json()["estado"] == "Confirmada"

    cancelled = await client.post(
        f"/api/citas/cancelar-medico/{id_cita}", headers=physician["headers"]
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["estado"] == "Cancelada"

    again = await client.post(f"/api/citas/confirmar/{id_cita}", headers=physician["headers"])
    assert again.status_code == 409
    assert again.json()["error"] == "InvalidTransitionException"

    await notifier.drain()
    assert [m.subject for m in sender.sent] == [
        "Solicitud de cita recibida",
        "Cita confirmada",
        "Cita cancelada",
    ]

    history = await client.get("/api/citas/mis-citas", headers=patient["headers"])
    assert history.json()[0]["estado"] == "Cancelada"


@pytest.mark.asyncio
async def test_accept_from_pending_pool(
    client: AsyncClient,
    patient: dict,
    physician: dict,
    other_physician: dict,
    service_id: int,
) -> None:
    """The first physician to accept takes the appointment."""
    booked = await book(client, patient, service_id)
    id_cita = booked.json()["id_cita"]

    accepted = await client.post(f"/api/citas/aceptar/{id_cita}", headers=physician["headers"])
    assert accepted.status_code == 200
    assert accepted.json()["estado"] == "Confirmada"

    late = await client.post(f"/api/citas/aceptar/{id_cita}", headers=other_physician["headers"])
    assert late.status_code == 409

    mine = await client.get("/api/citas/mis-citas-medico", headers=physician["headers"])
    assert mine.json()[0]["id_medico"] == physician["id_medico"]
    assert mine.json()[0]["paciente_nombre"] == "Ana"

    pending = await client.get("/api/citas/pendientes", headers=other_physician["headers"])
    assert pending.json() == []


@pytest.mark.asyncio
async def test_accept_into_taken_slot(
    client: AsyncClient,
    patient: dict,
    other_patient: dict,
    physician: dict,
    service_id: int,
) -> None:
    """Accepting cannot double-book the physician."""
    fecha = days_from_today(25)
    await book(client, patient, service_id, physician, fecha=fecha)
    pooled = await book(client, other_patient, service_id, fecha=fecha)

    response = await client.post(
        f"/api/citas/aceptar/{pooled.json()['id_cita']}", headers=physician["headers"]
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_accept_assigned_appointment(
    client: AsyncClient, patient: dict, physician: dict, service_id: int
) -> None:
    booked = await book(client, patient, service_id, physician)
    response = await client.post(
        f"/api/citas/aceptar/{booked.json()['id_cita']}", headers=physician["headers"]
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_confirm_by_other_physician(
    client: AsyncClient,
    patient: dict,
    physician: dict,
    other_physician: dict,
    service_id: int,
) -> None:
    booked = await book(client, patient, service_id, physician)
    id_cita = booked.json()["id_cita"]

    response = await client.post(
        f"/api/citas/confirmar/{id_cita}", headers=other_physician["headers"]
    )
    assert response.status_code == 403

    cancel = await client.post(
        f"/api/citas/cancelar-medico/{id_cita}", headers=other_physician["headers"]
    )
    assert cancel.status_code == 403


@pytest.mark.asyncio
async def test_patient_cannot_use_physician_actions(
    client: AsyncClient, patient: dict, physician: dict, service_id: int
) -> None:
    booked = await book(client, patient, service_id, physician)
    response = await client.post(
        f"/api/citas/confirmar/{booked.json()['id_cita']}", headers=patient["headers"]
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_physician_cannot_cancel_completed(
    client: AsyncClient,
    db_session: AsyncSession,
    patient: dict,
    physician: dict,
    service_id: int,
) -> None:
    booked = await book(client, patient, service_id, physician)
    id_cita = booked.json()["id_cita"]
    await set_status(db_session, id_cita, "Completada")

    response = await client.post(
        f"/api/citas/cancelar-medico/{id_cita}", headers=physician["headers"]
    )
    assert response.status_code == 409


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("days_ahead", "expected_status"),
    [(1, 400), (7, 400), (8, 200), (30, 200)],
)
async def test_patient_cancellation_window(
    client: AsyncClient,
    patient: dict,
    physician: dict,
    service_id: int,
    days_ahead: int,
    expected_status: int,
) -> None:
    """Patients cancel only more than seven days ahead."""
    booked = await book(client, patient, service_id, physician, fecha=days_from_today(days_ahead))
    response = await client.post(
        f"/api/citas/cancelar/{booked.json()['id_cita']}", headers=patient["headers"]
    )
    assert response.status_code == expected_status


@pytest.mark.asyncio
async def test_patient_cancel_twice(
    client: AsyncClient, patient: dict, physician: dict, service_id: int
) -> None:
    booked = await book(client, patient, service_id, physician)
    id_cita = booked.json()["id_cita"]

    first = await client.post(f"/api/citas/cancelar/{id_cita}", headers=patient["headers"])
    assert first.status_code == 200
    assert first.json()["estado"] == "Cancelada"

    second = await client.post(f"/api/citas/cancelar/{id_cita}", headers=patient["headers"])
    assert second.status_code == 409


@pytest.mark.asyncio
async def test_patient_cannot_cancel_others_appointment(
    client: AsyncClient,
    patient: dict,
    other_patient: dict,
    physician: dict,
    service_id: int,
) -> None:
    booked = await book(client, patient, service_id, physician)
    response = await client.post(
        f"/api/citas/cancelar/{booked.json()['id_cita']}", headers=other_patient["headers"]
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unknown_appointment(client: AsyncClient, patient: dict, physician: dict) -> None:
    confirm = await client.post("/api/citas/confirmar/4242", headers=physician["headers"])
    assert confirm.status_code == 404

    cancel = await client.post("/api/citas/cancelar/4242", headers=patient["headers"])
    assert cancel.status_code == 404


@pytest.mark.asyncio
async def test_non_numeric_appointment_id(client: AsyncClient, physician: dict) -> None:
    response = await client.post("/api/citas/confirmar/abc", headers=physician["headers"])
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_notification_failure_adds_warning(
    client: AsyncClient, patient: dict, physician: dict, service_id: int, notifier
) -> None:
    """The state change stands when the email cannot be queued."""
    await notifier.stop()

    booked = await book(client, patient, service_id, physician)
    assert booked.status_code == 201
    assert booked.json()["warning"] == NOTIFICATION_WARNING

    confirmed = await client.post(
        f"/api/citas/confirmar/{booked.json()['id_cita']}", headers=physician["headers"]
    )
    assert confirmed.status_code == 200
    assert confirmed.json()["estado"] == "Confirmada"
    assert confirmed.json()["warning"] == NOTIFICATION_WARNING


@pytest.mark.asyncio
async def test_patient_without_email_gets_warning(
    client: AsyncClient, physician: dict, service_id: int, notifier
) -> None:
    quiet = await register(
        client, "auth0|no-email", "Paciente", {"nombre": "Rosa", "apellido": "Díaz"}
    )

    booked = await book(client, quiet, service_id, physician)
    assert booked.status_code == 201
    assert booked.json()["warning"] == NOTIFICATION_WARNING
    assert notifier.queue.empty()


@pytest.mark.asyncio
async def test_token_email_is_notification_fallback(
    client: AsyncClient, physician: dict, service_id: int, notifier, sender
) -> None:
    """A patient with no profile email is notified at the address in their token."""
    quiet = await register(
        client, "auth0|token-email", "Paciente", {"nombre": "Rosa", "apellido": "Díaz"}
    )
    quiet["headers"] = auth_headers("auth0|token-email", email="rosa.diaz@example.com")

    booked = await book(client, quiet, service_id, physician)
    assert booked.status_code == 201
    assert "warning" not in booked.json()

    assert await notifier.drain() == 1
    assert [m.to for m in sender.sent] == ["rosa.diaz@example.com"]


@pytest.mark.asyncio
async def test_patient_listing_is_newest_first(
    client: AsyncClient,
    patient: dict,
    other_patient: dict,
    physician: dict,
    service_id: int,
) -> None:
    await book(client, patient, service_id, physician, fecha=days_from_today(10))
    await book(client, patient, service_id, physician, fecha=days_from_today(40))
    await book(client, other_patient, service_id, physician, fecha=days_from_today(20))

    response = await client.get("/api/citas/mis-citas", headers=patient["headers"])
    assert response.status_code == 200
    fechas = [c["fecha"] for c in response.json()]
    assert fechas == [days_from_today(40), days_from_today(10)]
    assert response.json()[0]["servicio"] == "Limpieza dental"
    assert response.json()[0]["medico_nombre"] == "Carlos"

    doctor = await client.get("/api/citas/mis-citas-medico", headers=physician["headers"])
    assert [c["fecha"] for c in doctor.json()] == [
        days_from_today(10),
        days_from_today(20),
        days_from_today(40),
    ]
