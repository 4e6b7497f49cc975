"""HTML bodies for patient appointment emails."""

from datetime import date, time
from html import escape

_LAYOUT = """\
<div style="font-family: Arial, sans-serif; max-width: 560px;
            margin: 0 auto; color: #1f2933;">
  <h2 style="color: #0b7285;">{title}</h2>
  <p>Hola {name},</p>
  {body}
  <p style="color: #616e7c; font-size: 12px;">
    Este es un mensaje automático, por favor no responda.
  </p>
</div>
"""


def _details(service: str | None, appointment_date: date, appointment_time: time) -> str:
    rows = [
        f"<li><strong>Fecha:</strong> {appointment_date.strftime('%d/%m/%Y')}</li>",
        f"<li><strong>Hora:</strong> {appointment_time.strftime('%H:%M')}</li>",
    ]
    if service:
        rows.insert(0, f"<li><strong>Servicio:</strong> {escape(service)}</li>")
    return "<ul>" + "".join(rows) + "</ul>"


def _render(title: str, name: str, body: str) -> str:
    return _LAYOUT.format(title=escape(title), name=escape(name), body=body)


def appointment_requested_template(
    name: str, service: str | None, appointment_date: date, appointment_time: time
) -> tuple[str, str]:
    """Subject and body for a freshly booked appointment."""
    body = (
        "<p>Recibimos su solicitud de cita. Le avisaremos cuando el médico la confirme.</p>"
        + _details(service, appointment_date, appointment_time)
    )
    subject = "Solicitud de cita recibida"
    return subject, _render(subject, name, body)


def appointment_confirmed_template(
    name: str,
    service: str | None,
    appointment_date: date,
    appointment_time: time,
    physician: str | None,
) -> tuple[str, str]:
    """Subject and body for an accepted or confirmed appointment."""
    who = f" con {escape(physician)}" if physician else ""
    body = f"<p>Su cita{who} ha sido confirmada.</p>" + _details(
        service, appointment_date, appointment_time
    )
    subject = "Cita confirmada"
    return subject, _render(subject, name, body)


def appointment_cancelled_template(
    name: str,
    service: str | None,
    appointment_date: date,
    appointment_time: time,
    by_physician: bool,
) -> tuple[str, str]:
    """Subject and body for a cancelled appointment."""
    if by_physician:
        lead = (
            "<p>Lamentamos informarle que el médico canceló su cita. "
            "Puede agendar una nueva cuando lo desee.</p>"
        )
    else:
        lead = "<p>Su cita fue cancelada correctamente.</p>"
    subject = "Cita cancelada"
    body = lead + _details(service, appointment_date, appointment_time)
    return subject, _render(subject, name, body)
