"""Database models."""

from clinic_api.models.appointments import appointments
from clinic_api.models.base import metadata
from clinic_api.models.clinical import antecedents, dental_histories, evolution_entries
from clinic_api.models.patients import patients
from clinic_api.models.physicians import physicians
from clinic_api.models.services import services
from clinic_api.models.users import users

__all__ = [
    "antecedents",
    "appointments",
    "dental_histories",
    "evolution_entries",
    "metadata",
    "patients",
    "physicians",
    "services",
    "users",
]
