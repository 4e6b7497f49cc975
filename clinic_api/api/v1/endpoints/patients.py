"""Clinical record endpoints, gated by the physician-patient access link."""

from fastapi import APIRouter, status

from clinic_api.dependencies import CurrentPhysician, DatabaseSession, LinkedPatientId
from clinic_api.schemas.clinical import (
    AntecedentResponse,
    AntecedentsReplace,
    DentalHistoryResponse,
    DentalHistoryUpdate,
    EvolutionCreate,
    EvolutionResponse,
    PatientRecord,
)
from clinic_api.services.clinical_service import ClinicalRecordService

router = APIRouter(prefix="/paciente/{id_paciente}")


@router.get("/perfil", response_model=PatientRecord, summary="Patient profile")
async def get_patient_profile(id_paciente: LinkedPatientId, db: DatabaseSession):
    """Demographics of a patient linked to the caller."""
    return await ClinicalRecordService(db).get_patient(id_paciente)


@router.get(
    "/antecedentes",
    response_model=list[AntecedentResponse],
    summary="List antecedents",
)
async def list_antecedents(id_paciente: LinkedPatientId, db: DatabaseSession):
    """List the patient's antecedents."""
    return await ClinicalRecordService(db).list_antecedents(id_paciente)


@router.put(
    "/antecedentes",
    response_model=list[AntecedentResponse],
    summary="Replace antecedents",
)
async def replace_antecedents(
    body: AntecedentsReplace,
    id_paciente: LinkedPatientId,
    db: DatabaseSession,
):
    """Replace the patient's antecedents with the submitted list."""
    return await ClinicalRecordService(db).replace_antecedents(id_paciente, body.antecedentes)


@router.get(
    "/historia-odontologica",
    response_model=DentalHistoryResponse,
    summary="Get odontological history",
)
async def get_dental_history(id_paciente: LinkedPatientId, db: DatabaseSession):
    """Get the patient's odontological history."""
    return await ClinicalRecordService(db).get_dental_history(id_paciente)


@router.put(
    "/historia-odontologica",
    response_model=DentalHistoryResponse,
    summary="Create or update odontological history",
)
async def save_dental_history(
    body: DentalHistoryUpdate,
    id_paciente: LinkedPatientId,
    physician: CurrentPhysician,
    db: DatabaseSession,
):
    """Create the odontological history or update the submitted fields."""
    service = ClinicalRecordService(db)
    return await service.save_dental_history(id_paciente, physician["id_medico"], body)


@router.get(
    "/evolucion",
    response_model=list[EvolutionResponse],
    summary="List evolution entries",
)
async def list_evolution(id_paciente: LinkedPatientId, db: DatabaseSession):
    """List the patient's evolution entries, most recent first."""
    return await ClinicalRecordService(db).list_evolution(id_paciente)


@router.post(
    "/evolucion",
    response_model=EvolutionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add evolution entry",
)
async def add_evolution(
    body: EvolutionCreate,
    id_paciente: LinkedPatientId,
    physician: CurrentPhysician,
    db: DatabaseSession,
):
    """Record a new evolution entry for the patient."""
    service = ClinicalRecordService(db)
    return await service.add_evolution(id_paciente, physician["id_medico"], body)
