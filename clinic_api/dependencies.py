"""FastAPI dependencies."""

from typing import Annotated, Any

from fastapi import Depends, Path, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_api.config import settings
from clinic_api.core.exceptions import ForbiddenException, NotFoundException, UnauthorizedException
from clinic_api.core.redis_client import CacheManager, get_redis_client
from clinic_api.core.security import Auth0TokenVerifier
from clinic_api.database import get_db
from clinic_api.models.patients import patients
from clinic_api.models.physicians import physicians
from clinic_api.schemas.profile import ResolvedUser, UserRole
from clinic_api.services.clinical_service import ClinicalRecordService
from clinic_api.services.notification_service import NotificationDispatcher
from clinic_api.services.user_service import UserService

# Security
security = HTTPBearer(auto_error=False)


def get_token_verifier(request: Request) -> Auth0TokenVerifier:
    """Return the token verifier attached to the running application."""
    return request.app.state.token_verifier


def get_notifier(request: Request) -> NotificationDispatcher:
    """Return the notification queue attached to the running application."""
    return request.app.state.notifier


def get_cache_manager() -> CacheManager:
    """Get cache manager backed by the shared Redis client."""
    return CacheManager(get_redis_client(), namespace=settings.cache_namespace)


async def get_token_claims(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    verifier: Annotated[Auth0TokenVerifier, Depends(get_token_verifier)],
) -> dict[str, Any]:
    """
    Validate the bearer token and return its claims.

    Raises:
        UnauthorizedException: If the header is missing or the token invalid
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedException("Not authenticated")

    return await verifier.verify(credentials.credentials)


async def get_current_user(
    claims: Annotated[dict[str, Any], Depends(get_token_claims)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ResolvedUser:
    """
    Resolve the caller to an internal user, creating it on first request.

    The token's email claim, when present, is stored on the user and used
    as a fallback address for patient notifications.
    """
    email = claims.get(settings.auth0_email_claim)
    return await UserService(db).resolve_user(
        claims["sub"],
        email=email if isinstance(email, str) else None,
    )


async def _get_extension_row(db: AsyncSession, table, user: ResolvedUser) -> dict[str, Any] | None:
    result = await db.execute(select(table).where(table.c.id_usuario == user.id_usuario))
    row = result.mappings().first()
    return dict(row) if row else None


async def get_current_physician(
    user: Annotated[ResolvedUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict[str, Any]:
    """Require the caller to be a registered physician."""
    if user.rol is not UserRole.PHYSICIAN:
        raise ForbiddenException("Solo los médicos pueden realizar esta acción")

    physician = await _get_extension_row(db, physicians, user)
    if physician is None:
        raise NotFoundException("Perfil de médico no encontrado")
    return physician


async def get_current_patient(
    user: Annotated[ResolvedUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict[str, Any]:
    """
    Require the caller to be a registered patient.

    Unregistered callers get 404 so the client sends them to onboarding;
    physicians get 403.
    """
    if user.rol is UserRole.PHYSICIAN:
        raise ForbiddenException("Solo los pacientes pueden realizar esta acción")

    patient = await _get_extension_row(db, patients, user)
    if patient is None:
        raise NotFoundException("Perfil de paciente no encontrado; complete su registro")
    return patient


async def require_patient_access(
    id_paciente: Annotated[int, Path(gt=0)],
    physician: Annotated[dict, Depends(get_current_physician)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> int:
    """Allow a physician through only if an appointment links them to the patient."""
    await ClinicalRecordService(db).ensure_access(physician["id_medico"], id_paciente)
    return id_paciente


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[ResolvedUser, Depends(get_current_user)]
CurrentPhysician = Annotated[dict, Depends(get_current_physician)]
CurrentPatient = Annotated[dict, Depends(get_current_patient)]
LinkedPatientId = Annotated[int, Depends(require_patient_access)]
Notifier = Annotated[NotificationDispatcher, Depends(get_notifier)]
CacheManagerDep = Annotated[CacheManager, Depends(get_cache_manager)]
