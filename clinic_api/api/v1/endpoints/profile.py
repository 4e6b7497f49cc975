"""Profile endpoints."""

from fastapi import APIRouter, status

from clinic_api.dependencies import CacheManagerDep, CurrentUser, DatabaseSession
from clinic_api.schemas.profile import (
    ProfileRegisterRequest,
    ProfileRegisterResponse,
    ProfileResponse,
    UserRole,
)
from clinic_api.services.catalog_service import CatalogService
from clinic_api.services.user_service import UserService

router = APIRouter(prefix="/profile")


@router.get(
    "/get-role",
    response_model=ProfileResponse,
    status_code=status.HTTP_200_OK,
    summary="Get current user's role and profile",
)
async def get_role(user: CurrentUser, db: DatabaseSession) -> ProfileResponse:
    """
    Resolve the caller and return its role.

    First-time callers are created with the unassigned role. Registered
    users also get the physician or patient profile fields.
    """
    profile = await UserService(db).get_profile(user)
    return ProfileResponse.model_validate(profile)


@router.post(
    "/register",
    response_model=ProfileRegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register physician or patient profile",
)
async def register_profile(
    body: ProfileRegisterRequest,
    user: CurrentUser,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
) -> ProfileRegisterResponse:
    """
    Register the caller as a physician (``Medico``) or patient (``Paciente``).

    A role can be assigned only once.
    """
    role = await UserService(db).register_profile(user.auth0_id, body.rol, body.data)

    if role is UserRole.PHYSICIAN:
        CatalogService(cache_manager).invalidate_physicians()

    return ProfileRegisterResponse(message="Perfil registrado correctamente", role=role)
