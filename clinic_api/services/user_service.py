"""Identity resolution and profile registration."""

from typing import Any, assert_never

import structlog
from pydantic import ValidationError
from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_api.core.exceptions import (
    BadRequestException,
    ConflictException,
    NotFoundException,
    ValidationException,
)
from clinic_api.database import atomic
from clinic_api.models.patients import patients
from clinic_api.models.physicians import physicians
from clinic_api.models.users import users
from clinic_api.schemas.profile import PatientData, PhysicianData, ResolvedUser, UserRole

logger = structlog.get_logger(__name__)


def parse_role(value: str) -> UserRole:
    """Parse a registrable role, rejecting anything but Medico/Paciente."""
    try:
        role = UserRole(value)
    except ValueError:
        raise BadRequestException("Rol inválido: debe ser 'Medico' o 'Paciente'") from None

    if role is UserRole.UNASSIGNED:
        raise BadRequestException("Rol inválido: debe ser 'Medico' o 'Paciente'")
    return role


class UserService:
    """Service for user identity and profile operations."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def get_user_by_subject(self, subject_id: str) -> ResolvedUser | None:
        """Get user by Auth0 subject identifier."""
        query = select(users).where(users.c.auth0_id == subject_id)
        result = await self.db.execute(query)
        row = result.mappings().first()
        return ResolvedUser.model_validate(dict(row)) if row else None

    async def resolve_user(self, subject_id: str, email: str | None = None) -> ResolvedUser:
        """
        Map an Auth0 subject to an internal user, creating it on first sight.

        New users start with the unassigned role. Two concurrent first
        requests for the same subject race on the unique ``auth0_id``; the
        loser re-reads the row created by the winner. An email seen later
        fills in a user stored without one.
        """
        user = await self.get_user_by_subject(subject_id)
        if user:
            if email and user.email is None:
                await self.db.execute(
                    update(users).where(users.c.id_usuario == user.id_usuario).values(email=email)
                )
                await self.db.commit()
                user = user.model_copy(update={"email": email})
            return user

        try:
            await self.db.execute(
                insert(users).values(
                    auth0_id=subject_id,
                    email=email,
                    rol=UserRole.UNASSIGNED.value,
                )
            )
            await self.db.commit()
            logger.info("user_created", auth0_id=subject_id)
        except IntegrityError:
            await self.db.rollback()
            logger.info("user_create_race", auth0_id=subject_id)

        user = await self.get_user_by_subject(subject_id)
        if user is None:
            raise RuntimeError(f"User {subject_id} vanished after creation")
        return user

    async def _get_extension(self, user: ResolvedUser) -> dict[str, Any] | None:
        match user.rol:
            case UserRole.PHYSICIAN:
                table = physicians
            case UserRole.PATIENT:
                table = patients
            case UserRole.UNASSIGNED:
                return None
            case _:
                assert_never(user.rol)

        result = await self.db.execute(select(table).where(table.c.id_usuario == user.id_usuario))
        row = result.mappings().first()
        return dict(row) if row else None

    async def get_profile(self, user: ResolvedUser) -> dict[str, Any]:
        """
        Get the caller's role and, once registered, the full profile.

        A role without its extension row is a data inconsistency; it is
        logged and reported as unassigned so the client can re-onboard.
        """
        profile: dict[str, Any] = {
            "role": UserRole.UNASSIGNED,
            "auth0Id": user.auth0_id,
            "id_usuario": user.id_usuario,
        }

        if user.rol is UserRole.UNASSIGNED:
            return profile

        extension = await self._get_extension(user)
        if extension is None:
            logger.warning(
                "profile_extension_missing",
                id_usuario=user.id_usuario,
                rol=user.rol.value,
            )
            return profile

        extension.pop("id_usuario", None)
        profile.update(extension)
        profile["role"] = user.rol
        return profile

    async def register_profile(
        self, subject_id: str, role_value: str, data: dict[str, Any]
    ) -> UserRole:
        """
        Create the role extension row and assign the role, all or nothing.

        Raises:
            BadRequestException: If the role is not Medico/Paciente
            ValidationException: If data does not match the role's schema
            NotFoundException: If the user does not exist
            ConflictException: If a role is already assigned or a unique
                value (e.g. cedula_profesional) is taken
        """
        role = parse_role(role_value)

        try:
            match role:
                case UserRole.PHYSICIAN:
                    table, payload = physicians, PhysicianData.model_validate(data)
                case UserRole.PATIENT:
                    table, payload = patients, PatientData.model_validate(data)
                case UserRole.UNASSIGNED:
                    raise BadRequestException("Rol inválido: debe ser 'Medico' o 'Paciente'")
                case _:
                    assert_never(role)
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise ValidationException(f"Datos de perfil inválidos: {fields}") from e

        user = await self.get_user_by_subject(subject_id)
        if user is None:
            raise NotFoundException("Usuario no encontrado")
        if user.rol is not UserRole.UNASSIGNED:
            raise ConflictException(f"El usuario ya tiene el rol {user.rol.value}")

        try:
            async with atomic(self.db):
                await self.db.execute(
                    insert(table).values(id_usuario=user.id_usuario, **payload.model_dump())
                )
                result = await self.db.execute(
                    update(users)
                    .where(
                        users.c.id_usuario == user.id_usuario,
                        users.c.rol == UserRole.UNASSIGNED.value,
                    )
                    .values(rol=role.value)
                )
                if result.rowcount == 0:
                    raise ConflictException("El usuario ya tiene un rol asignado")
        except IntegrityError as e:
            logger.warning(
                "profile_registration_conflict",
                id_usuario=user.id_usuario,
                rol=role.value,
                error=str(e.orig),
            )
            raise ConflictException("Ya existe un perfil con esos datos") from e

        logger.info("profile_registered", id_usuario=user.id_usuario, rol=role.value)
        return role
