"""Service catalog and physician directory endpoints."""

from fastapi import APIRouter, status

from clinic_api.dependencies import CacheManagerDep, DatabaseSession
from clinic_api.schemas.catalog import PhysicianSummary, ServiceResponse
from clinic_api.services.catalog_service import CatalogService

router = APIRouter()


@router.get(
    "/servicios",
    response_model=list[ServiceResponse],
    status_code=status.HTTP_200_OK,
    summary="List services",
)
async def list_services(db: DatabaseSession, cache_manager: CacheManagerDep):
    """List the clinic's services."""
    return await CatalogService(cache_manager).list_services(db)


@router.get(
    "/medicos",
    response_model=list[PhysicianSummary],
    status_code=status.HTTP_200_OK,
    summary="List physicians",
)
async def list_physicians(db: DatabaseSession, cache_manager: CacheManagerDep):
    """List physicians patients can book with."""
    return await CatalogService(cache_manager).list_physicians(db)
