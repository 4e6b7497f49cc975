"""API router configuration."""

from fastapi import APIRouter

from clinic_api.api.v1.endpoints import appointments, catalog, health, patients, profile

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(profile.router, tags=["Profile"])
api_router.include_router(catalog.router, tags=["Catalog"])
api_router.include_router(appointments.router, tags=["Appointments"])
api_router.include_router(patients.router, tags=["Clinical records"])
