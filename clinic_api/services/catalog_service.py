"""Service catalog and physician directory."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_api.core.redis_client import CacheManager
from clinic_api.models.physicians import physicians
from clinic_api.models.services import services


class CatalogService:
    """Read-only listings shown before booking."""

    # Cache TTL in seconds
    SERVICE_LIST_CACHE_TTL = 600  # 10 minutes, catalog rarely changes
    PHYSICIAN_LIST_CACHE_TTL = 300  # 5 minutes

    SERVICE_LIST_KEY = "servicios:list"
    PHYSICIAN_LIST_KEY = "medicos:list"

    def __init__(self, cache_manager: CacheManager | None = None):
        """Initialize service with optional cache manager."""
        self.cache = cache_manager

    async def list_services(self, db: AsyncSession) -> list[dict]:
        """List all services ordered by name."""
        if self.cache:
            cached = self.cache.get_json(self.SERVICE_LIST_KEY)
            if cached is not None:
                return cached

        query = select(services).order_by(services.c.nombre)
        result = await db.execute(query)
        items = [dict(row) for row in result.mappings().all()]

        if self.cache:
            self.cache.set_json(self.SERVICE_LIST_KEY, items, ttl=self.SERVICE_LIST_CACHE_TTL)

        return items

    async def list_physicians(self, db: AsyncSession) -> list[dict]:
        """List physician summaries ordered by surname."""
        if self.cache:
            cached = self.cache.get_json(self.PHYSICIAN_LIST_KEY)
            if cached is not None:
                return cached

        query = select(
            physicians.c.id_medico,
            physicians.c.nombre,
            physicians.c.apellido,
            physicians.c.especialidad,
        ).order_by(physicians.c.apellido, physicians.c.nombre)
        result = await db.execute(query)
        items = [dict(row) for row in result.mappings().all()]

        if self.cache:
            self.cache.set_json(self.PHYSICIAN_LIST_KEY, items, ttl=self.PHYSICIAN_LIST_CACHE_TTL)

        return items

    def invalidate_physicians(self) -> None:
        """Drop the cached physician directory."""
        if self.cache:
            self.cache.delete(self.PHYSICIAN_LIST_KEY)

    async def service_exists(self, db: AsyncSession, service_id: int) -> bool:
        """Check whether a service id is in the catalog."""
        result = await db.execute(
            select(services.c.id_servicio).where(services.c.id_servicio == service_id)
        )
        return result.first() is not None

    async def physician_exists(self, db: AsyncSession, physician_id: int) -> bool:
        """Check whether a physician id exists."""
        result = await db.execute(
            select(physicians.c.id_medico).where(physicians.c.id_medico == physician_id)
        )
        return result.first() is not None
