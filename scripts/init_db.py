"""Script to initialize the database and seed the service catalog."""

import argparse
import asyncio

from sqlalchemy import func, select

from clinic_api.config import settings
from clinic_api.database import Database
from clinic_api.models.services import services

DEFAULT_SERVICES = [
    {
        "nombre": "Consulta general",
        "descripcion": "Valoración inicial",
        "duracion_minutos": 30,
        "costo": 400,
    },
    {
        "nombre": "Limpieza dental",
        "descripcion": "Profilaxis y pulido",
        "duracion_minutos": 45,
        "costo": 650,
    },
    {
        "nombre": "Resina",
        "descripcion": "Restauración con resina",
        "duracion_minutos": 60,
        "costo": 900,
    },
    {
        "nombre": "Extracción",
        "descripcion": "Extracción simple",
        "duracion_minutos": 45,
        "costo": 800,
    },
    {
        "nombre": "Endodoncia",
        "descripcion": "Tratamiento de conductos",
        "duracion_minutos": 90,
        "costo": 3500,
    },
]


async def init_db(seed: bool) -> None:
    """Create all tables and optionally seed the service catalog."""
    database = Database(settings.database_url)
    try:
        await database.create_schema()

        if seed:
            async with database.session() as session:
                count = (await session.execute(select(func.count()).select_from(services))).scalar()
                if not count:
                    await session.execute(services.insert(), DEFAULT_SERVICES)
                    await session.commit()
                    print(f"✓ Seeded {len(DEFAULT_SERVICES)} services")

        print("✓ Database initialized successfully!")
    finally:
        await database.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--seed", action="store_true", help="Insert the default service catalog")
    args = parser.parse_args()
    asyncio.run(init_db(args.seed))
