import os
from collections.abc import AsyncGenerator
from datetime import date, timedelta

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from fastapi import Request
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

# Load environment variables from .env file
load_dotenv()

# Settings are read at import time; make sure the required ones exist
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./clinica_dev.db")
os.environ.setdefault("AUTH0_DOMAIN", "clinica-test.us.auth0.com")
os.environ.setdefault("AUTH0_AUDIENCE", "https://api.clinica.test")
os.environ.setdefault("LOG_FORMAT", "console")

from clinic_api.core.exceptions import UnauthorizedException  # noqa: E402
from clinic_api.database import Database, get_db  # noqa: E402
from clinic_api.dependencies import get_cache_manager, get_token_claims  # noqa: E402
from clinic_api.main import app  # noqa: E402
from clinic_api.models.services import services  # noqa: E402
from clinic_api.services.notification_service import (  # noqa: E402
    EmailMessage,
    NotificationDispatcher,
)

TEST_SUBJECT_HEADER = "X-Test-Subject"
TEST_EMAIL_HEADER = "X-Test-Email"


class RecordingSender:
    """Email sender that keeps messages in memory and can fail on demand."""

    def __init__(self, failures: int = 0):
        self.sent: list[EmailMessage] = []
        self.attempts = 0
        self.failures = failures

    async def send(self, message: EmailMessage) -> None:
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise RuntimeError("provider unavailable")
        self.sent.append(message)


def auth_headers(subject: str, email: str | None = None) -> dict:
    """Headers that authenticate as ``subject`` under the test auth override."""
    headers = {TEST_SUBJECT_HEADER: subject}
    if email:
        headers[TEST_EMAIL_HEADER] = email
    return headers


def days_from_today(days: int) -> str:
    return (date.today() + timedelta(days=days)).isoformat()


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    """Fresh schema per test, on TEST_DATABASE_URL or a throwaway SQLite file."""
    url = os.getenv("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    db = Database(url)
    await db.drop_schema()
    await db.create_schema()

    yield db

    await db.drop_schema()
    await db.dispose()


@pytest_asyncio.fixture
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with database.session() as session:
        yield session


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def notifier(sender: RecordingSender) -> NotificationDispatcher:
    """Dispatcher without a running worker; tests call drain() to deliver."""
    return NotificationDispatcher(sender, max_attempts=1, retry_delay=0)


@pytest_asyncio.fixture
async def client(
    database: Database,
    db_session: AsyncSession,
    notifier: NotificationDispatcher,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    async def override_claims(request: Request) -> dict:
        subject = request.headers.get(TEST_SUBJECT_HEADER)
        if not subject:
            raise UnauthorizedException("Not authenticated")
        claims = {"sub": subject}
        email = request.headers.get(TEST_EMAIL_HEADER)
        if email:
            claims["email"] = email
        return claims

    app.state.database = database
    app.state.notifier = notifier
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_token_claims] = override_claims
    app.dependency_overrides[get_cache_manager] = lambda: None

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def service_id(db_session: AsyncSession) -> int:
    """Insert a catalog service."""
    result = await db_session.execute(
        services.insert().values(
            nombre="Limpieza dental",
            descripcion="Profilaxis y pulido",
            duracion_minutos=45,
            costo=650,
        )
    )
    await db_session.commit()
    return result.inserted_primary_key[0]


async def register(client: AsyncClient, subject: str, rol: str, data: dict) -> dict:
    """Register a profile through the API and return the caller's profile."""
    headers = auth_headers(subject)
    response = await client.post(
        "/api/profile/register",
        json={"rol": rol, "data": data},
        headers=headers,
    )
    assert response.status_code == 201, response.text

    profile = await client.get("/api/profile/get-role", headers=headers)
    assert profile.status_code == 200
    return {**profile.json(), "headers": headers}


@pytest.fixture
def patient_data() -> dict:
    return {
        "nombre": "Ana",
        "apellido": "López",
        "fecha_nacimiento": "1990-05-14",
        "sexo": "F",
        "telefono": "5551234567",
        "email": "ana.lopez@example.com",
    }


@pytest.fixture
def physician_data() -> dict:
    return {
        "nombre": "Carlos",
        "apellido": "Méndez",
        "especialidad": "Odontología general",
        "cedula_profesional": "CED-1001",
        "telefono": "5557654321",
        "email": "carlos.mendez@example.com",
    }


@pytest_asyncio.fixture
async def patient(client: AsyncClient, patient_data: dict) -> dict:
    return await register(client, "auth0|patient-ana", "Paciente", patient_data)


@pytest_asyncio.fixture
async def other_patient(client: AsyncClient) -> dict:
    return await register(
        client,
        "auth0|patient-luis",
        "Paciente",
        {"nombre": "Luis", "apellido": "Ramírez", "email": "luis@example.com"},
    )


@pytest_asyncio.fixture
async def physician(client: AsyncClient, physician_data: dict) -> dict:
    return await register(client, "auth0|physician-carlos", "Medico", physician_data)


@pytest_asyncio.fixture
async def other_physician(client: AsyncClient) -> dict:
    return await register(
        client,
        "auth0|physician-sofia",
        "Medico",
        {"nombre": "Sofía", "apellido": "Torres", "cedula_profesional": "CED-2002"},
    )
