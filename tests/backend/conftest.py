import os
import tempfile
import uuid

# Keep the module-level app (portal.main.app) away from the working directory
_SCRATCH = tempfile.mkdtemp(prefix="portal-tests-")
os.environ["ENV"] = "development"
os.environ["SQLITE_DB_PATH"] = os.path.join(_SCRATCH, "default.sqlite")
os.environ["UPLOADS_PATH"] = os.path.join(_SCRATCH, "uploads")
os.environ.pop("ADMIN_PASSWORD", None)

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from portal.config import Settings
from portal.core.db import Database
from portal.core.schema import ensure_schema
from portal.core.security import hash_password
from portal.main import create_app
from portal.services.storage import LocalStorage

TEST_SECRET = "test-secret-with-enough-entropy-0123456789"


@pytest.fixture
def settings(tmp_path):
    """
    Settings pointing at a throwaway database file and uploads directory.
    """
    return Settings(
        env="development",
        jwt_secret=TEST_SECRET,
        sqlite_db_path=str(tmp_path / "portal.sqlite"),
        uploads_path=str(tmp_path / "uploads"),
    )


@pytest_asyncio.fixture
async def db(settings):
    """
    Persistence adapter over a fresh database with the full schema.
    """
    database = Database(settings.sqlite_db_path)
    await ensure_schema(database)
    yield database
    await database.shutdown()


@pytest.fixture
def storage(settings):
    return LocalStorage(settings.uploads_path)


@pytest.fixture
def app(settings, db, storage):
    return create_app(settings, database=db, storage=storage)


@pytest_asyncio.fixture
async def client(app):
    """
    Provide an HTTPX AsyncClient bound to a freshly built app.
    Startup hooks do not run under ASGITransport; the `db` fixture has
    already created the schema.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        yield async_client


@pytest_asyncio.fixture
async def create_user(db):
    """
    Factory fixture to insert users directly.
    Returns (row, password); pass password=None for a guest account.
    """

    async def _create_user(
        password: str | None = "UserPass!23",
        role: str = "user",
        approval_status: str = "approved",
        email: str | None = None,
        name: str | None = None,
        is_banned: bool = False,
    ) -> tuple[dict, str | None]:
        email = email or f"{role}_{uuid.uuid4().hex[:6]}@example.com"
        result = await db.run(
            """INSERT INTO users (name, email, password_hash, role, approval_status, is_banned)
               VALUES (?, ?, ?, ?, ?, ?)""",
            [
                name or f"{role.title()} {uuid.uuid4().hex[:4]}",
                email,
                hash_password(password) if password else None,
                role,
                approval_status,
                1 if is_banned else 0,
            ],
        )
        row = await db.fetch_one("SELECT * FROM users WHERE id = ?", [result.insert_id])
        return row, password

    return _create_user


@pytest_asyncio.fixture
async def create_admin(create_user):
    """
    Factory fixture to create admin users for privileged endpoints.
    """

    async def _create_admin(password: str = "AdminPass!23", role: str = "admin") -> tuple[dict, str]:
        return await create_user(password=password, role=role)

    return _create_admin


@pytest_asyncio.fixture
async def auth_header_factory(client):
    """
    Helper fixture to obtain Authorization headers via the login endpoint.
    """

    async def _get_headers(email: str, password: str) -> dict[str, str]:
        resp = await client.post("/api/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.text
        token = resp.json()["token"]
        return {"Authorization": f"Bearer {token}"}

    return _get_headers
