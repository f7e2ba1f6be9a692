# tests/conftest.py
import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from house_of_charity.core.config import Settings
from house_of_charity.main import create_app
from house_of_charity.repos.fixtures import FIXTURE_PASSWORD
from house_of_charity.repos.inmemory import InMemoryRepo


@pytest.fixture(scope="session")
def anyio_backend():
    # keep AnyIO on asyncio for the whole test session
    return "asyncio"


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        environment="test",
        db_mode="mock",
        jwt_secret="test-secret",
        log_level="WARNING",
    )


@pytest.fixture
def repo():
    return InMemoryRepo()


@pytest.fixture
async def app(settings, repo):
    app = create_app(settings, repository=repo)
    async with LifespanManager(app):
        yield app


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def login(client):
    async def _login(email: str, password: str = FIXTURE_PASSWORD) -> dict:
        r = await client.post("/api/auth/login", json={"email": email, "password": password})
        assert r.status_code == 200, r.text
        return {"Authorization": f"Bearer {r.json()['token']}"}

    return _login


@pytest.fixture
def register(client):
    async def _register(email: str, user_type: str = "donor", name: str = "Test User",
                        password: str = "pw123456", **profile) -> dict:
        r = await client.post("/api/auth/register", json={
            "email": email,
            "password": password,
            "userData": {"user_type": user_type, "name": name, **profile},
        })
        assert r.status_code == 201, r.text
        data = r.json()
        data["headers"] = {"Authorization": f"Bearer {data['token']}"}
        return data

    return _register
