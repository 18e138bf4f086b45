import asyncio

import jwt
import pytest
from fastapi.testclient import TestClient

from app.api import deps
from app.core.config import get_settings
from app.core.db import Base, create_engine
from app.main import create_app
from tests.fakes import FakeRunner, FakeStorage


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "no_default_env: disable the default Reelcast environment bootstrap fixture for tests that manage their own .env",
    )


@pytest.fixture(autouse=True)
def configure_environment(request, monkeypatch, tmp_path):
    if request.node.get_closest_marker("no_default_env"):
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()
        return
    db_path = tmp_path / "reelcast_test.db"

    monkeypatch.setenv("REELCAST_ENV", "test")
    monkeypatch.setenv("REELCAST_LOG_LEVEL", "debug")
    monkeypatch.setenv("REELCAST_DB_URL", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.setenv("REELCAST_SCRATCH_ROOT", str(tmp_path / "scratch"))
    monkeypatch.setenv("REELCAST_ASSETS_ROOT", str(tmp_path / "assets"))
    monkeypatch.setenv("REELCAST_PUBLIC_BASE_URL", "http://testserver")
    monkeypatch.setenv("REELCAST_STORAGE_BACKEND", "local")
    monkeypatch.setenv("REELCAST_LOCAL_STORAGE_BASE_PATH", str(tmp_path / "objects"))
    monkeypatch.setenv("REELCAST_JWT_SECRET", "test-secret")
    monkeypatch.setenv("REELCAST_JWT_ISSUER", "reelcast-test")
    monkeypatch.setenv("REELCAST_JWT_AUDIENCE", "reelcast")

    get_settings.cache_clear()
    settings = get_settings()
    engine = create_engine(settings)

    async def _setup() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_setup())

    yield

    async def _teardown() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()

    asyncio.run(_teardown())
    get_settings.cache_clear()


@pytest.fixture()
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture()
def fake_storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture()
def client(configure_environment, fake_runner, fake_storage):
    app = create_app()
    app.dependency_overrides[deps.get_process_runner] = lambda: fake_runner
    app.dependency_overrides[deps.get_storage] = lambda: fake_storage
    with TestClient(app) as client:
        yield client


def build_token(user_id: str, *, scopes: list[str] | None = None) -> str:
    payload: dict[str, object] = {"sub": user_id, "iss": "reelcast-test", "aud": "reelcast"}
    if scopes:
        payload["scopes"] = scopes
    return jwt.encode(payload, "test-secret", algorithm="HS256")


@pytest.fixture()
def owner_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {build_token('user-owner')}"}


@pytest.fixture()
def stranger_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {build_token('user-stranger')}"}


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {build_token('user-admin', scopes=['admin'])}"}
