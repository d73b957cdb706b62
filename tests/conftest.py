from __future__ import annotations

import os
import sys
from collections.abc import AsyncIterator, Callable
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///default.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(PROJECT_ROOT))

# ruff: noqa: E402
from src.config.settings import Settings
from src.infrastructure.auth.jwt_service import JWTService
from src.infrastructure.db.base import Base
from src.infrastructure.db.orm import device_token, notification, notification_log  # noqa: F401
from src.infrastructure.db.session import (
    SQLAlchemyUnitOfWork,
    create_engine,
    create_session_factory,
)
from src.infrastructure.websocket.connection_manager import ConnectionManager
from src.interfaces.http.main import create_app
from tests.fakes import StubPushClient


@pytest.fixture()
def test_settings(tmp_path) -> Settings:
    db_path = tmp_path / "test.db"
    return Settings.model_validate(
        {
            "database_url": f"sqlite+aiosqlite:///{db_path}",
            "jwt_secret_key": "test-secret",
            "log_level": "INFO",
            "environment": "test",
        }
    )


@pytest.fixture()
def push_client() -> StubPushClient:
    return StubPushClient()


@pytest.fixture()
def jwt_service(test_settings: Settings) -> JWTService:
    return JWTService(
        secret_key=test_settings.jwt_secret_key.get_secret_value(),
        algorithm=test_settings.jwt_algorithm,
        access_token_expires_minutes=test_settings.jwt_access_token_expires_minutes,
    )


@pytest.fixture()
def token_factory(jwt_service: JWTService) -> Callable[..., str]:
    def _make(user_id: int, role: str = "customer") -> str:
        return jwt_service.create_access_token(user_id=user_id, role=role)

    return _make


@pytest.fixture()
def auth_headers(token_factory) -> Callable[..., dict[str, str]]:
    def _make(user_id: int, role: str = "customer") -> dict[str, str]:
        return {"Authorization": f"Bearer {token_factory(user_id, role)}"}

    return _make


@pytest.fixture()
def connection_manager() -> ConnectionManager:
    return ConnectionManager()


@pytest.fixture()
def app(test_settings: Settings, jwt_service, push_client, connection_manager):
    return create_app(
        settings=test_settings,
        jwt_service=jwt_service,
        push_client=push_client,
        connection_manager=connection_manager,
    )


@pytest.fixture()
async def client(app) -> AsyncIterator[AsyncClient]:
    engine = app.state.engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as c:
        yield c
    await engine.dispose()


@pytest.fixture()
async def session_factory(test_settings: Settings):
    engine = create_engine(test_settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield create_session_factory(engine)
    await engine.dispose()


@pytest.fixture()
async def uow(session_factory) -> AsyncIterator[SQLAlchemyUnitOfWork]:
    async with SQLAlchemyUnitOfWork(session_factory) as unit:
        yield unit
