from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.config.settings import Settings, get_settings
from src.domain.value_objects.role import elevated_roles_predicate
from src.infrastructure.auth.jwt_service import JWTService
from src.infrastructure.db.session import create_engine, create_session_factory
from src.infrastructure.push.fcm_v1 import FCMv1Client
from src.infrastructure.websocket.connection_manager import ConnectionManager
from src.interfaces.http.deps import get_app_settings
from src.interfaces.http.routers import notifications as notifications_router
from src.interfaces.middleware.auth_middleware import AuthMiddleware
from src.interfaces.middleware.error_handler import register_error_handlers


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        yield
    finally:
        engine = getattr(app.state, "engine", None)
        if engine is not None:
            await engine.dispose()


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    root = logging.getLogger()
    # Avoid adding duplicate handlers on reload
    if not any(isinstance(h, logging.StreamHandler) for h in root.handlers):
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        )
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)
    # Align common libraries
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "sqlalchemy.engine", "httpx"):
        logging.getLogger(name).setLevel(level)


def create_app(
    *,
    settings: Settings | None = None,
    jwt_service: JWTService | None = None,
    push_client: FCMv1Client | None = None,
    connection_manager: ConnectionManager | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    _configure_logging(settings.log_level)
    app = FastAPI(
        title="Notification Fan-out Service",
        version="0.1.0",
        description="Device tokens, push delivery, notification inbox and live updates",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = create_engine(settings.database_url)
    app.state.session_factory = create_session_factory(app.state.engine)
    app.state.jwt_service = jwt_service or JWTService(
        secret_key=settings.jwt_secret_key.get_secret_value(),
        algorithm=settings.jwt_algorithm,
        access_token_expires_minutes=settings.jwt_access_token_expires_minutes,
        issuer=settings.jwt_issuer,
        audience=settings.jwt_audience,
    )
    # Unconfigured credentials yield a client that reports structured failures
    app.state.push_client = push_client or FCMv1Client.from_settings(settings)
    # One live-session registry per process
    app.state.connection_manager = connection_manager or ConnectionManager(
        is_elevated=elevated_roles_predicate(settings.elevated_roles_set),
        admin_room=settings.admin_room,
    )
    register_error_handlers(app)

    # Group all API routes behind a single versioned prefix
    api = APIRouter(prefix="/api/v1")
    api.include_router(notifications_router.router)

    @api.get("/health", tags=["health"])
    async def health(_: Settings = Depends(get_app_settings)) -> dict[str, str | int]:  # noqa: ANN001
        return {
            "status": "ok",
            "push": "configured" if app.state.push_client.is_initialized else "unavailable",
            "live_connections": app.state.connection_manager.connected_count(),
        }

    app.include_router(api)

    # Add Auth first, then CORS last so CORS runs outermost and can handle preflight OPTIONS
    app.add_middleware(AuthMiddleware, settings=settings)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


app = create_app()
