from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request

from src.application.errors import AuthError
from src.config.settings import Settings, get_settings
from src.infrastructure.auth.context import AuthContext
from src.infrastructure.auth.jwt_service import JWTService
from src.infrastructure.db.session import SQLAlchemyUnitOfWork
from src.infrastructure.push.fcm_v1 import FCMv1Client
from src.infrastructure.services.notification_service import NotificationService
from src.infrastructure.services.token_registry import TokenRegistry
from src.infrastructure.websocket.connection_manager import ConnectionManager


async def get_auth_context(request: Request) -> AuthContext:
    context = getattr(request.state, "auth_context", None)
    if context is None:
        raise AuthError("Authentication required")
    return context


async def get_uow(request: Request) -> AsyncIterator[SQLAlchemyUnitOfWork]:
    session_factory = getattr(request.app.state, "session_factory", None)
    if session_factory is None:
        raise RuntimeError("Session factory not configured")
    uow = SQLAlchemyUnitOfWork(session_factory)
    async with uow:
        yield uow


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def get_jwt_service(request: Request) -> JWTService:
    service = getattr(request.app.state, "jwt_service", None)
    if service is None:
        raise RuntimeError("JWT service not configured")
    return service


def get_connection_manager(request: Request) -> ConnectionManager:
    manager = getattr(request.app.state, "connection_manager", None)
    if manager is None:
        raise RuntimeError("Connection manager not configured")
    return manager


def get_push_client(request: Request) -> FCMv1Client:
    client = getattr(request.app.state, "push_client", None)
    if client is None:
        raise RuntimeError("Push client not configured")
    return client


def get_token_registry(
    uow: SQLAlchemyUnitOfWork = Depends(get_uow),
    push_client: FCMv1Client = Depends(get_push_client),
    settings: Settings = Depends(get_app_settings),
) -> TokenRegistry:
    return TokenRegistry(uow, push_client, default_topic=settings.push_default_topic)


def get_notification_service(
    uow: SQLAlchemyUnitOfWork = Depends(get_uow),
    push_client: FCMv1Client = Depends(get_push_client),
    token_registry: TokenRegistry = Depends(get_token_registry),
    connection_manager: ConnectionManager = Depends(get_connection_manager),
) -> NotificationService:
    return NotificationService(
        uow,
        push_client=push_client,
        token_registry=token_registry,
        connection_manager=connection_manager,
    )


async def require_elevated(
    context: AuthContext = Depends(get_auth_context),
    manager: ConnectionManager = Depends(get_connection_manager),
) -> AuthContext:
    context.require_elevated(manager.is_elevated)
    return context
