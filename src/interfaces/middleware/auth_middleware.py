from __future__ import annotations

from typing import Iterable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from src.application.errors import AuthError
from src.config.settings import Settings
from src.infrastructure.auth.context import context_from_claims

PUBLIC_PATHS: Iterable[str] = (
    "/api/v1/health",
    "/docs",
    "/openapi.json",
    "/redoc",
)


class AuthMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, settings: Settings) -> None:
        super().__init__(app)
        self.settings = settings

    async def dispatch(self, request: Request, call_next) -> Response:
        # Let CORS preflight pass without auth checks
        if request.method == "OPTIONS":
            return await call_next(request)
        if any(request.url.path.startswith(path) for path in PUBLIC_PATHS):
            return await call_next(request)

        try:
            authorization = request.headers.get("Authorization")
            if not authorization:
                raise AuthError("Missing Authorization header")
            scheme, _, token = authorization.partition(" ")
            if scheme.lower() != "bearer" or not token:
                raise AuthError("Invalid Authorization header")
            jwt_service = getattr(request.app.state, "jwt_service", None)
            if jwt_service is None:
                raise RuntimeError("JWT service not configured")
            claims = jwt_service.decode_access(token)
            request.state.auth_context = context_from_claims(claims)
            return await call_next(request)
        except AuthError as exc:
            return JSONResponse(status_code=exc.status_code, content=exc.to_payload())
