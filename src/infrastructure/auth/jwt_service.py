from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTError

from src.application.errors import AuthError

ACCESS_TOKEN_TYPE = "access"


class JWTService:
    """Signs and verifies the bearer tokens shared with the main application.

    Tokens carry the numeric user id under ``id`` (mirrored in ``sub``) and the
    caller's ``role``. Tokens minted elsewhere may omit ``typ``.
    """

    def __init__(
        self,
        *,
        secret_key: str,
        algorithm: str,
        access_token_expires_minutes: int,
        issuer: str | None = None,
        audience: str | None = None,
    ) -> None:
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_token_expires_minutes = access_token_expires_minutes
        self.issuer = issuer
        self.audience = audience

    def create_access_token(
        self,
        *,
        user_id: int,
        role: str,
        extra_claims: Mapping[str, Any] | None = None,
    ) -> str:
        now = datetime.now(timezone.utc)
        claims: dict[str, Any] = {
            **(extra_claims or {}),
            "sub": str(user_id),
            "id": user_id,
            "role": role,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(minutes=self.access_token_expires_minutes)).timestamp()),
            "typ": ACCESS_TOKEN_TYPE,
        }
        if self.issuer:
            claims["iss"] = self.issuer
        if self.audience:
            claims["aud"] = self.audience
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def decode(self, token: str) -> dict[str, Any]:
        try:
            return jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                audience=self.audience,
            )
        except ExpiredSignatureError as exc:
            raise AuthError("Token expired") from exc
        except JWTError as exc:
            raise AuthError("Token validation failed") from exc

    def decode_access(self, token: str) -> dict[str, Any]:
        claims = self.decode(token)
        token_type = claims.get("typ")
        if token_type is not None and token_type != ACCESS_TOKEN_TYPE:
            raise AuthError("Invalid access token")
        return claims
