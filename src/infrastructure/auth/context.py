from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from src.application.errors import AuthError, PermissionDenied
from src.domain.value_objects.role import ElevatedPredicate, Role


@dataclass(slots=True)
class AuthContext:
    user_id: int
    role: str
    claims: dict[str, Any] = field(default_factory=dict)

    def is_elevated(self, predicate: ElevatedPredicate) -> bool:
        return predicate(self.role)

    def require_elevated(self, predicate: ElevatedPredicate) -> None:
        if not predicate(self.role):
            raise PermissionDenied("Role not allowed for this action")


def context_from_claims(claims: dict[str, Any]) -> AuthContext:
    """Build an AuthContext from decoded token claims.

    The user id is read from ``id`` and falls back to ``sub``; it must be an integer.
    """
    raw_id = claims.get("id", claims.get("sub"))
    if raw_id is None or raw_id == "":
        raise AuthError("Token missing subject")
    try:
        user_id = int(raw_id)
    except (TypeError, ValueError) as exc:
        raise AuthError("Token subject is not a valid user id") from exc
    return AuthContext(user_id=user_id, role=Role.parse(claims.get("role")), claims=claims)
