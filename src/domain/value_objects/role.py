from __future__ import annotations

from collections.abc import Callable, Iterable
from enum import Enum


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    STAFF = "staff"
    CUSTOMER = "customer"

    @classmethod
    def parse(cls, value: str | None) -> str:
        """Normalise a role claim. Unknown roles are kept as plain lowercase strings."""
        if not value:
            return cls.CUSTOMER.value
        return str(value).strip().lower()


ElevatedPredicate = Callable[[str | None], bool]

DEFAULT_ELEVATED_ROLES = frozenset({Role.SUPER_ADMIN.value, Role.ADMIN.value, Role.STAFF.value})


def elevated_roles_predicate(roles: Iterable[str] = DEFAULT_ELEVATED_ROLES) -> ElevatedPredicate:
    """Build an ``is_elevated(role)`` predicate for a configurable role set."""
    allowed = frozenset(str(r).strip().lower() for r in roles)

    def is_elevated(role: str | None) -> bool:
        return Role.parse(role) in allowed

    return is_elevated
