from __future__ import annotations

import math
from dataclasses import dataclass

MAX_PAGE_SIZE = 1000


@dataclass(slots=True, frozen=True)
class PageRequest:
    page: int
    limit: int

    @classmethod
    def sanitize(cls, page: int | str | None, limit: int | str | None, *, default_limit: int = 20):
        """Clamp page to >= 1 and limit to [1, MAX_PAGE_SIZE]; garbage falls back to defaults."""
        return cls(
            page=max(1, _to_int(page, 1)),
            limit=max(1, min(MAX_PAGE_SIZE, _to_int(limit, default_limit))),
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def describe(self, total: int) -> dict[str, int]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": total,
            "pages": math.ceil(total / self.limit) if total else 0,
        }


def _to_int(value: int | str | None, default: int) -> int:
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default
