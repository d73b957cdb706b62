from __future__ import annotations

from datetime import datetime
from typing import Protocol

from src.domain.models.delivery_log import DeliveryLogEntry


class NotificationLogsRepository(Protocol):
    async def add_many(self, entries: list[DeliveryLogEntry]) -> int: ...

    async def list_logs(
        self,
        *,
        status: str | None = None,
        notification_id: int | None = None,
        user_id: int | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[DeliveryLogEntry], int]: ...

    async def delivery_stats(self, since: datetime) -> dict[str, int]: ...

    async def status_breakdown(self, since: datetime) -> list[dict]: ...
