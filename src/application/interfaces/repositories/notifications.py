from __future__ import annotations

from datetime import datetime
from typing import Protocol

from src.domain.models.notification import Notification


class NotificationsRepository(Protocol):
    async def add(self, notification: Notification) -> Notification: ...

    async def get(self, notification_id: int) -> Notification | None: ...

    async def list_for_user(
        self, user_id: int, *, limit: int = 20, offset: int = 0
    ) -> tuple[list[Notification], int]: ...

    async def list_admin(
        self,
        *,
        type: str | None = None,
        unread_only: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Notification], int]: ...

    async def list_all(
        self,
        *,
        type: str | None = None,
        user_id: int | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Notification], int]: ...

    async def count_unread_for_user(self, user_id: int) -> int: ...

    async def count_unread_admin(self) -> int: ...

    async def mark_as_read(self, notification_id: int, user_id: int | None) -> int: ...

    async def mark_all_as_read(self, user_id: int) -> int: ...

    async def stats(self, since: datetime) -> dict[str, int]: ...
