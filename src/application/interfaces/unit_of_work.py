from __future__ import annotations

from typing import Protocol

from src.application.interfaces.repositories.device_tokens import DeviceTokensRepository
from src.application.interfaces.repositories.notification_logs import NotificationLogsRepository
from src.application.interfaces.repositories.notifications import NotificationsRepository


class UnitOfWork(Protocol):
    device_tokens: DeviceTokensRepository
    notifications: NotificationsRepository
    notification_logs: NotificationLogsRepository
    # Domain events collected during the transaction
    events: list

    async def __aenter__(self) -> UnitOfWork: ...

    async def __aexit__(self, exc_type, exc, tb) -> None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...

    # Record a domain event during the transaction
    def add_event(self, event: object) -> None: ...

    # Drain collected events (used for post-commit dispatch)
    def drain_events(self) -> list: ...
