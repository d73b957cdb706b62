from __future__ import annotations

from collections.abc import Callable

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.application.interfaces.unit_of_work import UnitOfWork


def create_engine(database_url: str) -> AsyncEngine:
    return create_async_engine(database_url, echo=False, future=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


class SQLAlchemyUnitOfWork(UnitOfWork):
    def __init__(self, session_factory: Callable[[], AsyncSession]) -> None:
        self._session_factory = session_factory
        self.session: AsyncSession | None = None
        self.device_tokens = None
        self.notifications = None
        self.notification_logs = None
        self.events: list = []

    async def __aenter__(self) -> UnitOfWork:
        self.session = self._session_factory()
        from src.infrastructure.repos.device_tokens_sqlalchemy import (
            DeviceTokensSQLAlchemyRepository,
        )
        from src.infrastructure.repos.notification_logs_sqlalchemy import (
            NotificationLogsSQLAlchemyRepository,
        )
        from src.infrastructure.repos.notifications_sqlalchemy import (
            NotificationsSQLAlchemyRepository,
        )

        self.device_tokens = DeviceTokensSQLAlchemyRepository(self.session)
        self.notifications = NotificationsSQLAlchemyRepository(self.session)
        self.notification_logs = NotificationLogsSQLAlchemyRepository(self.session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if not self.session:
            return
        try:
            if exc:
                await self.session.rollback()
        finally:
            await self.session.close()
            self.session = None
            self.device_tokens = None
            self.notifications = None
            self.notification_logs = None

    async def commit(self) -> None:
        if not self.session:
            return
        await self.session.commit()

    async def rollback(self) -> None:
        if not self.session:
            return
        await self.session.rollback()

    def add_event(self, event: object) -> None:
        self.events.append(event)

    def drain_events(self) -> list:
        events, self.events = self.events, []
        return events
