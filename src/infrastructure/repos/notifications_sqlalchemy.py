from __future__ import annotations

import json
from datetime import datetime, timezone

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.models.notification import Notification
from src.infrastructure.db.orm.notification import NotificationORM


class NotificationsSQLAlchemyRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _to_domain(self, orm: NotificationORM) -> Notification:
        data = json.loads(orm.data) if orm.data else None
        return Notification(
            id=orm.id,
            user_id=orm.user_id,
            title_ar=orm.title_ar,
            title_en=orm.title_en,
            message_ar=orm.message_ar,
            message_en=orm.message_en,
            type=orm.type,
            data=data,
            is_read=orm.is_read,
            created_at=orm.created_at,
            read_at=orm.read_at,
        )

    def _to_orm(self, notification: Notification) -> NotificationORM:
        data_str = json.dumps(notification.data, default=str) if notification.data else None
        return NotificationORM(
            user_id=notification.user_id,
            title_ar=notification.title_ar,
            title_en=notification.title_en,
            message_ar=notification.message_ar,
            message_en=notification.message_en,
            type=notification.type,
            data=data_str,
            is_read=notification.is_read,
            created_at=notification.created_at,
            read_at=notification.read_at,
        )

    async def _page(
        self, conditions: list, limit: int, offset: int
    ) -> tuple[list[Notification], int]:
        count_stmt = select(func.count()).select_from(NotificationORM).where(*conditions)
        total = (await self.session.execute(count_stmt)).scalar_one()
        stmt = (
            select(NotificationORM)
            .where(*conditions)
            .order_by(NotificationORM.created_at.desc(), NotificationORM.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return [self._to_domain(orm) for orm in result.scalars().all()], total

    async def add(self, notification: Notification) -> Notification:
        orm = self._to_orm(notification)
        self.session.add(orm)
        await self.session.flush()
        return self._to_domain(orm)

    async def get(self, notification_id: int) -> Notification | None:
        stmt = select(NotificationORM).where(NotificationORM.id == notification_id)
        result = await self.session.execute(stmt)
        orm = result.scalar_one_or_none()
        return self._to_domain(orm) if orm else None

    async def list_for_user(
        self, user_id: int, *, limit: int = 20, offset: int = 0
    ) -> tuple[list[Notification], int]:
        # Admin-inbox rows (user_id IS NULL) never appear here
        return await self._page([NotificationORM.user_id == user_id], limit, offset)

    async def list_admin(
        self,
        *,
        type: str | None = None,
        unread_only: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Notification], int]:
        conditions = [NotificationORM.user_id.is_(None)]
        if type:
            conditions.append(NotificationORM.type == type)
        if unread_only:
            conditions.append(NotificationORM.is_read == False)  # noqa: E712
        return await self._page(conditions, limit, offset)

    async def list_all(
        self,
        *,
        type: str | None = None,
        user_id: int | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Notification], int]:
        conditions = []
        if type:
            conditions.append(NotificationORM.type == type)
        if user_id is not None:
            conditions.append(NotificationORM.user_id == user_id)
        return await self._page(conditions, limit, offset)

    async def count_unread_for_user(self, user_id: int) -> int:
        stmt = select(func.count()).where(
            NotificationORM.user_id == user_id,
            NotificationORM.is_read == False,  # noqa: E712
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def count_unread_admin(self) -> int:
        stmt = select(func.count()).where(
            NotificationORM.user_id.is_(None),
            NotificationORM.is_read == False,  # noqa: E712
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def mark_as_read(self, notification_id: int, user_id: int | None) -> int:
        """Mark one row read.

        With a user id the row must belong to that user or be an admin-inbox row.
        Without one (system caller) no ownership filter applies.
        """
        conditions = [NotificationORM.id == notification_id]
        if user_id is not None:
            conditions.append(
                or_(NotificationORM.user_id == user_id, NotificationORM.user_id.is_(None))
            )
        stmt = (
            update(NotificationORM)
            .where(*conditions)
            .values(is_read=True, read_at=datetime.now(timezone.utc))
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def mark_all_as_read(self, user_id: int) -> int:
        stmt = (
            update(NotificationORM)
            .where(
                NotificationORM.user_id == user_id,
                NotificationORM.is_read == False,  # noqa: E712
            )
            .values(is_read=True, read_at=datetime.now(timezone.utc))
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def stats(self, since: datetime) -> dict[str, int]:
        def _count_when(condition):
            return func.sum(case((condition, 1), else_=0))

        stmt = select(
            func.count().label("total_notifications"),
            _count_when(NotificationORM.is_read == True).label("read_notifications"),  # noqa: E712
            _count_when(NotificationORM.is_read == False).label(  # noqa: E712
                "unread_notifications"
            ),
            _count_when(NotificationORM.type == "order").label("order_notifications"),
            _count_when(NotificationORM.type == "promotion").label("promotion_notifications"),
            _count_when(NotificationORM.type == "general").label("general_notifications"),
            _count_when(NotificationORM.created_at >= since).label("recent_notifications"),
        ).select_from(NotificationORM)
        row = (await self.session.execute(stmt)).one()
        return {key: int(value or 0) for key, value in row._mapping.items()}
