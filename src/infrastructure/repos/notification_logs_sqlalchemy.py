from __future__ import annotations

import json
from datetime import datetime

from sqlalchemy import case, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.models.delivery_log import DeliveryLogEntry
from src.domain.value_objects.delivery_status import DeliveryStatus
from src.infrastructure.db.orm.notification_log import NotificationLogORM

# Keeps multi-row INSERT statements under driver parameter limits
INSERT_CHUNK_SIZE = 100


class NotificationLogsSQLAlchemyRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _to_domain(self, orm: NotificationLogORM) -> DeliveryLogEntry:
        return DeliveryLogEntry(
            id=orm.id,
            notification_id=orm.notification_id,
            user_id=orm.user_id,
            target=orm.target,
            title_ar=orm.title_ar,
            title_en=orm.title_en,
            message_ar=orm.message_ar,
            message_en=orm.message_en,
            channel=orm.channel,
            delivery_status=orm.delivery_status,
            provider_message_id=orm.provider_message_id,
            error_message=orm.error_message,
            data=json.loads(orm.data) if orm.data else None,
            sent_at=orm.sent_at,
            created_at=orm.created_at,
        )

    @staticmethod
    def _to_row(entry: DeliveryLogEntry) -> dict:
        return {
            "notification_id": entry.notification_id,
            "user_id": entry.user_id,
            "target": entry.target,
            "title_ar": entry.title_ar,
            "title_en": entry.title_en,
            "message_ar": entry.message_ar,
            "message_en": entry.message_en,
            "channel": entry.channel,
            "delivery_status": entry.delivery_status,
            "provider_message_id": entry.provider_message_id,
            "error_message": entry.error_message,
            "data": json.dumps(entry.data, default=str) if entry.data else None,
            "sent_at": entry.sent_at,
            "created_at": entry.created_at,
        }

    async def add_many(self, entries: list[DeliveryLogEntry]) -> int:
        if not entries:
            return 0
        rows = [self._to_row(e) for e in entries]
        for start in range(0, len(rows), INSERT_CHUNK_SIZE):
            await self.session.execute(
                insert(NotificationLogORM), rows[start : start + INSERT_CHUNK_SIZE]
            )
        return len(rows)

    async def list_logs(
        self,
        *,
        status: str | None = None,
        notification_id: int | None = None,
        user_id: int | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[DeliveryLogEntry], int]:
        conditions = []
        if status:
            conditions.append(NotificationLogORM.delivery_status == status)
        if notification_id is not None:
            conditions.append(NotificationLogORM.notification_id == notification_id)
        if user_id is not None:
            conditions.append(NotificationLogORM.user_id == user_id)

        count_stmt = select(func.count()).select_from(NotificationLogORM).where(*conditions)
        total = (await self.session.execute(count_stmt)).scalar_one()
        stmt = (
            select(NotificationLogORM)
            .where(*conditions)
            .order_by(NotificationLogORM.created_at.desc(), NotificationLogORM.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return [self._to_domain(orm) for orm in result.scalars()], total

    async def delivery_stats(self, since: datetime) -> dict[str, int]:
        def _count_status(status: DeliveryStatus):
            return func.sum(case((NotificationLogORM.delivery_status == status.value, 1), else_=0))

        stmt = select(
            func.count().label("total_sent"),
            _count_status(DeliveryStatus.SENT).label("successful_deliveries"),
            _count_status(DeliveryStatus.FAILED).label("failed_deliveries"),
            _count_status(DeliveryStatus.CLICKED).label("clicked_notifications"),
        ).where(NotificationLogORM.created_at >= since)
        row = (await self.session.execute(stmt)).one()
        return {key: int(value or 0) for key, value in row._mapping.items()}

    async def status_breakdown(self, since: datetime) -> list[dict]:
        stmt = (
            select(NotificationLogORM.delivery_status, func.count().label("count"))
            .where(NotificationLogORM.created_at >= since)
            .group_by(NotificationLogORM.delivery_status)
            .order_by(NotificationLogORM.delivery_status)
        )
        result = await self.session.execute(stmt)
        return [{"delivery_status": row.delivery_status, "count": row.count} for row in result]
