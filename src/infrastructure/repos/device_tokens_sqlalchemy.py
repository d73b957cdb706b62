from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import case, func, select, update
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.models.device_token import DeviceToken
from src.infrastructure.db.orm.device_token import DeviceTokenORM

_UPSERT_COLUMNS = ("user_id", "platform", "device_id", "app_version", "is_active", "last_used_at")


class DeviceTokensSQLAlchemyRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _to_domain(self, orm: DeviceTokenORM) -> DeviceToken:
        return DeviceToken(
            id=orm.id,
            user_id=orm.user_id,
            token=orm.token,
            platform=orm.platform,
            device_id=orm.device_id,
            app_version=orm.app_version,
            is_active=orm.is_active,
            last_used_at=orm.last_used_at,
            created_at=orm.created_at,
            updated_at=orm.updated_at,
        )

    def _dialect_name(self) -> str:
        return self.session.get_bind().dialect.name

    async def upsert(
        self,
        *,
        user_id: int,
        token: str,
        platform: str,
        device_id: str | None = None,
        app_version: str | None = None,
    ) -> None:
        """Insert or refresh a token row in a single statement keyed on the unique token."""
        now = datetime.now(timezone.utc)
        values = {
            "user_id": user_id,
            "token": token,
            "platform": platform,
            "device_id": device_id,
            "app_version": app_version,
            "is_active": True,
            "last_used_at": now,
            "created_at": now,
            "updated_at": now,
        }
        dialect = self._dialect_name()
        if dialect == "mysql":
            stmt = mysql.insert(DeviceTokenORM).values(**values)
            refreshed = {col: stmt.inserted[col] for col in _UPSERT_COLUMNS}
            stmt = stmt.on_duplicate_key_update(**refreshed, updated_at=now)
        else:
            insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
            stmt = insert(DeviceTokenORM).values(**values)
            refreshed = {col: stmt.excluded[col] for col in _UPSERT_COLUMNS}
            stmt = stmt.on_conflict_do_update(
                index_elements=[DeviceTokenORM.token],
                set_={**refreshed, "updated_at": now},
            )
        await self.session.execute(stmt)

    async def get_by_token(self, token: str) -> DeviceToken | None:
        stmt = select(DeviceTokenORM).where(DeviceTokenORM.token == token)
        res = await self.session.execute(stmt)
        orm = res.scalar_one_or_none()
        return self._to_domain(orm) if orm else None

    async def deactivate_tokens(self, tokens: list[str]) -> int:
        """Mark tokens inactive. Unknown tokens are ignored."""
        if not tokens:
            return 0
        stmt = (
            update(DeviceTokenORM)
            .where(DeviceTokenORM.token.in_(tokens), DeviceTokenORM.is_active == True)  # noqa: E712
            .values(is_active=False, updated_at=datetime.now(timezone.utc))
        )
        res = await self.session.execute(stmt)
        return res.rowcount or 0

    async def list_active_tokens_for_user(self, user_id: int) -> list[str]:
        stmt = select(DeviceTokenORM.token).where(
            DeviceTokenORM.user_id == user_id,
            DeviceTokenORM.is_active == True,  # noqa: E712
        )
        res = await self.session.execute(stmt)
        return list(res.scalars())

    async def list_all_active_tokens(self) -> list[str]:
        stmt = (
            select(DeviceTokenORM.token)
            .where(DeviceTokenORM.is_active == True)  # noqa: E712
            .distinct()
            .order_by(DeviceTokenORM.token)
        )
        res = await self.session.execute(stmt)
        return list(res.scalars())

    async def latest_active_for_user(self, user_id: int) -> DeviceToken | None:
        stmt = (
            select(DeviceTokenORM)
            .where(DeviceTokenORM.user_id == user_id, DeviceTokenORM.is_active == True)  # noqa: E712
            .order_by(
                DeviceTokenORM.updated_at.desc(),
                DeviceTokenORM.last_used_at.desc(),
                DeviceTokenORM.id.desc(),
            )
            .limit(1)
        )
        res = await self.session.execute(stmt)
        orm = res.scalar_one_or_none()
        return self._to_domain(orm) if orm else None

    async def list_tokens(
        self,
        *,
        platform: str | None = None,
        is_active: bool | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[DeviceToken], int]:
        conditions = []
        if platform:
            conditions.append(DeviceTokenORM.platform == platform)
        if is_active is not None:
            conditions.append(DeviceTokenORM.is_active == is_active)

        count_stmt = select(func.count()).select_from(DeviceTokenORM).where(*conditions)
        total = (await self.session.execute(count_stmt)).scalar_one()
        stmt = (
            select(DeviceTokenORM)
            .where(*conditions)
            .order_by(DeviceTokenORM.last_used_at.desc(), DeviceTokenORM.id.desc())
            .limit(limit)
            .offset(offset)
        )
        res = await self.session.execute(stmt)
        return [self._to_domain(orm) for orm in res.scalars()], total

    async def platform_distribution(self) -> list[dict]:
        stmt = (
            select(
                DeviceTokenORM.platform,
                func.count().label("count"),
                func.sum(case((DeviceTokenORM.is_active == True, 1), else_=0)).label(  # noqa: E712
                    "active_count"
                ),
            )
            .group_by(DeviceTokenORM.platform)
            .order_by(DeviceTokenORM.platform)
        )
        res = await self.session.execute(stmt)
        return [
            {"platform": row.platform, "count": row.count, "active_count": int(row.active_count or 0)}
            for row in res
        ]
