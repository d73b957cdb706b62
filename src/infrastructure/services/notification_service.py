from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from src.application.errors import InvalidTargetError, PersistenceError
from src.application.interfaces.unit_of_work import UnitOfWork
from src.application.pagination import PageRequest
from src.domain.models.delivery_log import DeliveryLogEntry
from src.domain.models.notification import LocalizedContent, Notification
from src.infrastructure.push.errors import collect_invalid_tokens
from src.infrastructure.push.fcm_v1 import FCMv1Client
from src.infrastructure.push.results import PushMessage, PushResult, TopicResult
from src.infrastructure.services.token_registry import TokenRegistry
from src.infrastructure.websocket.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DispatchResult:
    success: bool
    notification_id: int | None = None
    user_id: int | None = None
    push_results: list[PushResult] | None = None
    push_result: TopicResult | None = None
    total_sent: int | None = None
    total_failed: int | None = None
    results: list[DispatchResult] | None = None
    deactivated_tokens: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success}
        if self.notification_id is not None:
            out["notification_id"] = self.notification_id
        if self.user_id is not None:
            out["user_id"] = self.user_id
        if self.push_results is not None:
            out["push_results"] = [r.to_dict() for r in self.push_results]
        if self.push_result is not None:
            out["push_result"] = self.push_result.to_dict()
        if self.total_sent is not None:
            out["total_sent"] = self.total_sent
        if self.total_failed is not None:
            out["total_failed"] = self.total_failed
        if self.results is not None:
            out["results"] = [r.to_dict() for r in self.results]
        return out


class NotificationService:
    """Persist, deliver, log and clean up: one pass per dispatch, no retries."""

    def __init__(
        self,
        uow: UnitOfWork,
        *,
        push_client: FCMv1Client,
        token_registry: TokenRegistry | None = None,
        connection_manager: ConnectionManager | None = None,
    ) -> None:
        self.uow = uow
        self.push_client = push_client
        self.token_registry = token_registry or TokenRegistry(uow, push_client)
        self.connection_manager = connection_manager

    # -- dispatch --

    async def send_to_user(
        self,
        user_id: int,
        content: LocalizedContent,
        data: dict[str, Any] | None = None,
        *,
        save_to_db: bool = True,
    ) -> DispatchResult:
        if user_id is None:
            raise InvalidTargetError("User id is required")
        data = dict(data or {})
        notification_id = await self._persist(user_id, content, data) if save_to_db else None

        tokens = await self.token_registry.active_tokens_for(user_id)
        if not tokens:
            logger.info("No active push tokens for user=%s", user_id)
            await self._emit_live(user_id, notification_id, content, data)
            return DispatchResult(success=True, notification_id=notification_id, push_results=[])

        push_data = {**data, "notification_id": _id_str(notification_id), "type": content.type}
        multicast = await self.push_client.send_to_tokens(tokens, _push_message(content), push_data)

        await self._log_deliveries(
            [
                DeliveryLogEntry.for_attempt(
                    notification_id=notification_id,
                    user_id=user_id,
                    target=r.token,
                    content=content,
                    success=r.success,
                    message_id=r.message_id,
                    error=r.error,
                    data=data or None,
                )
                for r in multicast.results
            ]
        )
        deactivated = await self._cleanup_invalid_tokens(multicast.results)
        await self._emit_live(user_id, notification_id, content, data)
        return DispatchResult(
            success=True,
            notification_id=notification_id,
            push_results=multicast.results,
            deactivated_tokens=deactivated,
        )

    async def send_to_users(
        self,
        user_ids: Sequence[int],
        content: LocalizedContent,
        data: dict[str, Any] | None = None,
        *,
        save_to_db: bool = True,
    ) -> DispatchResult:
        if isinstance(user_ids, (str, bytes)) or not isinstance(user_ids, Sequence) or not user_ids:
            raise InvalidTargetError("A non-empty list of user ids is required")
        results: list[DispatchResult] = []
        for user_id in user_ids:
            result = await self.send_to_user(user_id, content, data, save_to_db=save_to_db)
            result.user_id = user_id
            results.append(result)
        return DispatchResult(success=True, results=results)

    async def broadcast(
        self,
        content: LocalizedContent,
        data: dict[str, Any] | None = None,
        *,
        save_to_db: bool = True,
    ) -> DispatchResult:
        data = dict(data or {})
        notification_id = await self._persist(None, content, data) if save_to_db else None

        tokens = await self.token_registry.all_active_tokens()
        if not tokens:
            logger.info("Broadcast skipped: no active push tokens")
            await self._emit_live(None, notification_id, content, data)
            return DispatchResult(
                success=True,
                notification_id=notification_id,
                push_results=[],
                total_sent=0,
                total_failed=0,
            )

        push_data = {
            **data,
            "notification_id": _id_str(notification_id),
            "type": content.type,
            "is_broadcast": "true",
        }
        # The adapter splits the token list into provider-sized batches
        multicast = await self.push_client.send_to_tokens(tokens, _push_message(content), push_data)

        await self._log_deliveries(
            [
                DeliveryLogEntry.for_attempt(
                    notification_id=notification_id,
                    user_id=None,
                    target=r.token,
                    content=content,
                    success=r.success,
                    message_id=r.message_id,
                    error=r.error,
                    data={"is_broadcast": True},
                )
                for r in multicast.results
            ]
        )
        deactivated = await self._cleanup_invalid_tokens(multicast.results)
        await self._emit_live(None, notification_id, content, data)

        total_sent = sum(1 for r in multicast.results if r.success)
        logger.info(
            "Broadcast sent: %s successful, %s failed",
            total_sent,
            len(multicast.results) - total_sent,
        )
        return DispatchResult(
            success=True,
            notification_id=notification_id,
            push_results=multicast.results,
            total_sent=total_sent,
            total_failed=len(multicast.results) - total_sent,
            deactivated_tokens=deactivated,
        )

    async def send_to_topic(
        self,
        topic: str,
        content: LocalizedContent,
        data: dict[str, Any] | None = None,
        *,
        save_to_db: bool = True,
    ) -> DispatchResult:
        if not topic or not str(topic).strip():
            raise InvalidTargetError("Topic name is required")
        data = {**(data or {}), "topic": topic}
        notification_id = await self._persist(None, content, data) if save_to_db else None

        push_data = {**data, "notification_id": _id_str(notification_id), "type": content.type}
        result = await self.push_client.send_to_topic(topic, _push_message(content), push_data)

        await self._log_deliveries(
            [
                DeliveryLogEntry.for_attempt(
                    notification_id=notification_id,
                    user_id=None,
                    target=topic,
                    content=content,
                    success=result.success,
                    message_id=result.message_id,
                    error=result.error,
                    data={"topic": topic, "is_topic": True},
                )
            ]
        )
        await self._emit_live(None, notification_id, content, data)
        return DispatchResult(success=True, notification_id=notification_id, push_result=result)

    async def notify_admins(
        self, content: LocalizedContent, data: dict[str, Any] | None = None
    ) -> int:
        """Admin-inbox row plus a live banner to the elevated group; no push."""
        data = dict(data or {})
        notification_id = await self._persist(None, content, data)
        await self._emit_live(None, notification_id, content, data)
        return notification_id

    # -- inbox --

    async def mark_as_read(self, notification_id: int, user_id: int | None) -> int:
        affected = await self.uow.notifications.mark_as_read(notification_id, user_id)
        await self.uow.commit()
        return affected

    async def mark_all_as_read(self, user_id: int) -> int:
        affected = await self.uow.notifications.mark_all_as_read(user_id)
        await self.uow.commit()
        return affected

    async def list_for_user(
        self, user_id: int, page: PageRequest
    ) -> tuple[list[Notification], dict[str, int]]:
        items, total = await self.uow.notifications.list_for_user(
            user_id, limit=page.limit, offset=page.offset
        )
        return items, page.describe(total)

    async def list_admin(
        self, page: PageRequest, *, type: str | None = None, unread_only: bool = False
    ) -> tuple[list[Notification], dict[str, int]]:
        items, total = await self.uow.notifications.list_admin(
            type=type, unread_only=unread_only, limit=page.limit, offset=page.offset
        )
        return items, page.describe(total)

    async def list_all(
        self, page: PageRequest, *, type: str | None = None, user_id: int | None = None
    ) -> tuple[list[Notification], dict[str, int]]:
        items, total = await self.uow.notifications.list_all(
            type=type, user_id=user_id, limit=page.limit, offset=page.offset
        )
        return items, page.describe(total)

    async def unread_count(self, user_id: int) -> int:
        return await self.uow.notifications.count_unread_for_user(user_id)

    async def admin_unread_count(self) -> int:
        return await self.uow.notifications.count_unread_admin()

    async def stats(self, days: int = 7) -> dict[str, Any]:
        since = datetime.now(timezone.utc) - timedelta(days=max(1, days))
        return {
            "period_days": max(1, days),
            "notifications": await self.uow.notifications.stats(since),
            "deliveries": await self.uow.notification_logs.delivery_stats(since),
            "delivery_status": await self.uow.notification_logs.status_breakdown(since),
            "platforms": await self.uow.device_tokens.platform_distribution(),
        }

    # -- steps --

    async def _persist(
        self, user_id: int | None, content: LocalizedContent, data: dict[str, Any]
    ) -> int:
        try:
            saved = await self.uow.notifications.add(Notification.create(user_id, content, data))
            await self.uow.commit()
        except SQLAlchemyError as e:
            await self.uow.rollback()
            logger.error("Error saving notification for user=%s: %s", user_id, e, exc_info=True)
            raise PersistenceError("Failed to save notification") from e
        logger.info(
            "Notification created: id=%s user=%s type=%s", saved.id, user_id, content.type
        )
        return saved.id

    async def _log_deliveries(self, entries: list[DeliveryLogEntry]) -> None:
        if not entries:
            return
        try:
            await self.uow.notification_logs.add_many(entries)
            await self.uow.commit()
        except (SQLAlchemyError, TypeError, ValueError) as e:
            await self.uow.rollback()
            logger.error("Error logging %s push deliveries: %s", len(entries), e)

    async def _cleanup_invalid_tokens(self, results: list[PushResult]) -> list[str]:
        invalid = collect_invalid_tokens(results)
        if not invalid:
            return []
        logger.info("Cleaning up %s invalid push tokens", len(invalid))
        await self.token_registry.deactivate(invalid)
        return invalid

    async def _emit_live(
        self,
        user_id: int | None,
        notification_id: int | None,
        content: LocalizedContent,
        data: dict[str, Any],
    ) -> None:
        if self.connection_manager is None:
            return
        payload = live_payload(notification_id, content, data)
        if user_id is not None:
            await self.connection_manager.send_notification_to_user(user_id, payload)
        else:
            await self.connection_manager.send_notification_to_admins(payload)


def live_payload(
    notification_id: int | None, content: LocalizedContent, data: dict[str, Any] | None = None
) -> dict[str, Any]:
    return {
        "id": notification_id,
        "type": content.type,
        "title": content.title_en,
        "message": content.message_en,
        "title_ar": content.title_ar,
        "message_ar": content.message_ar,
        "data": data or {},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def _push_message(content: LocalizedContent) -> PushMessage:
    return PushMessage(title=content.title_en, body=content.message_en, image=content.image)


def _id_str(notification_id: int | None) -> str:
    return str(notification_id) if notification_id is not None else ""
