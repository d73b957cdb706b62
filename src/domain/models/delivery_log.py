from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from src.domain.models.notification import LocalizedContent
from src.domain.value_objects.delivery_status import DeliveryChannel, DeliveryStatus


@dataclass(slots=True)
class DeliveryLogEntry:
    notification_id: int | None
    user_id: int | None
    target: str
    title_ar: str
    title_en: str
    message_ar: str
    message_en: str
    channel: str = DeliveryChannel.PUSH.value
    delivery_status: str = DeliveryStatus.FAILED.value
    provider_message_id: str | None = None
    error_message: str | None = None
    data: dict[str, Any] | None = None
    sent_at: datetime | None = None
    id: int | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def for_attempt(
        cls,
        *,
        notification_id: int | None,
        user_id: int | None,
        target: str,
        content: LocalizedContent,
        success: bool,
        message_id: str | None = None,
        error: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> DeliveryLogEntry:
        now = datetime.now(timezone.utc)
        return cls(
            notification_id=notification_id,
            user_id=user_id,
            target=target,
            title_ar=content.title_ar,
            title_en=content.title_en,
            message_ar=content.message_ar,
            message_en=content.message_en,
            delivery_status=(DeliveryStatus.SENT if success else DeliveryStatus.FAILED).value,
            provider_message_id=message_id,
            error_message=error,
            data=data,
            sent_at=now if success else None,
            created_at=now,
        )
