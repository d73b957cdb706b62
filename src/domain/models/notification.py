from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass(slots=True)
class LocalizedContent:
    title_ar: str
    title_en: str
    message_ar: str
    message_en: str
    type: str = "general"
    image: str | None = None


@dataclass(slots=True)
class Notification:
    id: int | None
    user_id: int | None
    title_ar: str
    title_en: str
    message_ar: str
    message_en: str
    type: str = "general"
    data: dict[str, Any] | None = None
    is_read: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    read_at: datetime | None = None

    @classmethod
    def create(
        cls,
        user_id: int | None,
        content: LocalizedContent,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        return cls(
            id=None,
            user_id=user_id,
            title_ar=content.title_ar,
            title_en=content.title_en,
            message_ar=content.message_ar,
            message_en=content.message_en,
            type=content.type or "general",
            data=data or None,
            is_read=False,
            created_at=datetime.now(timezone.utc),
            read_at=None,
        )

    @property
    def is_admin_notification(self) -> bool:
        return self.user_id is None

    def mark_as_read(self) -> None:
        if not self.is_read:
            self.is_read = True
            self.read_at = datetime.now(timezone.utc)
