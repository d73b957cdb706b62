from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from src.application.errors import InvalidTargetError, ValidationError
from src.domain.models.notification import LocalizedContent
from src.domain.value_objects.target_mode import TargetMode
from src.infrastructure.services.notification_service import DispatchResult, NotificationService

_TEXT_FIELDS = ("title_ar", "title_en", "message_ar", "message_en")


@dataclass(slots=True)
class DispatchNotificationInput:
    target_mode: str
    title_ar: str
    title_en: str
    message_ar: str
    message_en: str
    target: Any = None
    type: str = "general"
    data: dict[str, Any] | None = None
    image: str | None = None
    save_to_db: bool = True


def _user_id(value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidTargetError("User id must be an integer", details={"target": value})
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidTargetError("User id must be an integer", details={"target": value}) from exc


def validate(payload: DispatchNotificationInput) -> tuple[TargetMode, Any, LocalizedContent]:
    """Check mode, target and bilingual text. Nothing is written before this passes."""
    try:
        mode = TargetMode(payload.target_mode)
    except ValueError as exc:
        raise InvalidTargetError(
            "Unknown target mode",
            details={"target_mode": payload.target_mode, "allowed": [m.value for m in TargetMode]},
        ) from exc

    missing = [name for name in _TEXT_FIELDS if not (getattr(payload, name) or "").strip()]
    if missing:
        raise ValidationError(
            "Title and message are required in both languages", details={"missing": missing}
        )

    target: Any = None
    if mode is TargetMode.USER:
        if payload.target is None or payload.target == "":
            raise InvalidTargetError("User id is required for target mode 'user'")
        target = _user_id(payload.target)
    elif mode is TargetMode.USERS:
        if not isinstance(payload.target, (list, tuple)) or not payload.target:
            raise InvalidTargetError("A non-empty list of user ids is required for 'users'")
        target = [_user_id(v) for v in payload.target]
    elif mode is TargetMode.TOPIC:
        if not isinstance(payload.target, str) or not payload.target.strip():
            raise InvalidTargetError("Topic name is required for target mode 'topic'")
        target = payload.target.strip()

    content = LocalizedContent(
        title_ar=payload.title_ar.strip(),
        title_en=payload.title_en.strip(),
        message_ar=payload.message_ar.strip(),
        message_en=payload.message_en.strip(),
        type=payload.type or "general",
        image=payload.image or None,
    )
    return mode, target, content


async def execute(service: NotificationService, payload: DispatchNotificationInput) -> DispatchResult:
    mode, target, content = validate(payload)
    data = payload.data or {}
    if mode is TargetMode.USER:
        return await service.send_to_user(target, content, data, save_to_db=payload.save_to_db)
    if mode is TargetMode.USERS:
        return await service.send_to_users(target, content, data, save_to_db=payload.save_to_db)
    if mode is TargetMode.TOPIC:
        return await service.send_to_topic(target, content, data, save_to_db=payload.save_to_db)
    return await service.broadcast(content, data, save_to_db=payload.save_to_db)
