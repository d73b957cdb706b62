from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from src.application.errors import ValidationError
from src.application.interfaces.unit_of_work import UnitOfWork
from src.domain.models.device_token import DeviceToken, mask_token
from src.domain.value_objects.platform import DevicePlatform
from src.infrastructure.push.errors import PushProviderError
from src.infrastructure.push.fcm_v1 import FCMv1Client

logger = logging.getLogger(__name__)

_PLATFORMS = {p.value for p in DevicePlatform}


class TokenRegistry:
    """Sole writer of device token rows."""

    def __init__(
        self,
        uow: UnitOfWork,
        push_client: FCMv1Client | None = None,
        *,
        default_topic: str = "all_users",
    ) -> None:
        self.uow = uow
        self.push_client = push_client
        self.default_topic = default_topic

    async def register(
        self,
        user_id: int,
        token: str,
        platform: str,
        device_id: str | None = None,
        app_version: str | None = None,
    ) -> None:
        if not token or not token.strip():
            raise ValidationError("Token is required")
        platform = (platform or "").strip().lower()
        if platform not in _PLATFORMS:
            raise ValidationError(
                "Unsupported device platform", details={"allowed": sorted(_PLATFORMS)}
            )
        await self.uow.device_tokens.upsert(
            user_id=user_id,
            token=token,
            platform=platform,
            device_id=device_id or None,
            app_version=app_version or None,
        )
        await self.uow.commit()
        logger.info(
            "Token registered/updated: user=%s platform=%s token=%s",
            user_id,
            platform,
            mask_token(token),
        )
        await self._topic_membership(token, subscribe=True)

    async def unregister(self, token: str) -> bool:
        """Deactivate a token. Unknown or already inactive tokens are a no-op."""
        if not token:
            raise ValidationError("Token is required")
        affected = await self.uow.device_tokens.deactivate_tokens([token])
        await self.uow.commit()
        logger.info("Token unregistered: token=%s affected=%s", mask_token(token), affected)
        if affected:
            await self._topic_membership(token, subscribe=False)
        return bool(affected)

    async def active_tokens_for(self, user_id: int) -> list[str]:
        return await self.uow.device_tokens.list_active_tokens_for_user(user_id)

    async def all_active_tokens(self) -> list[str]:
        return await self.uow.device_tokens.list_all_active_tokens()

    async def latest_active_token_for(self, user_id: int) -> DeviceToken | None:
        return await self.uow.device_tokens.latest_active_for_user(user_id)

    async def deactivate(self, tokens: list[str]) -> int:
        if not tokens:
            return 0
        try:
            affected = await self.uow.device_tokens.deactivate_tokens(list(tokens))
            await self.uow.commit()
        except SQLAlchemyError as e:
            await self.uow.rollback()
            logger.error("Error deactivating %s invalid tokens: %s", len(tokens), e, exc_info=True)
            return 0
        logger.info("Deactivated %s invalid push tokens", affected)
        return affected

    async def _topic_membership(self, token: str, *, subscribe: bool) -> None:
        if self.push_client is None:
            return
        action = "subscribe" if subscribe else "unsubscribe"
        try:
            if subscribe:
                await self.push_client.subscribe_to_topic([token], self.default_topic)
            else:
                await self.push_client.unsubscribe_from_topic([token], self.default_topic)
        except PushProviderError as e:
            logger.warning(
                "Topic %s failed for token=%s topic=%s: %s",
                action,
                mask_token(token),
                self.default_topic,
                e,
            )
