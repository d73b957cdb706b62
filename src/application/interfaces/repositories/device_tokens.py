from __future__ import annotations

from typing import Protocol

from src.domain.models.device_token import DeviceToken


class DeviceTokensRepository(Protocol):
    async def upsert(
        self,
        *,
        user_id: int,
        token: str,
        platform: str,
        device_id: str | None = None,
        app_version: str | None = None,
    ) -> None: ...

    async def get_by_token(self, token: str) -> DeviceToken | None: ...

    async def deactivate_tokens(self, tokens: list[str]) -> int: ...

    async def list_active_tokens_for_user(self, user_id: int) -> list[str]: ...

    async def list_all_active_tokens(self) -> list[str]: ...

    async def latest_active_for_user(self, user_id: int) -> DeviceToken | None: ...

    async def list_tokens(
        self,
        *,
        platform: str | None = None,
        is_active: bool | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[DeviceToken], int]: ...

    async def platform_distribution(self) -> list[dict]: ...
