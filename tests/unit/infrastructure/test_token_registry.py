from __future__ import annotations

import pytest

from src.application.errors import ValidationError
from src.infrastructure.push.errors import PushProviderError
from src.infrastructure.services.token_registry import TokenRegistry


@pytest.fixture()
def registry(uow, push_client) -> TokenRegistry:
    return TokenRegistry(uow, push_client)


async def test_register_twice_keeps_one_active_row(registry, uow):
    await registry.register(1, "tok-dup", "android")
    await registry.register(1, "tok-dup", "android")

    tokens, total = await uow.device_tokens.list_tokens()
    assert total == 1
    assert tokens[0].is_active is True
    assert await registry.active_tokens_for(1) == ["tok-dup"]


async def test_register_moves_token_to_new_owner(registry, uow):
    await registry.register(1, "tok-shared", "ios", app_version="1.0.0")
    await registry.register(2, "tok-shared", "ios", app_version="1.1.0")

    stored = await uow.device_tokens.get_by_token("tok-shared")
    assert stored.user_id == 2
    assert stored.app_version == "1.1.0"
    assert await registry.active_tokens_for(1) == []


async def test_register_reactivates_inactive_token(registry):
    await registry.register(5, "tok-back", "web")
    await registry.unregister("tok-back")
    assert await registry.active_tokens_for(5) == []

    await registry.register(5, "tok-back", "web")

    assert await registry.active_tokens_for(5) == ["tok-back"]


async def test_register_subscribes_to_default_topic(registry, push_client):
    await registry.register(1, "tok-topic", "android")

    assert push_client.subscriptions == [("tok-topic", "all_users")]


async def test_topic_failure_does_not_fail_registration(registry, push_client):
    push_client.topic_error = PushProviderError("IID unavailable")

    await registry.register(1, "tok-ok", "android")

    assert await registry.active_tokens_for(1) == ["tok-ok"]


async def test_register_rejects_unknown_platform(registry, uow):
    with pytest.raises(ValidationError):
        await registry.register(1, "tok-x", "symbian")

    assert await uow.device_tokens.get_by_token("tok-x") is None


async def test_unregister_is_idempotent_and_never_creates_rows(registry, uow, push_client):
    assert await registry.unregister("never-seen") is False
    assert await uow.device_tokens.get_by_token("never-seen") is None

    await registry.register(3, "tok-gone", "android")
    assert await registry.unregister("tok-gone") is True
    assert await registry.unregister("tok-gone") is False

    stored = await uow.device_tokens.get_by_token("tok-gone")
    assert stored.is_active is False
    assert push_client.unsubscriptions == [("tok-gone", "all_users")]


async def test_all_active_tokens_are_distinct_and_active_only(registry):
    await registry.register(1, "a", "android")
    await registry.register(2, "b", "ios")
    await registry.register(2, "c", "ios")
    await registry.unregister("c")

    assert await registry.all_active_tokens() == ["a", "b"]


async def test_deactivate_returns_affected_count(registry):
    await registry.register(1, "x1", "android")
    await registry.register(1, "x2", "android")

    assert await registry.deactivate(["x1", "x2", "unknown"]) == 2
    assert await registry.deactivate([]) == 0
    assert await registry.active_tokens_for(1) == []


async def test_latest_active_token_prefers_most_recent(registry):
    await registry.register(9, "older", "android")
    await registry.register(9, "newer", "android")

    latest = await registry.latest_active_token_for(9)

    assert latest is not None and latest.token == "newer"
    assert await registry.latest_active_token_for(404) is None
