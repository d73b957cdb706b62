from __future__ import annotations

import json

import httpx
import pytest

from src.infrastructure.push.errors import PushProviderError
from src.infrastructure.push.fcm_v1 import PUSH_UNAVAILABLE, FCMv1Client
from src.infrastructure.push.results import PushMessage

SERVICE_ACCOUNT = json.dumps(
    {"client_email": "push@test.iam.gserviceaccount.com", "private_key": "-----KEY-----\\nabc"}
)
MESSAGE = PushMessage(title="Hi", body="Hello there")


def make_client(handler, *, batch_size: int = 500) -> FCMv1Client:
    client = FCMv1Client(
        project_id="demo",
        service_account_json=SERVICE_ACCOUNT,
        batch_size=batch_size,
        transport=httpx.MockTransport(handler),
    )

    async def fake_access_token() -> str:
        return "access-token"

    client._get_access_token = fake_access_token  # type: ignore[method-assign]
    return client


def test_unconfigured_client_is_not_initialized():
    client = FCMv1Client(project_id=None, service_account_json=None)
    assert client.is_initialized is False


def test_private_key_newlines_are_restored():
    client = FCMv1Client(project_id="demo", service_account_json=SERVICE_ACCOUNT)
    assert client.is_initialized
    assert client.sa["private_key"] == "-----KEY-----\nabc"


async def test_unconfigured_client_returns_structured_failures():
    client = FCMv1Client(project_id="demo", service_account_json="{not json")

    single = await client.send_to_token("tok-1", MESSAGE)
    multi = await client.send_to_tokens(["tok-1", "tok-2"], MESSAGE)
    topic = await client.send_to_topic("all_users", MESSAGE)
    managed = await client.subscribe_to_topic(["tok-1", "tok-2", "tok-3"], "all_users")

    assert single.success is False and single.error == PUSH_UNAVAILABLE
    assert multi.success is False
    assert [r.token for r in multi.results] == ["tok-1", "tok-2"]
    assert all(r.error == PUSH_UNAVAILABLE for r in multi.results)
    assert topic.success is False and topic.error == PUSH_UNAVAILABLE
    assert managed.failure_count == 3


def test_build_data_stringifies_values_and_adds_defaults():
    client = FCMv1Client(project_id=None, service_account_json=None)

    data = client.build_data({"order_id": 7, "urgent": True, "meta": {"a": 1}, "empty": None})

    assert data == {
        "order_id": "7",
        "urgent": "true",
        "meta": '{"a": 1}',
        "empty": "",
        "click_action": "FLUTTER_NOTIFICATION_CLICK",
        "type": "general",
    }


def test_build_message_sets_platform_blocks():
    client = FCMv1Client(project_id=None, service_account_json=None)

    body = client.build_message(MESSAGE, {"type": "order"}, token="tok-1")["message"]

    assert body["token"] == "tok-1"
    assert body["data"]["type"] == "order"
    assert body["android"]["priority"] == "high"
    assert body["android"]["notification"]["channel_id"] == "default"
    assert body["apns"]["payload"]["aps"]["badge"] == 1
    assert body["apns"]["payload"]["aps"]["sound"] == "default"


async def test_send_to_tokens_batches_and_covers_every_token_once():
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        token = json.loads(request.content)["message"]["token"]
        seen.append(token)
        return httpx.Response(200, json={"name": f"projects/demo/messages/{token}"})

    client = make_client(handler, batch_size=2)
    tokens = [f"tok-{i}" for i in range(5)]

    result = await client.send_to_tokens(tokens, MESSAGE)

    assert sorted(seen) == sorted(tokens)
    assert [r.token for r in result.results] == tokens
    assert result.success_count == 5 and result.failure_count == 0


async def test_provider_error_text_is_surfaced_verbatim():
    def handler(request: httpx.Request) -> httpx.Response:
        token = json.loads(request.content)["message"]["token"]
        if token == "dead":
            return httpx.Response(
                404,
                json={
                    "error": {
                        "message": "Requested entity was not found.",
                        "details": [{"errorCode": "UNREGISTERED"}],
                    }
                },
            )
        return httpx.Response(200, json={"name": "projects/demo/messages/1"})

    client = make_client(handler)

    result = await client.send_to_tokens(["live", "dead"], MESSAGE)

    by_token = {r.token: r for r in result.results}
    assert by_token["live"].success is True
    assert by_token["dead"].success is False
    assert by_token["dead"].error == "Requested entity was not found. [UNREGISTERED]"
    assert result.success_count == 1 and result.failure_count == 1


async def test_send_to_topic_targets_topic():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured.update(json.loads(request.content)["message"])
        return httpx.Response(200, json={"name": "projects/demo/messages/topic-1"})

    client = make_client(handler)

    result = await client.send_to_topic("all_users", MESSAGE, {"topic": "all_users"})

    assert result.success and result.message_id == "projects/demo/messages/topic-1"
    assert captured["topic"] == "all_users"
    assert "token" not in captured


async def test_topic_management_reports_per_token_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["to"] == "/topics/all_users"
        return httpx.Response(200, json={"results": [{}, {"error": "INVALID_ARGUMENT"}]})

    client = make_client(handler)

    outcome = await client.subscribe_to_topic(["a", "b"], "all_users")

    assert outcome.success_count == 1
    assert outcome.failure_count == 1
    assert outcome.errors == [{"index": 1, "reason": "INVALID_ARGUMENT"}]


async def test_topic_management_http_failure_raises_provider_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"error": {"message": "Service unavailable"}})

    client = make_client(handler)

    with pytest.raises(PushProviderError, match="Service unavailable"):
        await client.unsubscribe_from_topic(["a"], "all_users")


async def test_non_json_success_body_fails_only_that_token():
    def handler(request: httpx.Request) -> httpx.Response:
        token = json.loads(request.content)["message"]["token"]
        if token == "tok-b":
            return httpx.Response(200, text="<html>proxy</html>")
        return httpx.Response(200, json={"name": f"projects/demo/messages/{token}"})

    client = make_client(handler)

    result = await client.send_to_tokens(["tok-a", "tok-b", "tok-c"], MESSAGE)

    assert [r.token for r in result.results] == ["tok-a", "tok-b", "tok-c"]
    assert [r.success for r in result.results] == [True, False, True]
    assert "Unexpected provider response (HTTP 200)" in result.results[1].error
    assert result.success_count == 2 and result.failure_count == 1


async def test_non_json_body_on_single_and_topic_send_is_a_failure_result():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="gateway says hi")

    client = make_client(handler)

    single = await client.send_to_token("tok-a", MESSAGE)
    topic = await client.send_to_topic("all_users", MESSAGE)

    assert single.success is False and single.error.startswith("Unexpected provider response")
    assert topic.success is False and topic.error.startswith("Unexpected provider response")


async def test_access_token_without_service_account_raises_provider_error():
    client = FCMv1Client(project_id="demo", service_account_json=None)

    with pytest.raises(PushProviderError, match="service account not configured"):
        await client._get_access_token()
