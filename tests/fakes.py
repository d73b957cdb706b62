from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from src.infrastructure.push.fcm_v1 import PUSH_UNAVAILABLE
from src.infrastructure.push.results import (
    MulticastResult,
    PushMessage,
    PushResult,
    TopicManagementResult,
    TopicResult,
)


class StubPushClient:
    """In-memory stand-in for FCMv1Client.

    ``errors`` maps a token to the provider error text it should fail with.
    """

    def __init__(
        self,
        *,
        errors: Mapping[str, str] | None = None,
        initialized: bool = True,
        batch_size: int = 500,
    ) -> None:
        self.errors = dict(errors or {})
        self.is_initialized = initialized
        self.batch_size = batch_size
        self.sent: list[dict[str, Any]] = []
        self.batches: list[list[str]] = []
        self.topic_sends: list[dict[str, Any]] = []
        self.subscriptions: list[tuple[str, str]] = []
        self.unsubscriptions: list[tuple[str, str]] = []
        self.topic_error: Exception | None = None

    def _result(self, token: str) -> PushResult:
        if not self.is_initialized:
            return PushResult(token=token, success=False, error=PUSH_UNAVAILABLE)
        error = self.errors.get(token)
        if error:
            return PushResult(token=token, success=False, error=error)
        return PushResult(
            token=token, success=True, message_id=f"projects/test/messages/{len(self.sent)}"
        )

    async def send_to_token(
        self, token: str, notification: PushMessage, data: Mapping[str, Any] | None = None
    ) -> PushResult:
        self.sent.append({"token": token, "notification": notification, "data": dict(data or {})})
        return self._result(token)

    async def send_to_tokens(
        self,
        tokens: Sequence[str],
        notification: PushMessage,
        data: Mapping[str, Any] | None = None,
    ) -> MulticastResult:
        results = []
        for start in range(0, len(tokens), self.batch_size):
            batch = list(tokens[start : start + self.batch_size])
            self.batches.append(batch)
            for token in batch:
                results.append(await self.send_to_token(token, notification, data))
        return MulticastResult.from_results(results)

    async def send_to_topic(
        self, topic: str, notification: PushMessage, data: Mapping[str, Any] | None = None
    ) -> TopicResult:
        self.topic_sends.append(
            {"topic": topic, "notification": notification, "data": dict(data or {})}
        )
        if not self.is_initialized:
            return TopicResult(topic=topic, success=False, error=PUSH_UNAVAILABLE)
        return TopicResult(topic=topic, success=True, message_id="projects/test/messages/topic")

    async def subscribe_to_topic(self, tokens: Sequence[str], topic: str) -> TopicManagementResult:
        if self.topic_error is not None:
            raise self.topic_error
        self.subscriptions.extend((t, topic) for t in tokens)
        return TopicManagementResult(success_count=len(tokens))

    async def unsubscribe_from_topic(
        self, tokens: Sequence[str], topic: str
    ) -> TopicManagementResult:
        if self.topic_error is not None:
            raise self.topic_error
        self.unsubscriptions.extend((t, topic) for t in tokens)
        return TopicManagementResult(success_count=len(tokens))


class FakeWebSocket:
    """Records frames sent through the live connection manager."""

    def __init__(self, *, fail_on_send: bool = False) -> None:
        self.accepted = False
        self.closed: tuple[int, str] | None = None
        self.sent: list[dict[str, Any]] = []
        self.fail_on_send = fail_on_send

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, message: dict[str, Any]) -> None:
        if self.fail_on_send:
            raise RuntimeError("connection reset")
        self.sent.append(message)

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.closed = (code, reason or "")

    def events(self) -> list[str]:
        return [frame["event"] for frame in self.sent]
