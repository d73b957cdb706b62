from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Mapping, Sequence
from typing import Any

import httpx
from jose import jwt
from jose.exceptions import JWTError

from src.config.settings import Settings
from src.domain.models.device_token import mask_token
from src.infrastructure.push.errors import PushProviderError
from src.infrastructure.push.results import (
    MulticastResult,
    PushMessage,
    PushResult,
    TopicManagementResult,
    TopicResult,
)

logger = logging.getLogger(__name__)

PUSH_UNAVAILABLE = "Push service not available"
# Failures of a send call that become a structured result instead of propagating
SEND_ERRORS = (httpx.HTTPError, JWTError, KeyError, ValueError, PushProviderError)
DEFAULT_CLICK_ACTION = "FLUTTER_NOTIFICATION_CLICK"


class FCMv1Client:
    """Firebase Cloud Messaging HTTP v1 client using a Service Account JSON.

    It generates a short-lived OAuth2 access token via JWT assertion and sends messages
    to the v1 endpoint. When credentials are missing the client stays uninitialized and
    every call returns a structured failure instead of raising.
    """

    OAUTH_TOKEN_URL = "https://oauth2.googleapis.com/token"
    SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
    IID_BATCH_ADD_URL = "https://iid.googleapis.com/iid/v1:batchAdd"
    IID_BATCH_REMOVE_URL = "https://iid.googleapis.com/iid/v1:batchRemove"
    IID_BATCH_LIMIT = 1000

    def __init__(
        self,
        *,
        project_id: str | None,
        service_account_json: str | None,
        batch_size: int = 500,
        click_action: str = DEFAULT_CLICK_ACTION,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.project_id = project_id
        self.batch_size = max(1, batch_size)
        self.click_action = click_action
        self.timeout = timeout
        self._transport = transport
        self.sa: dict[str, Any] | None = None
        self._cached_token: str | None = None
        self._token_exp: int = 0
        self.is_initialized = self._load_service_account(service_account_json)

    @classmethod
    def from_settings(
        cls, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None
    ) -> FCMv1Client:
        return cls(
            project_id=settings.fcm_project_id,
            service_account_json=settings.get_fcm_service_account_json(),
            batch_size=settings.push_batch_size,
            click_action=settings.push_click_action,
            timeout=settings.push_timeout_seconds,
            transport=transport,
        )

    def _load_service_account(self, raw: str | None) -> bool:
        if not self.project_id or not raw:
            logger.warning(
                "FCM credentials not configured properly. Push notifications will be disabled."
            )
            return False
        try:
            sa = json.loads(raw)
            # Env-provided keys often carry literal "\n" sequences
            sa["private_key"] = sa["private_key"].replace("\\n", "\n")
            if not sa.get("client_email"):
                raise KeyError("client_email")
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("FCM service account is invalid (%s). Push notifications disabled.", exc)
            return False
        self.sa = sa
        logger.info("FCM client initialized for project %s", self.project_id)
        return True

    @property
    def send_url(self) -> str:
        return f"https://fcm.googleapis.com/v1/projects/{self.project_id}/messages:send"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    # -- message building --

    def build_data(self, data: Mapping[str, Any] | None) -> dict[str, str]:
        """FCM data values must be strings; click_action and type always present."""
        out: dict[str, str] = {}
        for key, value in (data or {}).items():
            if value is None:
                out[str(key)] = ""
            elif isinstance(value, bool):
                out[str(key)] = "true" if value else "false"
            elif isinstance(value, (dict, list)):
                out[str(key)] = json.dumps(value, default=str)
            else:
                out[str(key)] = str(value)
        out["click_action"] = out.get("click_action") or self.click_action
        out["type"] = out.get("type") or "general"
        return out

    def build_message(
        self,
        notification: PushMessage,
        data: Mapping[str, Any] | None,
        *,
        token: str | None = None,
        topic: str | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"title": notification.title, "body": notification.body}
        if notification.image:
            payload["image"] = notification.image
        message: dict[str, Any] = {
            "notification": payload,
            "data": self.build_data(data),
            "android": {
                "priority": "high",
                "notification": {"channel_id": "default", "sound": "default"},
            },
            "apns": {
                "payload": {
                    "aps": {
                        "alert": {"title": notification.title, "body": notification.body},
                        "sound": "default",
                        "badge": 1,
                    }
                }
            },
        }
        if token is not None:
            message["token"] = token
        if topic is not None:
            message["topic"] = topic
        return {"message": message}

    # -- sending --

    async def send_to_token(
        self,
        token: str,
        notification: PushMessage,
        data: Mapping[str, Any] | None = None,
    ) -> PushResult:
        if not self.is_initialized:
            logger.warning("FCM client not initialized. Skipping push notification.")
            return PushResult(token=token, success=False, error=PUSH_UNAVAILABLE)
        body = self.build_message(notification, data, token=token)
        try:
            access_token = await self._get_access_token()
            async with self._client() as client:
                message_id, error = await self._post_message(client, access_token, body)
        except SEND_ERRORS as exc:
            logger.error("FCM send error for token=%s: %s", mask_token(token), exc)
            return PushResult(token=token, success=False, error=str(exc))
        return PushResult(token=token, success=error is None, message_id=message_id, error=error)

    async def send_to_tokens(
        self,
        tokens: Sequence[str],
        notification: PushMessage,
        data: Mapping[str, Any] | None = None,
    ) -> MulticastResult:
        tokens = list(tokens)
        if not self.is_initialized:
            logger.warning("FCM client not initialized. Skipping push notification.")
            return MulticastResult(
                success=False,
                failure_count=len(tokens),
                results=[PushResult(token=t, success=False, error=PUSH_UNAVAILABLE) for t in tokens],
                error=PUSH_UNAVAILABLE,
            )
        if not tokens:
            return MulticastResult(success=True)

        try:
            access_token = await self._get_access_token()
        except SEND_ERRORS as exc:
            logger.error("FCM multicast send error: %s", exc)
            return MulticastResult(
                success=False,
                failure_count=len(tokens),
                results=[PushResult(token=t, success=False, error=str(exc)) for t in tokens],
                error=str(exc),
            )

        results: list[PushResult] = []
        async with self._client() as client:
            for start in range(0, len(tokens), self.batch_size):
                batch = tokens[start : start + self.batch_size]
                batch_results = await asyncio.gather(
                    *(self._send_one(client, access_token, t, notification, data) for t in batch)
                )
                results.extend(batch_results)

        multicast = MulticastResult.from_results(results)
        logger.info(
            "FCM multicast sent: %s/%s successful", multicast.success_count, len(tokens)
        )
        return multicast

    async def _send_one(
        self,
        client: httpx.AsyncClient,
        access_token: str,
        token: str,
        notification: PushMessage,
        data: Mapping[str, Any] | None,
    ) -> PushResult:
        body = self.build_message(notification, data, token=token)
        try:
            message_id, error = await self._post_message(client, access_token, body)
        except httpx.HTTPError as exc:
            logger.debug("FCM v1 transport error for token=%s: %s", mask_token(token), exc)
            return PushResult(token=token, success=False, error=str(exc) or type(exc).__name__)
        if error is not None:
            logger.debug("FCM v1 error for token=%s: %s", mask_token(token), error)
        return PushResult(token=token, success=error is None, message_id=message_id, error=error)

    async def send_to_topic(
        self,
        topic: str,
        notification: PushMessage,
        data: Mapping[str, Any] | None = None,
    ) -> TopicResult:
        if not self.is_initialized:
            logger.warning("FCM client not initialized. Skipping push notification.")
            return TopicResult(topic=topic, success=False, error=PUSH_UNAVAILABLE)
        body = self.build_message(notification, data, topic=topic)
        try:
            access_token = await self._get_access_token()
            async with self._client() as client:
                message_id, error = await self._post_message(client, access_token, body)
        except SEND_ERRORS as exc:
            logger.error("FCM topic send error (topic=%s): %s", topic, exc)
            return TopicResult(topic=topic, success=False, error=str(exc))
        if error is None:
            logger.info("FCM topic message sent: topic=%s id=%s", topic, message_id)
        return TopicResult(topic=topic, success=error is None, message_id=message_id, error=error)

    async def _post_message(
        self, client: httpx.AsyncClient, access_token: str, body: dict[str, Any]
    ) -> tuple[str | None, str | None]:
        """Return (message_id, None) on success or (None, provider error text)."""
        headers = {"Authorization": f"Bearer {access_token}", "Content-Type": "application/json"}
        resp = await client.post(self.send_url, headers=headers, json=body)
        if resp.status_code >= 400:
            return None, _error_text(resp)
        try:
            payload = resp.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            return None, f"Unexpected provider response (HTTP {resp.status_code}): {resp.text[:200]}"
        return payload.get("name"), None

    # -- topic management --

    async def subscribe_to_topic(self, tokens: Sequence[str], topic: str) -> TopicManagementResult:
        return await self._manage_topic(self.IID_BATCH_ADD_URL, tokens, topic, "subscribe")

    async def unsubscribe_from_topic(
        self, tokens: Sequence[str], topic: str
    ) -> TopicManagementResult:
        return await self._manage_topic(self.IID_BATCH_REMOVE_URL, tokens, topic, "unsubscribe")

    async def _manage_topic(
        self, url: str, tokens: Sequence[str], topic: str, action: str
    ) -> TopicManagementResult:
        tokens = list(tokens)
        if not self.is_initialized:
            logger.warning("FCM client not initialized. Skipping topic %s.", action)
            return TopicManagementResult(failure_count=len(tokens))
        if not tokens:
            return TopicManagementResult()

        outcome = TopicManagementResult()
        try:
            access_token = await self._get_access_token()
            headers = {
                "Authorization": f"Bearer {access_token}",
                "access_token_auth": "true",
                "Content-Type": "application/json",
            }
            async with self._client() as client:
                for start in range(0, len(tokens), self.IID_BATCH_LIMIT):
                    batch = tokens[start : start + self.IID_BATCH_LIMIT]
                    resp = await client.post(
                        url,
                        headers=headers,
                        json={"to": f"/topics/{topic}", "registration_tokens": batch},
                    )
                    if resp.status_code >= 400:
                        raise PushProviderError(_error_text(resp))
                    for index, item in enumerate(resp.json().get("results", [])):
                        if item.get("error"):
                            outcome.failure_count += 1
                            outcome.errors.append({"index": start + index, "reason": item["error"]})
                        else:
                            outcome.success_count += 1
        except (httpx.HTTPError, JWTError, KeyError, ValueError) as exc:
            raise PushProviderError(str(exc)) from exc
        logger.info("%sd %s tokens to topic %s", action.capitalize(), outcome.success_count, topic)
        return outcome

    # -- auth --

    async def _get_access_token(self) -> str:
        now = int(time.time())
        # Reuse cached token if valid for > 60s
        if self._cached_token and now < (self._token_exp - 60):
            return self._cached_token

        if self.sa is None:
            raise PushProviderError("FCM service account not configured")
        iat = now
        exp = now + 3600
        assertion = jwt.encode(
            {
                "iss": self.sa["client_email"],
                "scope": self.SCOPE,
                "aud": self.OAUTH_TOKEN_URL,
                "iat": iat,
                "exp": exp,
            },
            self.sa["private_key"],
            algorithm="RS256",
        )

        data = {
            "grant_type": "urn:ietf:params:oauth:grant-type:jwt-bearer",
            "assertion": assertion,
        }
        async with self._client() as client:
            resp = await client.post(self.OAUTH_TOKEN_URL, data=data)
            resp.raise_for_status()
            token = resp.json()["access_token"]
            self._cached_token = token
            self._token_exp = exp
            return token


def _error_text(resp: httpx.Response) -> str:
    """Provider error message as sent, with the FCM error code appended when present."""
    try:
        error = resp.json().get("error", {})
    except ValueError:
        return f"HTTP {resp.status_code}: {resp.text}"
    if not isinstance(error, dict):
        return str(error)
    message = error.get("message") or f"HTTP {resp.status_code}"
    for detail in error.get("details") or []:
        code = detail.get("errorCode") if isinstance(detail, dict) else None
        if code and code not in message:
            return f"{message} [{code}]"
    return message
