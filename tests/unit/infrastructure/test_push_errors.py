from __future__ import annotations

import pytest

from src.infrastructure.push.errors import collect_invalid_tokens, is_invalid_token_error
from src.infrastructure.push.results import PushResult


@pytest.mark.parametrize(
    "message",
    [
        "The registration token is not a valid FCM registration token",
        "messaging/registration-token-not-registered",
        "Requested entity was not found. [UNREGISTERED]",
        "UNREGISTERED",
    ],
)
def test_invalid_token_signatures_are_recognised(message):
    assert is_invalid_token_error(message)


@pytest.mark.parametrize(
    "message",
    [None, "", "Quota exceeded", "The service is currently unavailable.", "Internal error"],
)
def test_transient_errors_are_not_invalid(message):
    assert not is_invalid_token_error(message)


def test_collect_invalid_tokens_only_returns_matching_failures_once():
    results = [
        PushResult(token="good", success=True, message_id="m1"),
        PushResult(token="dead", success=False, error="Requested entity was not found."),
        PushResult(token="busy", success=False, error="Quota exceeded"),
        PushResult(token="dead", success=False, error="UNREGISTERED"),
        PushResult(token="bad", success=False, error="not a valid FCM registration token"),
    ]

    assert collect_invalid_tokens(results) == ["dead", "bad"]
