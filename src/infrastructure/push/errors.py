from __future__ import annotations

from collections.abc import Iterable

from src.infrastructure.push.results import PushResult

# Provider error texts meaning "this registration token will never work again".
# Anything else (quota, unavailable, timeouts) is transient and leaves the token active.
INVALID_TOKEN_SIGNATURES: tuple[str, ...] = (
    "not a valid FCM registration token",
    "registration-token-not-registered",
    "Requested entity was not found",
    "UNREGISTERED",
)


class PushProviderError(Exception):
    """The provider rejected or could not complete a topic management call."""


def is_invalid_token_error(message: str | None) -> bool:
    if not message:
        return False
    return any(signature in message for signature in INVALID_TOKEN_SIGNATURES)


def collect_invalid_tokens(results: Iterable[PushResult]) -> list[str]:
    """Tokens whose failure matches an invalid-token signature, in first-seen order."""
    invalid: dict[str, None] = {}
    for result in results:
        if not result.success and is_invalid_token_error(result.error):
            invalid.setdefault(result.token, None)
    return list(invalid)
