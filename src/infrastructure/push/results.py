from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(slots=True)
class PushMessage:
    title: str
    body: str
    image: str | None = None


@dataclass(slots=True)
class PushResult:
    token: str
    success: bool
    message_id: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class MulticastResult:
    success: bool
    success_count: int = 0
    failure_count: int = 0
    results: list[PushResult] = field(default_factory=list)
    error: str | None = None

    @classmethod
    def from_results(cls, results: list[PushResult]) -> MulticastResult:
        sent = sum(1 for r in results if r.success)
        return cls(
            success=True,
            success_count=sent,
            failure_count=len(results) - sent,
            results=results,
        )


@dataclass(slots=True)
class TopicResult:
    topic: str
    success: bool
    message_id: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class TopicManagementResult:
    success_count: int = 0
    failure_count: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)
