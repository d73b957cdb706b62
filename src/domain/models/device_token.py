from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True)
class DeviceToken:
    id: int
    user_id: int
    token: str
    platform: str
    device_id: str | None
    app_version: str | None
    is_active: bool
    last_used_at: datetime | None
    created_at: datetime | None
    updated_at: datetime | None

    @property
    def masked(self) -> str:
        return mask_token(self.token)


def mask_token(token: str | None) -> str:
    """Shorten a push token for log lines: first 8 and last 6 characters."""
    if not token:
        return "N/A"
    if len(token) <= 14:
        return token[:4] + "..."
    return f"{token[:8]}...{token[-6:]}"
