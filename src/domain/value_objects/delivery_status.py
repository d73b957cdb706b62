from __future__ import annotations

from enum import Enum


class DeliveryStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    CLICKED = "clicked"


class DeliveryChannel(str, Enum):
    PUSH = "push"
