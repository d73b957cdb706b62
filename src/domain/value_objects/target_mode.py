from __future__ import annotations

from enum import Enum


class TargetMode(str, Enum):
    USER = "user"
    USERS = "users"
    BROADCAST = "broadcast"
    TOPIC = "topic"
