from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class OrderCreatedEvent:
    order_id: int
    order_number: str
    user_id: int | None
    total_amount: Any
    order_type: str | None = None
    payment_method: str | None = None
    created_by_admin: bool = False
    # Raw order snapshot broadcast to the elevated group
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class OrderStatusChangedEvent:
    order_id: int
    order_number: str
    user_id: int | None
    new_status: str
    old_status: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SupportTicketCreatedEvent:
    ticket_id: int
    user_id: int | None
    subject: str | None = None


@dataclass(frozen=True)
class SupportReplyEvent:
    ticket_id: int
    ticket_owner_id: int | None
    from_admin: bool
