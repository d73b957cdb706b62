from __future__ import annotations

from src.application.events.dispatcher import dispatch_events
from src.application.events.models import (
    OrderCreatedEvent,
    OrderStatusChangedEvent,
    SupportReplyEvent,
    SupportTicketCreatedEvent,
)
from src.infrastructure.db.session import SQLAlchemyUnitOfWork
from src.infrastructure.services.token_registry import TokenRegistry
from src.infrastructure.websocket.connection_manager import ConnectionManager
from tests.fakes import FakeWebSocket


async def _register(session_factory, push_client, user_id: int, token: str) -> None:
    async with SQLAlchemyUnitOfWork(session_factory) as uow:
        await TokenRegistry(uow, push_client).register(user_id, token, "android")


async def _all_notifications(session_factory):
    async with SQLAlchemyUnitOfWork(session_factory) as uow:
        items, _ = await uow.notifications.list_all(limit=100)
        return items


async def test_order_events_notify_customer_and_group(session_factory, push_client):
    manager = ConnectionManager()
    admin_ws = FakeWebSocket()
    await manager.connect(admin_ws, 1, "staff")
    await _register(session_factory, push_client, 42, "tok-42")

    await dispatch_events(
        session_factory,
        [
            OrderCreatedEvent(order_id=5, order_number="ORD-5", user_id=42, total_amount="9.99"),
            OrderStatusChangedEvent(
                order_id=5, order_number="ORD-5", user_id=42, new_status="ready", old_status="new"
            ),
        ],
        push_client=push_client,
        connection_manager=manager,
    )

    assert admin_ws.events() == ["connection_confirmed", "newOrderCreated", "orderUpdated"]
    titles = sorted(n.title_en for n in await _all_notifications(session_factory))
    assert titles == ["Order Confirmation", "Order Ready"]
    assert [s["token"] for s in push_client.sent] == ["tok-42", "tok-42"]


async def test_guest_orders_and_unchanged_status_send_nothing(session_factory, push_client):
    await dispatch_events(
        session_factory,
        [
            OrderCreatedEvent(order_id=6, order_number="ORD-6", user_id=None, total_amount="1"),
            OrderStatusChangedEvent(
                order_id=7, order_number="ORD-7", user_id=3, new_status="ready", old_status="ready"
            ),
        ],
        push_client=push_client,
    )

    assert await _all_notifications(session_factory) == []
    assert push_client.sent == []


async def test_support_events_reach_admin_inbox_or_ticket_owner(session_factory, push_client):
    await dispatch_events(
        session_factory,
        [
            SupportTicketCreatedEvent(ticket_id=11, user_id=42, subject="Late delivery"),
            SupportReplyEvent(ticket_id=11, ticket_owner_id=42, from_admin=True),
            SupportReplyEvent(ticket_id=11, ticket_owner_id=42, from_admin=False),
        ],
        push_client=push_client,
    )

    rows = await _all_notifications(session_factory)
    admin_rows = [n for n in rows if n.user_id is None]
    owner_rows = [n for n in rows if n.user_id == 42]
    assert len(admin_rows) == 2
    assert {n.data["event"] for n in admin_rows} == {"new_ticket", "client_reply"}
    assert [n.data["event"] for n in owner_rows] == ["admin_reply"]


async def test_failing_handler_does_not_stop_later_events(session_factory, push_client):
    class Boom:
        async def broadcast_new_order(self, order):
            raise RuntimeError("socket layer down")

        async def send_notification_to_admins(self, notification):
            return 0

    await dispatch_events(
        session_factory,
        [
            OrderCreatedEvent(order_id=8, order_number="ORD-8", user_id=4, total_amount="3"),
            SupportTicketCreatedEvent(ticket_id=12, user_id=4),
        ],
        push_client=push_client,
        connection_manager=Boom(),
    )

    rows = await _all_notifications(session_factory)
    assert [n.data["event"] for n in rows] == ["new_ticket"]
