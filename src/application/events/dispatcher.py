from __future__ import annotations

import logging
from typing import Iterable

from src.application.events.models import (
    OrderCreatedEvent,
    OrderStatusChangedEvent,
    SupportReplyEvent,
    SupportTicketCreatedEvent,
)
from src.application.notifications.factory import (
    order_created_notification,
    order_status_notification,
    support_reply_notification,
    support_ticket_notification,
)
from src.infrastructure.db.session import SQLAlchemyUnitOfWork
from src.infrastructure.push.fcm_v1 import FCMv1Client
from src.infrastructure.services.notification_service import NotificationService
from src.infrastructure.websocket.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)


async def dispatch_events(
    session_factory,
    events: Iterable[object],
    *,
    push_client: FCMv1Client,
    connection_manager: ConnectionManager | None = None,
) -> None:
    """
    Dispatch events post-commit on a fresh unit of work.
    Safe to call in a background task: a failing handler is logged and skipped.
    """
    events = list(events)
    if not events:
        return

    async with SQLAlchemyUnitOfWork(session_factory) as uow:
        service = NotificationService(
            uow, push_client=push_client, connection_manager=connection_manager
        )
        for event in events:
            try:
                if isinstance(event, OrderCreatedEvent):
                    await _handle_order_created(service, connection_manager, event)
                elif isinstance(event, OrderStatusChangedEvent):
                    await _handle_order_status_changed(service, connection_manager, event)
                elif isinstance(event, SupportTicketCreatedEvent):
                    await _handle_support_ticket_created(service, event)
                elif isinstance(event, SupportReplyEvent):
                    await _handle_support_reply(service, event)
                else:
                    logger.debug("No handler for event %s", type(event).__name__)
            except Exception as e:
                logger.error(
                    "Error dispatching event %s: %s", type(event).__name__, e, exc_info=True
                )


async def _handle_order_created(
    service: NotificationService,
    connection_manager: ConnectionManager | None,
    e: OrderCreatedEvent,
) -> None:
    if connection_manager is not None:
        await connection_manager.broadcast_new_order(
            {"id": e.order_id, "order_number": e.order_number, **e.payload}
        )
    if e.user_id is None or not e.order_number:
        logger.debug("Skipping creation notification for guest order %s", e.order_id)
        return
    built = order_created_notification(
        order_id=e.order_id,
        order_number=e.order_number,
        total_amount=e.total_amount,
        order_type=e.order_type,
        payment_method=e.payment_method,
        created_by_admin=e.created_by_admin,
    )
    await service.send_to_user(e.user_id, built.content, built.data)


async def _handle_order_status_changed(
    service: NotificationService,
    connection_manager: ConnectionManager | None,
    e: OrderStatusChangedEvent,
) -> None:
    if connection_manager is not None:
        await connection_manager.broadcast_order_update(
            {
                "id": e.order_id,
                "order_number": e.order_number,
                "status": e.new_status,
                "old_status": e.old_status,
                **e.payload,
            }
        )
    if e.user_id is None:
        return
    built = order_status_notification(
        order_id=e.order_id,
        order_number=e.order_number,
        new_status=e.new_status,
        old_status=e.old_status,
    )
    if built is None:
        return
    await service.send_to_user(e.user_id, built.content, built.data)


async def _handle_support_ticket_created(
    service: NotificationService, e: SupportTicketCreatedEvent
) -> None:
    built = support_ticket_notification(ticket_id=e.ticket_id, subject=e.subject)
    data = {**built.data, "user_id": e.user_id} if e.user_id is not None else built.data
    await service.notify_admins(built.content, data)


async def _handle_support_reply(service: NotificationService, e: SupportReplyEvent) -> None:
    built = support_reply_notification(ticket_id=e.ticket_id, from_admin=e.from_admin)
    if e.from_admin:
        if e.ticket_owner_id is None:
            return
        await service.send_to_user(e.ticket_owner_id, built.content, built.data)
    else:
        await service.notify_admins(built.content, built.data)
