from __future__ import annotations


class NotificationType:
    """Canonical notification type names used across backend/frontend (open-ended)."""

    GENERAL = "general"
    ORDER = "order"
    PROMOTION = "promotion"
    SYSTEM = "system"
    SUPPORT = "support"
    TEST = "test"


ALL_TYPES = {
    NotificationType.GENERAL,
    NotificationType.ORDER,
    NotificationType.PROMOTION,
    NotificationType.SYSTEM,
    NotificationType.SUPPORT,
    NotificationType.TEST,
}


class LiveEvent:
    """Server -> client event names on the live connection."""

    CONNECTION_CONFIRMED = "connection_confirmed"
    JOINED_ADMIN_ROOM = "joined_admin_room"
    PONG = "pong"
    NEW_ORDER_CREATED = "newOrderCreated"
    ORDER_UPDATED = "orderUpdated"
    ORDER_STATUS_CHANGED = "orderStatusChanged"
    NOTIFICATION = "notification"


class ClientEvent:
    """Client -> server event names on the live connection."""

    PING = "ping"
    JOIN_ADMIN_ROOM = "join_admin_room"
    UPDATE_ORDER_STATUS = "update_order_status"
