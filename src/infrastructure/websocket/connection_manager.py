from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from fastapi import WebSocket

from src.application.notifications.types import ClientEvent, LiveEvent
from src.domain.value_objects.role import ElevatedPredicate, elevated_roles_predicate

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_ROOM = "admin-room"
# Close code sent to a connection evicted by a newer one for the same user
REPLACED_CLOSE_CODE = 4000


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(eq=False)
class LiveSession:
    """One authenticated connection. Identity-compared: two sessions are never equal."""

    user_id: int
    role: str
    websocket: WebSocket
    rooms: set[str] = field(default_factory=set)
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    async def send(self, event: str, payload: Any) -> None:
        await self.websocket.send_json({"event": event, "data": payload})


class SessionRegistry:
    """In-memory map of user id -> live session plus room memberships.

    Holds at most one session per user id.
    """

    def __init__(self) -> None:
        self._sessions: dict[int, LiveSession] = {}
        self._rooms: dict[str, set[LiveSession]] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, user_id: int) -> LiveSession | None:
        return self._sessions.get(user_id)

    def sessions(self) -> list[LiveSession]:
        return list(self._sessions.values())

    def add(self, session: LiveSession) -> LiveSession | None:
        """Register a session, returning the one it replaced (if any)."""
        previous = self._sessions.get(session.user_id)
        if previous is not None and previous is not session:
            self._leave_all(previous)
        self._sessions[session.user_id] = session
        return previous if previous is not session else None

    def remove(self, session: LiveSession) -> bool:
        """Compare-and-remove: only drops the entry if it is still this exact session."""
        self._leave_all(session)
        if self._sessions.get(session.user_id) is session:
            del self._sessions[session.user_id]
            return True
        return False

    def join(self, session: LiveSession, room: str) -> bool:
        """Add the session to a room. Returns False if it was already a member."""
        members = self._rooms.setdefault(room, set())
        if session in members:
            return False
        members.add(session)
        session.rooms.add(room)
        return True

    def members(self, room: str) -> list[LiveSession]:
        return list(self._rooms.get(room, ()))

    def _leave_all(self, session: LiveSession) -> None:
        for room in list(session.rooms):
            members = self._rooms.get(room)
            if members is not None:
                members.discard(session)
                if not members:
                    del self._rooms[room]
        session.rooms.clear()


class ConnectionManager:
    """Manages live WebSocket sessions for real-time notifications."""

    def __init__(
        self,
        *,
        registry: SessionRegistry | None = None,
        is_elevated: ElevatedPredicate | None = None,
        admin_room: str = DEFAULT_ADMIN_ROOM,
    ) -> None:
        self.registry = registry if registry is not None else SessionRegistry()
        self.is_elevated = is_elevated or elevated_roles_predicate()
        self.admin_room = admin_room

    # -- lifecycle --

    async def connect(self, websocket: WebSocket, user_id: int, role: str) -> LiveSession:
        """Accept an already-authenticated connection and register it."""
        await websocket.accept()
        session = LiveSession(user_id=user_id, role=role, websocket=websocket)
        replaced = self.registry.add(session)
        if replaced is not None:
            logger.info("WebSocket session replaced: user=%s", user_id)
            await self._close_quietly(replaced, REPLACED_CLOSE_CODE, "Replaced by a new connection")

        if self.is_elevated(role):
            self.registry.join(session, self.admin_room)
            logger.info("User %s joined %s", user_id, self.admin_room)

        await self._send(
            session,
            LiveEvent.CONNECTION_CONFIRMED,
            {"message": "Connected to real-time updates", "timestamp": _now_iso()},
        )
        logger.info(
            "WebSocket connected: user=%s role=%s total=%s", user_id, role, len(self.registry)
        )
        return session

    def disconnect(self, session: LiveSession) -> None:
        removed = self.registry.remove(session)
        logger.info(
            "WebSocket disconnected: user=%s removed=%s remaining=%s",
            session.user_id,
            removed,
            len(self.registry),
        )

    # -- inbound events --

    async def handle_event(self, session: LiveSession, event: str | None, data: Any) -> None:
        if event == ClientEvent.PING:
            await self._send(session, LiveEvent.PONG, None)
        elif event == ClientEvent.JOIN_ADMIN_ROOM:
            if self.registry.join(session, self.admin_room):
                logger.info(
                    "User %s (role=%s) joined %s on request",
                    session.user_id,
                    session.role,
                    self.admin_room,
                )
            await self._send(session, LiveEvent.JOINED_ADMIN_ROOM, None)
        elif event == ClientEvent.UPDATE_ORDER_STATUS:
            await self.broadcast_order_status_change(data)
        else:
            logger.debug("Ignoring client event %r from user=%s", event, session.user_id)

    # -- emission primitives --

    async def emit_to_group(self, event: str, payload: Any) -> int:
        """Emit to every session in the elevated room. Returns the number reached."""
        delivered = 0
        for session in self.registry.members(self.admin_room):
            if await self._send(session, event, payload):
                delivered += 1
        logger.debug("Emitted %s to %s: delivered=%s", event, self.admin_room, delivered)
        return delivered

    async def emit_to_user(self, user_id: int, event: str, payload: Any) -> bool:
        session = self.registry.get(user_id)
        if session is None:
            logger.debug("User %s not connected for event %s", user_id, event)
            return False
        return await self._send(session, event, payload)

    async def broadcast_new_order(self, order: dict[str, Any]) -> int:
        logger.info("Broadcasting new order: %s", order.get("id") or order.get("orderId"))
        return await self.emit_to_group(LiveEvent.NEW_ORDER_CREATED, order)

    async def broadcast_order_update(self, order: dict[str, Any]) -> int:
        logger.info("Broadcasting order update: %s", order.get("id") or order.get("orderId"))
        return await self.emit_to_group(LiveEvent.ORDER_UPDATED, order)

    async def broadcast_order_status_change(self, data: Any) -> int:
        return await self.emit_to_group(LiveEvent.ORDER_STATUS_CHANGED, data)

    async def send_notification_to_admins(self, notification: dict[str, Any]) -> int:
        return await self.emit_to_group(LiveEvent.NOTIFICATION, notification)

    async def send_notification_to_user(self, user_id: int, notification: dict[str, Any]) -> bool:
        return await self.emit_to_user(user_id, LiveEvent.NOTIFICATION, notification)

    async def broadcast_system_notification(self, message: str, type: str = "info") -> int:
        return await self.emit_to_group(
            LiveEvent.NOTIFICATION,
            {"type": type, "message": message, "timestamp": _now_iso(), "isSystem": True},
        )

    # -- introspection --

    def is_connected(self, user_id: int) -> bool:
        return self.registry.get(user_id) is not None

    def connected_count(self) -> int:
        return len(self.registry)

    def connected_elevated_users(self) -> list[dict[str, Any]]:
        return [
            {"id": s.user_id, "role": s.role, "connected_at": s.connected_at.isoformat()}
            for s in self.registry.sessions()
            if self.is_elevated(s.role)
        ]

    # -- internals --

    async def _send(self, session: LiveSession, event: str, payload: Any) -> bool:
        try:
            await session.send(event, payload)
            return True
        except Exception as e:
            logger.warning("Error sending %s to user=%s: %s", event, session.user_id, e)
            # Broken transport; drop it unless a newer session already took its place
            self.registry.remove(session)
            return False

    async def _close_quietly(self, session: LiveSession, code: int, reason: str) -> None:
        try:
            await session.websocket.close(code=code, reason=reason)
        except Exception as e:
            logger.debug("Closing replaced session for user=%s failed: %s", session.user_id, e)


def parse_client_frame(raw: str) -> tuple[str | None, Any]:
    """Decode an inbound text frame into (event, data).

    Accepts ``{"event": name, "data": ...}``, ``{"type": name, ...}`` and a bare ``ping``.
    """
    text = raw.strip()
    if text == ClientEvent.PING:
        return ClientEvent.PING, None
    try:
        frame = json.loads(text)
    except ValueError:
        return None, None
    if not isinstance(frame, dict):
        return None, None
    event = frame.get("event") or frame.get("type")
    return (str(event) if event else None), frame.get("data")
