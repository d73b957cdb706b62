from __future__ import annotations

import logging

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from src.infrastructure.websocket.connection_manager import ConnectionManager
from src.interfaces.http.main import create_app


def test_websocket_confirms_answers_ping_and_joins_room(app, token_factory):
    with TestClient(app) as client:
        with client.websocket_connect(
            f"/api/v1/notifications/ws?token={token_factory(42)}"
        ) as ws:
            confirmed = ws.receive_json()
            assert confirmed["event"] == "connection_confirmed"

            ws.send_text("ping")
            assert ws.receive_json() == {"event": "pong", "data": None}

            ws.send_json({"event": "join_admin_room"})
            assert ws.receive_json()["event"] == "joined_admin_room"
            members = app.state.connection_manager.registry.members("admin-room")
            assert [s.user_id for s in members] == [42]


def test_websocket_accepts_bearer_header_and_admin_room(app, token_factory):
    headers = {"Authorization": f"Bearer {token_factory(1, 'admin')}"}
    with TestClient(app) as client:
        with client.websocket_connect("/api/v1/notifications/ws", headers=headers) as ws:
            assert ws.receive_json()["event"] == "connection_confirmed"
            ws.send_json({"event": "join_admin_room"})
            assert ws.receive_json()["event"] == "joined_admin_room"
            assert app.state.connection_manager.connected_elevated_users()[0]["id"] == 1


@pytest.mark.parametrize("query", ["", "?token=not-a-jwt"])
def test_websocket_rejects_bad_credentials(app, query):
    with TestClient(app) as client:
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect(f"/api/v1/notifications/ws{query}") as ws:
                ws.receive_json()

    assert exc.value.code == 1008
    assert app.state.connection_manager.connected_count() == 0


class RefusingManager(ConnectionManager):
    async def connect(self, websocket, user_id, role):
        raise RuntimeError("accept failed")


def test_websocket_handshake_failure_is_logged_with_origin(
    test_settings, jwt_service, push_client, token_factory, caplog
):
    app = create_app(
        settings=test_settings,
        jwt_service=jwt_service,
        push_client=push_client,
        connection_manager=RefusingManager(),
    )
    caplog.set_level(logging.ERROR, logger="src.interfaces.http.routers.notifications")

    with TestClient(app) as client:
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect(
                f"/api/v1/notifications/ws?token={token_factory(42)}",
                headers={"origin": "https://shop.example"},
            ) as ws:
                ws.receive_json()

    assert exc.value.code == 1011
    assert app.state.connection_manager.connected_count() == 0
    messages = [r.getMessage() for r in caplog.records]
    assert any(
        "handshake failed" in m and "origin=https://shop.example" in m and "code=1011" in m
        for m in messages
    )
