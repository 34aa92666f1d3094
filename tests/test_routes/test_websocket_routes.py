# tests/test_routes/test_websocket_routes.py
import json
from unittest.mock import AsyncMock

import pytest

from dropstock.integrations.events import StockUpdateEvent
from dropstock.integrations.notifier import WebSocketEventEmitter
from dropstock.routes import websockets as ws_routes
from dropstock.services.websockets.manager import ConnectionManager


@pytest.fixture
def manager(monkeypatch, session_factory):
    fresh = ConnectionManager()
    monkeypatch.setattr(ws_routes, "manager", fresh)
    monkeypatch.setattr(ws_routes, "async_session", session_factory)
    return fresh


@pytest.fixture
async def socket(manager):
    websocket = AsyncMock()
    await manager.connect(websocket)
    return websocket


def last_message(websocket):
    return json.loads(websocket.send_text.await_args.args[0])


async def test_ping(socket):
    await ws_routes.handle_message(socket, json.dumps({"event": "ping"}))

    assert last_message(socket)["event"] == "pong"


async def test_join_and_leave_drop_are_acknowledged(manager, socket):
    await ws_routes.handle_message(socket, json.dumps({"event": "joinDrop", "data": {"dropId": 4}}))
    assert manager.subscriber_count(4) == 1
    joined = last_message(socket)
    assert joined["event"] == "joinedDrop"
    assert joined["data"]["dropId"] == 4

    await ws_routes.handle_message(socket, json.dumps({"event": "leaveDrop", "data": {"dropId": 4}}))
    assert manager.subscriber_count(4) == 0
    left = last_message(socket)
    assert left["event"] == "leftDrop"
    assert left["data"]["dropId"] == 4


async def test_joined_client_only_hears_its_drop(manager, socket):
    bystander = AsyncMock()
    await manager.connect(bystander)
    await ws_routes.handle_message(socket, json.dumps({"event": "joinDrop", "data": {"dropId": 4}}))
    socket.send_text.reset_mock()

    await WebSocketEventEmitter(manager).publish(StockUpdateEvent(drop_id=9, new_stock=1))
    await WebSocketEventEmitter(manager).publish(StockUpdateEvent(drop_id=4, new_stock=2))

    socket.send_text.assert_awaited_once()
    assert last_message(socket)["data"]["dropId"] == 4
    assert bystander.send_text.await_count == 2


async def test_request_stock(socket, make_drop):
    drop_id = await make_drop(stock=7)

    await ws_routes.handle_message(socket, json.dumps({"event": "requestStock", "data": {"dropId": drop_id}}))

    message = last_message(socket)
    assert message["event"] == "stockUpdate"
    assert message["data"]["dropId"] == drop_id
    assert message["data"]["newStock"] == 7


async def test_request_stock_unknown_drop(socket, test_engine):
    await ws_routes.handle_message(socket, json.dumps({"event": "requestStock", "data": {"dropId": 404}}))

    assert last_message(socket)["event"] == "error"


@pytest.mark.parametrize("raw", [
    "not json",
    json.dumps(["list"]),
    json.dumps({"event": "joinDrop", "data": {"dropId": "seven"}}),
    json.dumps({"event": "joinDrop", "data": {"dropId": True}}),
    json.dumps({"event": "dance"}),
])
async def test_bad_messages_get_an_error_reply(manager, socket, raw):
    await ws_routes.handle_message(socket, raw)

    assert last_message(socket)["event"] == "error"
    assert manager.drop_subscriptions == {}


async def test_disconnect_clears_subscriptions(manager, socket):
    manager.subscribe(socket, 1)
    manager.subscribe(socket, 2)

    manager.disconnect(socket)

    assert manager.active_connections == []
    assert manager.drop_subscriptions == {}
