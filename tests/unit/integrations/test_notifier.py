# tests/unit/integrations/test_notifier.py
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock

from dropstock.integrations.events import (
    PurchaseCompletedEvent,
    ReservationExpiredEvent,
    StockUpdateEvent,
)
from dropstock.integrations.notifier import (
    NullEventEmitter,
    WebSocketEventEmitter,
    emit_after_commit,
)
from dropstock.services.websockets.manager import ConnectionManager
from tests.mocks import MockEmitter

TIMESTAMP = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_stock_update_message_uses_wire_names():
    event = StockUpdateEvent(drop_id=7, new_stock=3, timestamp=TIMESTAMP)

    assert event.to_message() == {
        "event": "stockUpdate",
        "data": {"dropId": 7, "newStock": 3, "timestamp": "2026-03-01T12:00:00Z"},
    }


def test_reason_is_included_when_present():
    event = StockUpdateEvent(drop_id=7, new_stock=4, reason="reservation_expired")

    assert event.payload()["reason"] == "reservation_expired"


def test_expired_and_purchase_payloads():
    expired = ReservationExpiredEvent(drop_id=2, stock_returned=5).payload()
    purchase = PurchaseCompletedEvent(drop_id=2, purchase_id=11, holder_id="user-1").payload()

    assert expired["stockReturned"] == 5
    assert {"dropId", "purchaseId", "holderId", "timestamp"} <= set(purchase)


async def test_emit_after_commit_delivers_each_event():
    emitter = MockEmitter()
    events = [StockUpdateEvent(drop_id=1, new_stock=0), ReservationExpiredEvent(drop_id=1, stock_returned=1)]

    delivered = await emit_after_commit(emitter, events)

    assert delivered == 2
    assert emitter.names() == ["stockUpdate", "reservationExpired"]


async def test_emit_after_commit_swallows_failures():
    emitter = MockEmitter()
    emitter.should_fail = True

    delivered = await emit_after_commit(emitter, [StockUpdateEvent(drop_id=1, new_stock=0)])

    assert delivered == 0


async def test_one_failure_does_not_stop_the_rest():
    emitter = AsyncMock()
    emitter.publish.side_effect = [RuntimeError("gone"), None]

    delivered = await emit_after_commit(emitter, [
        StockUpdateEvent(drop_id=1, new_stock=0),
        StockUpdateEvent(drop_id=2, new_stock=0),
    ])

    assert delivered == 1
    assert emitter.publish.await_count == 2


async def test_no_emitter_is_a_no_op():
    assert await emit_after_commit(None, [StockUpdateEvent(drop_id=1, new_stock=0)]) == 0


async def test_null_emitter_accepts_everything():
    assert await emit_after_commit(NullEventEmitter(), [StockUpdateEvent(drop_id=1, new_stock=0)]) == 1


async def test_websocket_emitter_broadcasts_to_all_clients():
    manager = ConnectionManager()
    first, second = AsyncMock(), AsyncMock()
    await manager.connect(first)
    await manager.connect(second)

    await WebSocketEventEmitter(manager).publish(StockUpdateEvent(drop_id=3, new_stock=9))

    for socket in (first, second):
        message = json.loads(socket.send_text.await_args.args[0])
        assert message["event"] == "stockUpdate"
        assert message["data"]["newStock"] == 9


async def test_broadcast_drops_dead_connections():
    manager = ConnectionManager()
    alive, dead = AsyncMock(), AsyncMock()
    dead.send_text.side_effect = RuntimeError("closed")
    await manager.connect(alive)
    await manager.connect(dead)
    manager.subscribe(dead, 1)

    await manager.broadcast({"event": "ping"})

    assert manager.active_connections == [alive]
    assert manager.subscriber_count(1) == 0


async def test_drop_broadcast_skips_clients_following_other_drops():
    manager = ConnectionManager()
    follower, other, unscoped = AsyncMock(), AsyncMock(), AsyncMock()
    for socket in (follower, other, unscoped):
        await manager.connect(socket)
    manager.subscribe(follower, 5)
    manager.subscribe(other, 6)

    await manager.broadcast({"event": "stockUpdate"}, drop_id=5)

    follower.send_text.assert_awaited_once()
    unscoped.send_text.assert_awaited_once()
    other.send_text.assert_not_awaited()
