# dropstock/routes/websockets.py
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from dropstock.core.utils import utc_now
from dropstock.database import async_session
from dropstock.models.drop import Drop
from dropstock.services.websockets.manager import manager

logger = logging.getLogger(__name__)

router = APIRouter()


async def _stock_snapshot(drop_id: int) -> dict:
    async with async_session() as db:
        drop = await db.get(Drop, drop_id)
    if drop is None:
        return {"event": "error", "data": {"message": f"Drop {drop_id} not found"}}
    return {
        "event": "stockUpdate",
        "data": {
            "dropId": drop.id,
            "newStock": drop.stock,
            "timestamp": utc_now().isoformat(),
        },
    }


async def handle_message(websocket: WebSocket, raw: str) -> None:
    """Dispatch one client message: joinDrop, leaveDrop, requestStock or ping."""
    try:
        message = json.loads(raw)
    except json.JSONDecodeError:
        await manager.send_personal_message({"event": "error", "data": {"message": "Invalid JSON"}}, websocket)
        return

    if not isinstance(message, dict):
        message = {}
    event = message.get("event")
    data = message.get("data")
    drop_id = data.get("dropId") if isinstance(data, dict) else None

    if event == "ping":
        await manager.send_personal_message({"event": "pong", "data": {"timestamp": utc_now().isoformat()}}, websocket)
    elif event in ("joinDrop", "leaveDrop", "requestStock") and (
        not isinstance(drop_id, int) or isinstance(drop_id, bool)
    ):
        await manager.send_personal_message({"event": "error", "data": {"message": "dropId must be an integer"}}, websocket)
    elif event == "joinDrop":
        manager.subscribe(websocket, drop_id)
        logger.debug(f"WebSocket joined drop {drop_id}")
        await manager.send_personal_message({
            "event": "joinedDrop",
            "data": {"dropId": drop_id, "message": f"Subscribed to updates for drop {drop_id}"},
        }, websocket)
    elif event == "leaveDrop":
        manager.unsubscribe(websocket, drop_id)
        logger.debug(f"WebSocket left drop {drop_id}")
        await manager.send_personal_message({
            "event": "leftDrop",
            "data": {"dropId": drop_id, "message": f"Unsubscribed from updates for drop {drop_id}"},
        }, websocket)
    elif event == "requestStock":
        await manager.send_personal_message(await _stock_snapshot(drop_id), websocket)
    else:
        await manager.send_personal_message({"event": "error", "data": {"message": f"Unknown event {event!r}"}}, websocket)


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await manager.connect(websocket)
    try:
        while True:
            data = await websocket.receive_text()
            await handle_message(websocket, data)
    except WebSocketDisconnect:
        manager.disconnect(websocket)
        logger.info("WebSocket client disconnected")
