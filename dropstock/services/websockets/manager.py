# dropstock/services/websockets/manager.py
from typing import Dict, List, Optional, Set
from fastapi import WebSocket
import json
import logging

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks live WebSocket clients and the drops each one follows."""

    def __init__(self):
        self.active_connections: List[WebSocket] = []
        self.drop_subscriptions: Dict[int, Set[WebSocket]] = {}

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)
        logger.info(f"WebSocket connected. Total connections: {len(self.active_connections)}")

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
        for drop_id in list(self.drop_subscriptions):
            self.unsubscribe(websocket, drop_id)
        logger.info(f"WebSocket disconnected. Total connections: {len(self.active_connections)}")

    def subscribe(self, websocket: WebSocket, drop_id: int):
        self.drop_subscriptions.setdefault(drop_id, set()).add(websocket)

    def unsubscribe(self, websocket: WebSocket, drop_id: int):
        subscribers = self.drop_subscriptions.get(drop_id)
        if not subscribers:
            return
        subscribers.discard(websocket)
        if not subscribers:
            del self.drop_subscriptions[drop_id]

    def subscriber_count(self, drop_id: int) -> int:
        return len(self.drop_subscriptions.get(drop_id, ()))

    async def send_personal_message(self, message: dict, websocket: WebSocket):
        await websocket.send_text(json.dumps(message))

    def follows_any(self, websocket: WebSocket) -> bool:
        return any(websocket in subscribers for subscribers in self.drop_subscriptions.values())

    async def broadcast(self, message: dict, drop_id: Optional[int] = None):
        """
        Broadcast message to connected clients.

        With a ``drop_id`` the message goes to that drop's subscribers and to
        clients that follow no drop at all; clients following other drops skip it.
        """
        json_message = json.dumps(message)
        disconnected = []

        if drop_id is None:
            targets = list(self.active_connections)
        else:
            followers = self.drop_subscriptions.get(drop_id, set())
            targets = [
                connection for connection in self.active_connections
                if connection in followers or not self.follows_any(connection)
            ]

        for connection in targets:
            try:
                await connection.send_text(json_message)
            except Exception as e:
                logger.error(f"Error sending to WebSocket: {e}")
                disconnected.append(connection)

        # Clean up disconnected clients
        for connection in disconnected:
            self.disconnect(connection)


# Global connection manager instance
manager = ConnectionManager()
