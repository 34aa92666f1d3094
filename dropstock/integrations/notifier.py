"""
Notification fan-out for domain events.

Services hand their events to an ``EventEmitter`` only after the transaction
that produced them has committed. Delivery is best-effort and at-most-once:
each event is attempted once, failures are logged and never reach the caller.
"""

import logging
from typing import Iterable

from dropstock.integrations.events import DomainEvent
from dropstock.services.websockets.manager import ConnectionManager, manager

logger = logging.getLogger(__name__)


class EventEmitter:
    """Interface for a notification sink."""

    async def publish(self, event: DomainEvent) -> None:
        raise NotImplementedError


class NullEventEmitter(EventEmitter):
    """Drops every event. Used by the CLI, where nobody is listening."""

    async def publish(self, event: DomainEvent) -> None:
        logger.debug(f"Discarding event {event.name.value}")


class WebSocketEventEmitter(EventEmitter):
    """Broadcasts each event to the clients following its drop, plus clients following none."""

    def __init__(self, connection_manager: ConnectionManager = manager):
        self.connection_manager = connection_manager

    async def publish(self, event: DomainEvent) -> None:
        await self.connection_manager.broadcast(event.to_message(), drop_id=getattr(event, "drop_id", None))


async def emit_after_commit(emitter: EventEmitter, events: Iterable[DomainEvent]) -> int:
    """
    Publish committed events, one at a time.

    Returns the number of events the sink accepted. Never raises.
    """
    if emitter is None:
        return 0

    delivered = 0
    for event in events:
        try:
            await emitter.publish(event)
            delivered += 1
        except Exception as e:
            logger.warning(f"Notification {event.name.value} not delivered: {e}")
    return delivered
