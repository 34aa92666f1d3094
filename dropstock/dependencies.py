from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dropstock.core.config import Settings, get_settings
from dropstock.core.utils import Clock, utc_now
from dropstock.database import async_session
from dropstock.integrations.notifier import EventEmitter, WebSocketEventEmitter
from dropstock.services.drop_service import DropService
from dropstock.services.purchase_service import PurchaseService
from dropstock.services.reservation_service import ReservationService


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()


def get_event_emitter() -> EventEmitter:
    return WebSocketEventEmitter()


def get_clock() -> Clock:
    return utc_now


def get_reservation_service(
    db: AsyncSession = Depends(get_db),
    emitter: EventEmitter = Depends(get_event_emitter),
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
) -> ReservationService:
    return ReservationService(db, emitter=emitter, settings=settings, clock=clock)


def get_purchase_service(
    db: AsyncSession = Depends(get_db),
    emitter: EventEmitter = Depends(get_event_emitter),
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
) -> PurchaseService:
    return PurchaseService(db, emitter=emitter, settings=settings, clock=clock)


def get_drop_service(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> DropService:
    return DropService(db, clock=clock)
