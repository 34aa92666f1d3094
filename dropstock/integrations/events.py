"""
Purpose: Defines the domain events published after a reservation, purchase,
cancellation or sweep commits.

Each event is a Pydantic model whose field aliases are the wire names the
notification fan-out expects. ``to_message()`` produces the envelope sent to
subscribers: ``{"event": <name>, "data": {...}}``.
"""

from datetime import datetime
from typing import Any, ClassVar, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from dropstock.core.enums import EventName
from dropstock.core.utils import utc_now


class DomainEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: ClassVar[EventName]

    timestamp: datetime = Field(default_factory=utc_now)

    def payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_message(self) -> Dict[str, Any]:
        return {"event": self.name.value, "data": self.payload()}


class StockUpdateEvent(DomainEvent):
    name: ClassVar[EventName] = EventName.STOCK_UPDATE

    drop_id: int = Field(alias="dropId")
    new_stock: int = Field(alias="newStock")
    reason: Optional[str] = None


class ReservationCreatedEvent(DomainEvent):
    name: ClassVar[EventName] = EventName.RESERVATION_CREATED

    reservation_id: int = Field(alias="reservationId")
    drop_id: int = Field(alias="dropId")
    holder_id: str = Field(alias="holderId")


class ReservationExpiredEvent(DomainEvent):
    name: ClassVar[EventName] = EventName.RESERVATION_EXPIRED

    drop_id: int = Field(alias="dropId")
    stock_returned: int = Field(alias="stockReturned")


class ReservationCancelledEvent(DomainEvent):
    name: ClassVar[EventName] = EventName.RESERVATION_CANCELLED

    reservation_id: int = Field(alias="reservationId")
    drop_id: int = Field(alias="dropId")


class PurchaseCompletedEvent(DomainEvent):
    name: ClassVar[EventName] = EventName.PURCHASE_COMPLETED

    drop_id: int = Field(alias="dropId")
    purchase_id: int = Field(alias="purchaseId")
    holder_id: str = Field(alias="holderId")
