"""
Schemas for reservation endpoints.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from dropstock.core.enums import ReservationStatus
from dropstock.core.utils import utc_now


class ReservationCreate(BaseModel):
    drop_id: int = Field(..., gt=0)


class ReservationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    holder_id: str
    drop_id: int
    status: ReservationStatus
    expires_at: datetime
    price_at_reservation: Optional[Decimal] = None
    created_at: datetime


class ReservationView(ReservationRead):
    """A reservation with its clock-derived state, as returned to its holder."""
    is_active: bool
    is_expired: bool
    remaining_seconds: int

    @classmethod
    def from_model(cls, reservation, now: Optional[datetime] = None) -> "ReservationView":
        now = now or utc_now()
        base = ReservationRead.model_validate(reservation, from_attributes=True)
        return cls(
            **base.model_dump(),
            is_active=reservation.is_active(now),
            is_expired=reservation.is_expired(now),
            remaining_seconds=reservation.remaining_seconds(now),
        )


class ReserveResult(BaseModel):
    hold_id: int
    deadline: datetime
    new_stock: int
    reservation: ReservationView
