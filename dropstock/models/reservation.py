# dropstock/models/reservation.py

import math
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import relationship

from dropstock.core.enums import RESERVATION_TRANSITIONS, ReservationStatus
from dropstock.core.exceptions import StateConflictError
from dropstock.core.utils import ensure_utc, utc_now
from dropstock.database import Base
from dropstock.models.types import UTCDateTime


class Reservation(Base):
    """
    A time-boxed hold on one unit of a drop.

    Rows are never deleted. ``status`` only moves forward: active -> expired
    or active -> completed.
    """

    __tablename__ = "reservations"
    __table_args__ = (
        Index("idx_reservations_holder_drop", "holder_id", "drop_id"),
        Index("idx_reservations_status_expires", "status", "expires_at"),
    )

    id = Column(Integer, primary_key=True)
    holder_id = Column(String(100), nullable=False)
    drop_id = Column(Integer, ForeignKey("drops.id", ondelete="RESTRICT"), nullable=False)

    status = Column(String(20), nullable=False, default=ReservationStatus.ACTIVE.value, index=True)
    expires_at = Column(UTCDateTime, nullable=False)

    # Drop price when the hold was taken; used by the "reservation" price policy
    price_at_reservation = Column(Numeric(10, 2), nullable=True)

    created_at = Column(UTCDateTime, default=utc_now, nullable=False)
    updated_at = Column(UTCDateTime, default=utc_now, nullable=False)

    drop = relationship("Drop", back_populates="reservations", lazy="raise")
    purchase = relationship("Purchase", back_populates="reservation", uselist=False, lazy="raise")

    @property
    def status_enum(self) -> ReservationStatus:
        return ReservationStatus(self.status)

    def transition_to(self, new_status: ReservationStatus) -> None:
        """Apply a state-machine transition or raise StateConflictError."""
        current = self.status_enum
        if new_status not in RESERVATION_TRANSITIONS[current]:
            raise StateConflictError(
                f"Reservation {self.id} is {current.value} and cannot become {new_status.value}",
                details={"reservation_id": self.id, "status": current.value},
            )
        self.status = new_status.value

    def deadline_passed(self, now: Optional[datetime] = None) -> bool:
        now = ensure_utc(now or utc_now())
        return now >= ensure_utc(self.expires_at)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.status == ReservationStatus.EXPIRED.value or self.deadline_passed(now)

    def is_active(self, now: Optional[datetime] = None) -> bool:
        return self.status == ReservationStatus.ACTIVE.value and not self.deadline_passed(now)

    def remaining_seconds(self, now: Optional[datetime] = None) -> int:
        now = ensure_utc(now or utc_now())
        remaining = (ensure_utc(self.expires_at) - now).total_seconds()
        return max(0, math.floor(remaining))

    def __repr__(self) -> str:
        return (
            f"<Reservation id={self.id} holder={self.holder_id} drop={self.drop_id} "
            f"status={self.status}>"
        )
