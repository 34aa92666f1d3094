"""
Shared enums and constants used across the application.
"""

from enum import Enum


class ReservationStatus(str, Enum):
    """Lifecycle of a reservation. ACTIVE is the only non-terminal state."""
    ACTIVE = "active"
    EXPIRED = "expired"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self is not ReservationStatus.ACTIVE


# Legal transitions of the reservation state machine
RESERVATION_TRANSITIONS = {
    ReservationStatus.ACTIVE: frozenset({ReservationStatus.EXPIRED, ReservationStatus.COMPLETED}),
    ReservationStatus.EXPIRED: frozenset(),
    ReservationStatus.COMPLETED: frozenset(),
}


class ConflictReason(str, Enum):
    DUPLICATE_ACTIVE = "duplicate_active"
    OUT_OF_STOCK = "out_of_stock"
    NOT_STARTED = "not_started"


class PriceSnapshotPolicy(str, Enum):
    """Which price a purchase is charged at."""
    COMPLETION = "completion"    # drop price at the moment the purchase completes
    RESERVATION = "reservation"  # price captured when the reservation was made


class EventName(str, Enum):
    STOCK_UPDATE = "stockUpdate"
    RESERVATION_CREATED = "reservationCreated"
    RESERVATION_EXPIRED = "reservationExpired"
    RESERVATION_CANCELLED = "reservationCancelled"
    PURCHASE_COMPLETED = "purchaseCompleted"


class ActivityAction(str, Enum):
    RESERVE = "reserve"
    CANCEL = "cancel"
    PURCHASE = "purchase"
    EXPIRE = "expire"
