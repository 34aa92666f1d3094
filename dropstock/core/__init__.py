"""
Core module exports.
"""
from .enums import (
    ReservationStatus,
    ConflictReason,
    PriceSnapshotPolicy,
    EventName,
    ActivityAction,
)

from .exceptions import (
    BaseServiceError,
    ValidationError,
    NotFoundError,
    DropNotFoundError,
    ReservationNotFoundError,
    PurchaseNotFoundError,
    ConflictError,
    ExpiredReservationError,
    StateConflictError,
    TransientDbError,
    InvariantViolation,
)

from .utils import (
    utc_now,
    ensure_utc,
    model_to_schema,
    models_to_schemas,
    success_response,
)
