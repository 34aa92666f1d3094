from typing import Any, Dict, Optional

from dropstock.core.enums import ConflictReason


class BaseServiceError(Exception):
    """Base exception for all service-related errors."""
    kind = "internal_error"
    status_code = 500

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.kind, "message": self.message}


class ValidationError(BaseServiceError):
    """Raised when input is malformed; the caller can fix it."""
    kind = "validation_error"
    status_code = 400


class NotFoundError(BaseServiceError):
    """Base exception for unknown drops, reservations and purchases."""
    kind = "not_found"
    status_code = 404


class DropNotFoundError(NotFoundError):
    pass


class ReservationNotFoundError(NotFoundError):
    pass


class PurchaseNotFoundError(NotFoundError):
    pass


class ConflictError(BaseServiceError):
    """Raised when a reservation cannot be made: duplicate hold, no stock, drop not open."""
    kind = "conflict"
    status_code = 409

    def __init__(self, reason: ConflictReason, message: str, **kwargs):
        super().__init__(message, **kwargs)
        self.reason = reason

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["reason"] = self.reason.value
        return payload


class ExpiredReservationError(BaseServiceError):
    """Raised when a reservation's deadline has passed."""
    kind = "expired_reservation"
    status_code = 410


class StateConflictError(BaseServiceError):
    """Raised when a reservation is not in the state the transition requires."""
    kind = "state_conflict"
    status_code = 409


class TransientDbError(BaseServiceError):
    """Lock wait timeout, deadlock or serialization failure. Safe to retry."""
    kind = "transient_db_error"
    status_code = 503
    retry_after_seconds = 1


class InvariantViolation(BaseServiceError):
    """Stock would leave [0, initial_stock]. Never clamped, always aborts."""
    kind = "invariant_violation"
    status_code = 500
