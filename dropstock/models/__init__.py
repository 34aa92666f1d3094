from .activity_log import ActivityLog
from .drop import Drop
from .reservation import Reservation
from .purchase import Purchase

# This ensures all models are registered with SQLAlchemy
__all__ = [
    'ActivityLog',
    'Drop',
    'Reservation',
    'Purchase',
]
