# dropstock/services/activity_logger.py
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from dropstock.core.enums import ActivityAction
from dropstock.core.utils import Clock, utc_now
from dropstock.models.activity_log import ActivityLog
from dropstock.models.purchase import Purchase
from dropstock.models.reservation import Reservation

logger = logging.getLogger(__name__)


class ActivityLogger:
    """
    Service for recording stock-affecting activity for auditing.

    Entries are added to the caller's session and are committed or rolled
    back together with the change they describe.
    """

    def __init__(self, db: AsyncSession, clock: Clock = utc_now):
        self.db = db
        self.clock = clock

    def log_activity(
        self,
        action: ActivityAction,
        entity_type: str,
        entity_id: Any,
        details: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None
    ) -> ActivityLog:
        """
        Log an activity in the system.

        Args:
            action: The action performed (reserve, cancel, expire, purchase)
            entity_type: The type of entity affected (reservation, drop, purchase)
            entity_id: The ID of the affected entity
            details: Optional additional details as a dictionary
            user_id: Optional holder who performed the action

        Returns:
            The pending ActivityLog instance
        """
        log_entry = ActivityLog(
            action=action.value,
            entity_type=entity_type,
            entity_id=str(entity_id),  # Convert to string for consistency
            details=details,
            user_id=user_id,
            created_at=self.clock(),
        )
        self.db.add(log_entry)

        logger.debug(f"Activity logged: {action.value} {entity_type} {entity_id}")
        return log_entry

    def log_reservation(
        self,
        action: ActivityAction,
        reservation: Reservation,
        stock_after: Optional[int] = None,
    ) -> ActivityLog:
        return self.log_activity(
            action=action,
            entity_type="reservation",
            entity_id=reservation.id,
            user_id=reservation.holder_id,
            details={
                "drop_id": reservation.drop_id,
                "status": reservation.status,
                "expires_at": reservation.expires_at.isoformat(),
                "stock_after": stock_after,
            },
        )

    def log_purchase(self, purchase: Purchase) -> ActivityLog:
        return self.log_activity(
            action=ActivityAction.PURCHASE,
            entity_type="purchase",
            entity_id=purchase.id,
            user_id=purchase.holder_id,
            details={
                "drop_id": purchase.drop_id,
                "reservation_id": purchase.reservation_id,
                "price": str(purchase.price),
                "purchased_at": purchase.purchased_at.isoformat(),
            },
        )

    def log_expiry(self, drop_id: int, reservation_ids: List[int], stock_after: int) -> ActivityLog:
        return self.log_activity(
            action=ActivityAction.EXPIRE,
            entity_type="drop",
            entity_id=drop_id,
            details={
                "reservation_ids": reservation_ids,
                "stock_returned": len(reservation_ids),
                "stock_after": stock_after,
            },
        )
