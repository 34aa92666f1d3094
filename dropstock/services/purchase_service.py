"""
Purpose: Turns a still-valid reservation into a permanent purchase.

The unit was already taken from stock when the reservation was made, so
completing a purchase never touches the stock ledger. Expiry is checked
lazily against the clock here, independent of when the sweeper last ran.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dropstock.core.config import Settings, get_settings
from dropstock.core.enums import PriceSnapshotPolicy, ReservationStatus
from dropstock.core.exceptions import (
    DropNotFoundError,
    ExpiredReservationError,
    PurchaseNotFoundError,
    ReservationNotFoundError,
    StateConflictError,
)
from dropstock.core.utils import Clock, utc_now
from dropstock.integrations.events import PurchaseCompletedEvent
from dropstock.integrations.notifier import EventEmitter, emit_after_commit
from dropstock.models.drop import Drop
from dropstock.models.purchase import Purchase
from dropstock.models.reservation import Reservation
from dropstock.services.activity_logger import ActivityLogger
from dropstock.services.transactions import atomic

logger = logging.getLogger(__name__)


@dataclass
class PurchaseResult:
    purchase: Purchase
    reservation: Reservation

    @property
    def sale_id(self) -> int:
        return self.purchase.id

    @property
    def price(self) -> Decimal:
        return self.purchase.price

    @property
    def completed_at(self) -> datetime:
        return self.purchase.purchased_at


class PurchaseService:
    def __init__(
        self,
        db: AsyncSession,
        emitter: Optional[EventEmitter] = None,
        settings: Optional[Settings] = None,
        clock: Clock = utc_now,
    ):
        self.db = db
        self.emitter = emitter
        self.settings = settings or get_settings()
        self.clock = clock

    @property
    def price_policy(self) -> PriceSnapshotPolicy:
        return PriceSnapshotPolicy(self.settings.PRICE_SNAPSHOT_POLICY)

    async def complete_purchase(self, holder_id: str, reservation_id: int) -> PurchaseResult:
        """
        Complete the purchase for an active reservation.

        Args:
            holder_id: Identifier of the caller; must own the reservation
            reservation_id: The reservation being converted

        Returns:
            The new purchase and the completed reservation

        Raises:
            ReservationNotFoundError: unknown id or owned by someone else
            StateConflictError: reservation already expired or completed
            ExpiredReservationError: still active but its deadline has passed
        """
        async with atomic(self.db, "complete_purchase"):
            reservation = await self._lock_reservation(holder_id, reservation_id)
            now = self.clock()

            if reservation.status != ReservationStatus.ACTIVE.value:
                raise StateConflictError(
                    f"Reservation {reservation_id} is {reservation.status} and cannot be purchased",
                    details={"reservation_id": reservation_id, "status": reservation.status},
                )

            if reservation.deadline_passed(now):
                raise ExpiredReservationError(
                    "Reservation has expired",
                    details={
                        "reservation_id": reservation_id,
                        "expires_at": reservation.expires_at.isoformat(),
                    },
                )

            price = await self._sale_price(reservation)

            reservation.transition_to(ReservationStatus.COMPLETED)
            reservation.updated_at = now

            purchase = Purchase(
                holder_id=holder_id,
                drop_id=reservation.drop_id,
                reservation_id=reservation.id,
                price=price,
                purchased_at=now,
                created_at=now,
            )
            self.db.add(purchase)
            await self.db.flush()

            ActivityLogger(self.db, self.clock).log_purchase(purchase)

        logger.info(
            f"Purchase {purchase.id} completed by holder {holder_id} for drop {purchase.drop_id} "
            f"at {purchase.price} ({self.price_policy.value} price)"
        )

        await emit_after_commit(self.emitter, [
            PurchaseCompletedEvent(drop_id=purchase.drop_id, purchase_id=purchase.id, holder_id=holder_id),
        ])

        return PurchaseResult(purchase=purchase, reservation=reservation)

    async def _sale_price(self, reservation: Reservation) -> Decimal:
        if self.price_policy is PriceSnapshotPolicy.RESERVATION and reservation.price_at_reservation is not None:
            return reservation.price_at_reservation

        # Current catalogue price, read fresh at completion time
        stmt = (
            select(Drop.price)
            .where(Drop.id == reservation.drop_id)
        )
        price = (await self.db.execute(stmt)).scalar_one_or_none()
        if price is None:
            raise DropNotFoundError(f"Drop {reservation.drop_id} not found")
        return price

    async def _lock_reservation(self, holder_id: str, reservation_id: int) -> Reservation:
        stmt = (
            select(Reservation)
            .where(
                Reservation.id == reservation_id,
                Reservation.holder_id == holder_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        reservation = result.scalar_one_or_none()
        if reservation is None:
            raise ReservationNotFoundError(f"Reservation {reservation_id} not found")
        return reservation

    async def get_purchase(self, holder_id: str, purchase_id: int) -> Purchase:
        stmt = select(Purchase).where(Purchase.id == purchase_id, Purchase.holder_id == holder_id)
        purchase = (await self.db.execute(stmt)).scalar_one_or_none()
        if purchase is None:
            raise PurchaseNotFoundError(f"Purchase {purchase_id} not found")
        return purchase

    async def list_for_holder(self, holder_id: str, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        """A page of the holder's purchases, newest first."""
        return await self._page([Purchase.holder_id == holder_id], page, limit)

    async def list_all(self, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        """A page of every purchase, newest first. Admin view."""
        return await self._page([], page, limit)

    async def count_for_drop(self, drop_id: int) -> int:
        total = await self.db.scalar(select(func.count(Purchase.id)).where(Purchase.drop_id == drop_id))
        return total or 0

    async def _page(self, criteria, page: int, limit: int) -> Dict[str, Any]:
        count_stmt = select(func.count(Purchase.id))
        stmt = select(Purchase)
        if criteria:
            count_stmt = count_stmt.where(*criteria)
            stmt = stmt.where(*criteria)

        total = await self.db.scalar(count_stmt)
        stmt = (
            stmt
            .order_by(Purchase.purchased_at.desc(), Purchase.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        purchases = list((await self.db.execute(stmt)).scalars().all())
        return {"items": purchases, "total": total or 0, "page": page, "limit": limit}

    async def recent_for_drop(self, drop_id: int, limit: int = 3) -> List[Purchase]:
        stmt = (
            select(Purchase)
            .where(Purchase.drop_id == drop_id)
            .order_by(Purchase.purchased_at.desc(), Purchase.id.desc())
            .limit(limit)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def stats(self) -> Dict[str, Any]:
        """Totals and per-drop counts/revenue across all purchases."""
        totals = (await self.db.execute(
            select(func.count(Purchase.id), func.coalesce(func.sum(Purchase.price), 0))
        )).one()

        per_drop = await self.db.execute(
            select(
                Purchase.drop_id,
                Drop.name,
                func.count(Purchase.id).label("purchase_count"),
                func.sum(Purchase.price).label("revenue"),
            )
            .join(Drop, Drop.id == Purchase.drop_id)
            .group_by(Purchase.drop_id, Drop.name)
            .order_by(func.count(Purchase.id).desc(), Purchase.drop_id)
        )

        return {
            "total_purchases": totals[0],
            "total_revenue": float(totals[1] or 0),
            "purchases_by_drop": [
                {
                    "drop_id": row.drop_id,
                    "name": row.name,
                    "count": row.purchase_count,
                    "revenue": float(row.revenue or 0),
                }
                for row in per_drop
            ],
        }
