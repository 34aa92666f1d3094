"""
Purpose: The single writer of ``Drop.stock``.

Every method runs inside the caller's open transaction and takes an exclusive
row lock on the drop (SELECT ... FOR UPDATE) before reading it. The row is
always re-read from the database under that lock, never taken from the
session's identity map, so a value cached earlier in the request cannot be
used to decide a mutation.

Lock order: when several drops are locked together they are locked in
ascending id order, and drops are always locked before any reservation row.
"""

import logging
from typing import Dict, Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dropstock.core.enums import ConflictReason
from dropstock.core.exceptions import (
    ConflictError,
    DropNotFoundError,
    InvariantViolation,
    ValidationError,
)
from dropstock.core.utils import Clock, utc_now
from dropstock.models.drop import Drop

logger = logging.getLogger(__name__)


class StockLedger:
    def __init__(self, db: AsyncSession, clock: Clock = utc_now):
        self.db = db
        self.clock = clock

    async def lock_drop(self, drop_id: int) -> Drop:
        """Lock one drop row and return its current state."""
        stmt = (
            select(Drop)
            .where(Drop.id == drop_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        drop = result.scalar_one_or_none()
        if drop is None:
            raise DropNotFoundError(f"Drop {drop_id} not found", details={"drop_id": drop_id})
        return drop

    async def lock_drops(self, drop_ids: Iterable[int]) -> Dict[int, Drop]:
        """Lock several drop rows in ascending id order."""
        ids = sorted(set(drop_ids))
        if not ids:
            return {}
        stmt = (
            select(Drop)
            .where(Drop.id.in_(ids))
            .order_by(Drop.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return {drop.id: drop for drop in result.scalars().all()}

    def has_started(self, drop: Drop) -> bool:
        return drop.has_started(self.clock())

    async def try_decrement(self, drop_id: int) -> Drop:
        """
        Take one unit out of stock.

        Raises:
            ConflictError(NOT_STARTED): the drop's start time is in the future
            ConflictError(OUT_OF_STOCK): no units left
        """
        drop = await self.lock_drop(drop_id)

        if not self.has_started(drop):
            raise ConflictError(
                ConflictReason.NOT_STARTED,
                "Drop has not started yet",
                details={"drop_id": drop_id, "starts_at": drop.starts_at.isoformat()},
            )

        if drop.stock <= 0:
            raise ConflictError(
                ConflictReason.OUT_OF_STOCK,
                "Out of stock",
                details={"drop_id": drop_id},
            )

        self._apply(drop, -1)
        await self.db.flush()
        return drop

    async def increment(self, drop_id: int, n: int = 1) -> Drop:
        """Return ``n`` units to stock."""
        if n < 1:
            raise ValidationError(f"Stock increment must be at least 1, got {n}")

        drop = await self.lock_drop(drop_id)
        self._apply(drop, n)
        await self.db.flush()
        return drop

    def _apply(self, drop: Drop, delta: int) -> None:
        new_stock = drop.stock + delta
        if new_stock < 0 or new_stock > drop.initial_stock:
            logger.error(
                f"Refusing stock change on drop {drop.id}: {drop.stock} {delta:+d} "
                f"outside [0, {drop.initial_stock}]"
            )
            raise InvariantViolation(
                "Stock change would leave the allowed range",
                details={
                    "drop_id": drop.id,
                    "stock": drop.stock,
                    "delta": delta,
                    "initial_stock": drop.initial_stock,
                },
            )
        logger.debug(f"Drop {drop.id}: stock {drop.stock} -> {new_stock}")
        drop.stock = new_stock
        drop.updated_at = self.clock()
