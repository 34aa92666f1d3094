"""
Reclaims reservations whose deadline has passed.

One call to ``sweep()`` is one tick. A tick is a single transaction: it locks
the affected drops (ascending id), then the expired reservations (ascending
id), re-checks each reservation under its lock, expires the ones still
active and returns the units to stock with one ledger increment per drop.
Any error rolls the whole tick back; the next scheduled tick retries.

Ticks never overlap. Inside one process an ``asyncio.Lock`` serialises them;
across processes on PostgreSQL a transaction-scoped advisory lock makes a
second sweeper skip its tick instead of scanning the same rows.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dropstock.core.enums import ReservationStatus
from dropstock.core.utils import Clock, utc_now
from dropstock.integrations.events import ReservationExpiredEvent, StockUpdateEvent
from dropstock.integrations.notifier import EventEmitter, emit_after_commit
from dropstock.models.reservation import Reservation
from dropstock.services.activity_logger import ActivityLogger
from dropstock.services.stock_ledger import StockLedger
from dropstock.services.transactions import atomic

logger = logging.getLogger(__name__)

# Arbitrary constant key for pg_try_advisory_xact_lock
SWEEP_ADVISORY_LOCK_KEY = 7_316_041


@dataclass
class SweepResult:
    started_at: datetime
    expired_count: int = 0
    stock_returned: Dict[int, int] = field(default_factory=dict)
    new_stock: Dict[int, int] = field(default_factory=dict)
    skipped: bool = False

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "expired_count": self.expired_count,
            "stock_returned": {str(k): v for k, v in self.stock_returned.items()},
            "new_stock": {str(k): v for k, v in self.new_stock.items()},
            "skipped": self.skipped,
        }


class ExpirationSweeper:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        emitter: Optional[EventEmitter] = None,
        clock: Clock = utc_now,
    ):
        self.session_factory = session_factory
        self.emitter = emitter
        self.clock = clock
        self._tick_lock = asyncio.Lock()

    async def sweep(self) -> SweepResult:
        """
        Run one tick.

        Returns:
            What the tick did. ``skipped`` is set when another process held the
            sweep lock.

        Raises:
            BaseServiceError: the tick failed and was rolled back
        """
        async with self._tick_lock:
            async with self.session_factory() as db:
                try:
                    result = await self._run_tick(db)
                except Exception:
                    logger.exception("Expiration sweep failed; tick rolled back, will retry next schedule")
                    raise

            if result.expired_count:
                logger.info(
                    f"Expired {result.expired_count} reservations, stock returned: "
                    + ", ".join(f"drop {d} +{n} -> {result.new_stock[d]}" for d, n in result.stock_returned.items())
                )
                await emit_after_commit(self.emitter, self._events(result))
            return result

    async def _run_tick(self, db: AsyncSession) -> SweepResult:
        now = self.clock()
        result = SweepResult(started_at=now)

        async with atomic(db, "sweep"):
            if not await self._try_acquire_sweep_lock(db):
                logger.debug("Another sweeper holds the sweep lock, skipping tick")
                result.skipped = True
                return result

            # Unlocked scan to learn which drops are affected
            drop_ids = (await db.execute(
                select(Reservation.drop_id)
                .where(
                    Reservation.status == ReservationStatus.ACTIVE.value,
                    Reservation.expires_at < now,
                )
                .distinct()
            )).scalars().all()

            if not drop_ids:
                return result

            ledger = StockLedger(db, self.clock)
            await ledger.lock_drops(drop_ids)

            candidates = (await db.execute(
                select(Reservation)
                .where(
                    Reservation.status == ReservationStatus.ACTIVE.value,
                    Reservation.expires_at < now,
                    Reservation.drop_id.in_(drop_ids),
                )
                .order_by(Reservation.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )).scalars().all()

            expired_by_drop: Dict[int, List[int]] = defaultdict(list)
            for reservation in candidates:
                # Re-check the row as read under the lock; a concurrent cancel or
                # purchase may already have moved it out of ACTIVE.
                if reservation.status != ReservationStatus.ACTIVE.value or not reservation.deadline_passed(now):
                    continue
                reservation.transition_to(ReservationStatus.EXPIRED)
                reservation.updated_at = now
                expired_by_drop[reservation.drop_id].append(reservation.id)

            activity = ActivityLogger(db, self.clock)
            for drop_id in sorted(expired_by_drop):
                reservation_ids = expired_by_drop[drop_id]
                drop = await ledger.increment(drop_id, len(reservation_ids))
                result.stock_returned[drop_id] = len(reservation_ids)
                result.new_stock[drop_id] = drop.stock
                result.expired_count += len(reservation_ids)
                activity.log_expiry(drop_id, reservation_ids, stock_after=drop.stock)

        return result

    async def _try_acquire_sweep_lock(self, db: AsyncSession) -> bool:
        if db.bind.dialect.name != "postgresql":
            return True
        acquired = await db.scalar(
            text("SELECT pg_try_advisory_xact_lock(:key)"),
            {"key": SWEEP_ADVISORY_LOCK_KEY},
        )
        return bool(acquired)

    @staticmethod
    def _events(result: SweepResult) -> List:
        events = []
        for drop_id, returned in result.stock_returned.items():
            events.append(ReservationExpiredEvent(drop_id=drop_id, stock_returned=returned))
            events.append(StockUpdateEvent(
                drop_id=drop_id,
                new_stock=result.new_stock[drop_id],
                reason="reservation_expired",
            ))
        return events
