"""
Purpose: Creates and cancels reservations (time-boxed holds on one unit of a drop).

Role: Owns the reservation creation protocol and holder-initiated
cancellation. Both run as one transaction via ``atomic()`` and take row locks
in the shared order: the drop first, then the reservation.

Key features of this service:
- reserve(): duplicate-hold check, start-time gate and stock check, one unit
  taken from the ledger and an active reservation inserted, all or nothing
- cancel(): active reservation -> expired, unit returned to the ledger
- Events are published only after commit and never affect the outcome
- Read helpers for a holder's own reservations and the admin listing
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dropstock.core.config import Settings, get_settings
from dropstock.core.enums import ActivityAction, ConflictReason, ReservationStatus
from dropstock.core.exceptions import (
    ConflictError,
    ReservationNotFoundError,
    StateConflictError,
    ValidationError,
)
from dropstock.core.utils import Clock, utc_now
from dropstock.integrations.events import (
    ReservationCancelledEvent,
    ReservationCreatedEvent,
    StockUpdateEvent,
)
from dropstock.integrations.notifier import EventEmitter, emit_after_commit
from dropstock.models.reservation import Reservation
from dropstock.services.activity_logger import ActivityLogger
from dropstock.services.stock_ledger import StockLedger
from dropstock.services.transactions import atomic

logger = logging.getLogger(__name__)


@dataclass
class ReservationResult:
    reservation: Reservation
    new_stock: int

    @property
    def hold_id(self) -> int:
        return self.reservation.id

    @property
    def deadline(self) -> datetime:
        return self.reservation.expires_at


class ReservationService:
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
    def reservation_duration(self) -> timedelta:
        return timedelta(milliseconds=self.settings.RESERVATION_DURATION_MS)

    async def reserve(self, holder_id: str, drop_id: int) -> ReservationResult:
        """
        Put a hold on one unit of a drop.

        Args:
            holder_id: Identifier of the caller from the identity provider
            drop_id: Drop to reserve

        Returns:
            The active reservation and the drop's stock after the decrement

        Raises:
            ValidationError: empty holder id
            DropNotFoundError: unknown drop
            ConflictError: DUPLICATE_ACTIVE, NOT_STARTED or OUT_OF_STOCK
            TransientDbError: lock wait timed out or deadlocked, retryable
        """
        if not holder_id:
            raise ValidationError("A holder id is required to reserve")

        async with atomic(self.db, "reserve"):
            ledger = StockLedger(self.db, self.clock)

            # The drop lock serialises every reserve on this drop, which makes
            # the duplicate check below race-free.
            await ledger.lock_drop(drop_id)
            # Deadline counts from when the lock was granted, not from arrival
            now = self.clock()

            existing = await self.find_active_hold(holder_id, drop_id, now)
            if existing is not None:
                raise ConflictError(
                    ConflictReason.DUPLICATE_ACTIVE,
                    "You already have an active reservation for this drop",
                    details={"reservation_id": existing.id},
                )

            drop = await ledger.try_decrement(drop_id)

            reservation = Reservation(
                holder_id=holder_id,
                drop_id=drop_id,
                status=ReservationStatus.ACTIVE.value,
                expires_at=now + self.reservation_duration,
                price_at_reservation=drop.price,
                created_at=now,
                updated_at=now,
            )
            self.db.add(reservation)
            await self.db.flush()

            new_stock = drop.stock
            ActivityLogger(self.db, self.clock).log_reservation(
                ActivityAction.RESERVE, reservation, stock_after=new_stock
            )

        logger.info(
            f"Reservation {reservation.id} created for holder {holder_id} on drop {drop_id} "
            f"(stock now {new_stock}, expires {reservation.expires_at.isoformat()})"
        )

        await emit_after_commit(self.emitter, [
            StockUpdateEvent(drop_id=drop_id, new_stock=new_stock),
            ReservationCreatedEvent(reservation_id=reservation.id, drop_id=drop_id, holder_id=holder_id),
        ])

        return ReservationResult(reservation=reservation, new_stock=new_stock)

    async def cancel(self, holder_id: str, reservation_id: int) -> Reservation:
        """
        Release the holder's active reservation and return its unit to stock.

        Raises:
            ReservationNotFoundError: unknown id or owned by someone else
            StateConflictError: the reservation is already expired or completed
        """
        async with atomic(self.db, "cancel"):
            reservation = await self.get_reservation(holder_id, reservation_id)
            if reservation.status != ReservationStatus.ACTIVE.value:
                raise StateConflictError(
                    f"Reservation {reservation_id} is {reservation.status}, only active reservations can be cancelled",
                    details={"reservation_id": reservation_id, "status": reservation.status},
                )

            ledger = StockLedger(self.db, self.clock)
            await ledger.lock_drop(reservation.drop_id)

            # Re-read under lock: the sweeper may have expired it meanwhile
            reservation = await self._lock_reservation(holder_id, reservation_id)
            reservation.transition_to(ReservationStatus.EXPIRED)
            reservation.updated_at = self.clock()

            drop = await ledger.increment(reservation.drop_id, 1)
            new_stock = drop.stock
            ActivityLogger(self.db, self.clock).log_reservation(
                ActivityAction.CANCEL, reservation, stock_after=new_stock
            )

        logger.info(
            f"Reservation {reservation_id} cancelled by holder {holder_id}, "
            f"drop {reservation.drop_id} stock now {new_stock}"
        )

        await emit_after_commit(self.emitter, [
            StockUpdateEvent(drop_id=reservation.drop_id, new_stock=new_stock, reason="reservation_cancelled"),
            ReservationCancelledEvent(reservation_id=reservation_id, drop_id=reservation.drop_id),
        ])

        return reservation

    async def find_active_hold(
        self, holder_id: str, drop_id: int, now: Optional[datetime] = None
    ) -> Optional[Reservation]:
        """The holder's active, unexpired reservation on a drop, if any."""
        now = now or self.clock()
        stmt = (
            select(Reservation)
            .where(
                Reservation.holder_id == holder_id,
                Reservation.drop_id == drop_id,
                Reservation.status == ReservationStatus.ACTIVE.value,
                Reservation.expires_at > now,
            )
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_reservation(self, holder_id: str, reservation_id: int) -> Reservation:
        stmt = select(Reservation).where(
            Reservation.id == reservation_id,
            Reservation.holder_id == holder_id,
        )
        result = await self.db.execute(stmt)
        reservation = result.scalar_one_or_none()
        if reservation is None:
            raise ReservationNotFoundError(f"Reservation {reservation_id} not found")
        return reservation

    async def list_for_holder(
        self, holder_id: str, status: Optional[ReservationStatus] = None
    ) -> List[Reservation]:
        stmt = select(Reservation).where(Reservation.holder_id == holder_id)
        if status is not None:
            stmt = stmt.where(Reservation.status == status.value)
        stmt = stmt.order_by(Reservation.created_at.desc(), Reservation.id.desc())
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_all(self, status: ReservationStatus = ReservationStatus.ACTIVE) -> List[Reservation]:
        stmt = (
            select(Reservation)
            .where(Reservation.status == status.value)
            .order_by(Reservation.created_at.desc(), Reservation.id.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

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
