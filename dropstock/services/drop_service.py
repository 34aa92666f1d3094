"""
Read-only queries over drops: the paginated catalogue view and per-drop sales stats.

Nothing here writes to ``Drop.stock``; that is the stock ledger's job.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dropstock.core.exceptions import DropNotFoundError
from dropstock.core.utils import Clock, utc_now
from dropstock.models.drop import Drop
from dropstock.services.purchase_service import PurchaseService

logger = logging.getLogger(__name__)

RECENT_PURCHASES_PER_DROP = 3


class DropService:
    def __init__(self, db: AsyncSession, clock: Clock = utc_now):
        self.db = db
        self.clock = clock
        self.purchases = PurchaseService(db, clock=clock)

    async def list_drops(self, page: int = 1, limit: int = 10, search: Optional[str] = None) -> Dict[str, Any]:
        """
        A page of drops, newest first, each with its most recent purchases.

        Args:
            page: 1-based page number
            limit: page size
            search: case-insensitive substring of the drop name
        """
        count_stmt = select(func.count(Drop.id))
        stmt = select(Drop)
        if search:
            pattern = f"%{search}%"
            count_stmt = count_stmt.where(Drop.name.ilike(pattern))
            stmt = stmt.where(Drop.name.ilike(pattern))

        total = await self.db.scalar(count_stmt) or 0
        stmt = (
            stmt.order_by(Drop.created_at.desc(), Drop.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        drops = list((await self.db.execute(stmt)).scalars().all())

        recent = {}
        for drop in drops:
            recent[drop.id] = await self.purchases.recent_for_drop(drop.id, limit=RECENT_PURCHASES_PER_DROP)

        return {"items": drops, "recent_purchases": recent, "total": total, "page": page, "limit": limit}

    async def get_drop(self, drop_id: int) -> Drop:
        drop = await self.db.get(Drop, drop_id)
        if drop is None:
            raise DropNotFoundError(f"Drop {drop_id} not found", details={"drop_id": drop_id})
        return drop

    async def stats(self, drop_id: int) -> Dict[str, Any]:
        drop = await self.get_drop(drop_id)
        total_purchases = await self.purchases.count_for_drop(drop_id)

        return {
            "id": drop.id,
            "name": drop.name,
            "total_stock": drop.initial_stock,
            "remaining_stock": drop.stock,
            "sold": drop.initial_stock - drop.stock,
            "total_purchases": total_purchases,
            "stock_percentage": drop.stock_percentage,
            "is_available": drop.is_available,
            "has_started": drop.has_started(self.clock()),
        }
