"""
Schemas for purchase endpoints.
"""

from datetime import datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class PurchaseCreate(BaseModel):
    reservation_id: int = Field(..., gt=0)


class PurchaseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    holder_id: str
    drop_id: int
    reservation_id: int
    price: Decimal
    purchased_at: datetime


class PurchaseResultRead(BaseModel):
    sale_id: int
    price: Decimal
    completed_at: datetime
    purchase: PurchaseRead


class PurchasePage(BaseModel):
    items: List[PurchaseRead]
    total: int
    page: int
    limit: int
    total_pages: int
