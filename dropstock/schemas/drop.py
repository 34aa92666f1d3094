"""
Read-only view of a drop's stock, for clients deciding whether to reserve.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from dropstock.schemas.purchase import PurchaseRead


class DropRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    image_url: Optional[str] = None
    stock: int
    initial_stock: int
    starts_at: Optional[datetime] = None
    stock_percentage: int
    is_available: bool


class DropView(DropRead):
    has_started: bool


class DropListItem(DropView):
    recent_purchases: List[PurchaseRead] = []


class DropPage(BaseModel):
    items: List[DropListItem]
    total: int
    page: int
    limit: int
    total_pages: int


class DropStats(BaseModel):
    id: int
    name: str
    total_stock: int
    remaining_stock: int
    sold: int
    total_purchases: int
    stock_percentage: int
    is_available: bool
    has_started: bool
