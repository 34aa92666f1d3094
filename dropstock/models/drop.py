# dropstock/models/drop.py

from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, Column, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from dropstock.core.utils import ensure_utc, utc_now
from dropstock.database import Base
from dropstock.models.types import UTCDateTime


class Drop(Base):
    """
    A limited release with a finite stock counter.

    Name, price, description, image and start time belong to the catalogue.
    ``stock`` and ``initial_stock`` belong to the stock ledger, which is the
    only writer of ``stock``.
    """

    __tablename__ = "drops"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_drops_stock_non_negative"),
        CheckConstraint("stock <= initial_stock", name="ck_drops_stock_within_initial"),
        CheckConstraint("initial_stock >= 0", name="ck_drops_initial_stock_non_negative"),
        CheckConstraint("price >= 0", name="ck_drops_price_non_negative"),
    )

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    image_url = Column(String(500), nullable=True)

    stock = Column(Integer, nullable=False, default=0)
    initial_stock = Column(Integer, nullable=False)

    starts_at = Column(UTCDateTime, nullable=True)  # null means open immediately

    created_at = Column(UTCDateTime, default=utc_now, nullable=False)
    updated_at = Column(UTCDateTime, default=utc_now, nullable=False)

    reservations = relationship("Reservation", back_populates="drop", lazy="raise")
    purchases = relationship("Purchase", back_populates="drop", lazy="raise")

    def has_started(self, now: Optional[datetime] = None) -> bool:
        if self.starts_at is None:
            return True
        now = ensure_utc(now or utc_now())
        return now >= ensure_utc(self.starts_at)

    @property
    def is_available(self) -> bool:
        return self.stock > 0

    @property
    def stock_percentage(self) -> int:
        if not self.initial_stock:
            return 0
        return round(self.stock / self.initial_stock * 100)

    def __repr__(self) -> str:
        return f"<Drop id={self.id} name={self.name!r} stock={self.stock}/{self.initial_stock}>"
