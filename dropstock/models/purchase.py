# dropstock/models/purchase.py

from sqlalchemy import Column, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import relationship

from dropstock.core.utils import utc_now
from dropstock.database import Base
from dropstock.models.types import UTCDateTime


class Purchase(Base):
    """A completed sale. Exactly one per completed reservation, never modified."""

    __tablename__ = "purchases"
    __table_args__ = (
        Index("idx_purchases_drop_purchased", "drop_id", "purchased_at"),
    )

    id = Column(Integer, primary_key=True)
    holder_id = Column(String(100), nullable=False, index=True)
    drop_id = Column(Integer, ForeignKey("drops.id", ondelete="RESTRICT"), nullable=False)
    reservation_id = Column(Integer, ForeignKey("reservations.id"), nullable=False, unique=True)

    price = Column(Numeric(10, 2), nullable=False)
    purchased_at = Column(UTCDateTime, default=utc_now, nullable=False, index=True)

    created_at = Column(UTCDateTime, default=utc_now, nullable=False)

    drop = relationship("Drop", back_populates="purchases", lazy="raise")
    reservation = relationship("Reservation", back_populates="purchase", lazy="raise")

    def __repr__(self) -> str:
        return (
            f"<Purchase id={self.id} holder={self.holder_id} drop={self.drop_id} "
            f"reservation={self.reservation_id} price={self.price}>"
        )
