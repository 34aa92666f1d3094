# dropstock/models/activity_log.py
from sqlalchemy import Column, Integer, String

from dropstock.core.utils import utc_now
from dropstock.database import Base
from dropstock.models.types import JSONType, UTCDateTime


class ActivityLog(Base):
    """
    Audit trail of every stock-affecting state change.

    This includes:
    - Reservations taken
    - Reservations cancelled by their holder
    - Reservations expired by the sweeper (one row per drop per tick)
    - Purchases completed

    Rows are written inside the same transaction as the change they describe.
    """
    __tablename__ = "activity_log"

    id = Column(Integer, primary_key=True)
    action = Column(String(50), nullable=False, index=True)  # 'reserve', 'cancel', 'expire', 'purchase'
    entity_type = Column(String(50), nullable=False, index=True)  # 'reservation', 'drop', 'purchase'
    entity_id = Column(String(100), nullable=False, index=True)

    details = Column(JSONType, nullable=True)

    # Holder that triggered the change; null for the sweeper
    user_id = Column(String(100), nullable=True)

    created_at = Column(UTCDateTime, default=utc_now, nullable=False, index=True)

    def __repr__(self):
        return f"<ActivityLog {self.action} {self.entity_type} {self.entity_id}>"
