from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Boolean
from datetime import datetime, timezone

from kiosk.data.database import Base


class ReconciliationModel(Base):
    """
    Payment approved for an order that was no longer pending.
    Rows stay unresolved until someone reviews them by hand.
    """

    __tablename__ = "payment_reconciliations"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    payment_id = Column(String, nullable=True)
    order_payment_status = Column(String, nullable=False)
    reason = Column(String, nullable=False)
    resolved = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
