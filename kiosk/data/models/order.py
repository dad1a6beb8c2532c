from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric, Text, JSON
from datetime import datetime, timezone

from kiosk.data.database import Base


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    user_name = Column(String, nullable=True)

    # snapshot: [{product_id, name, price, price_raw, quantity}]
    items = Column(JSON, nullable=False, default=list)
    total = Column(Numeric(10, 2), nullable=False)

    status = Column(String, nullable=False, default="active")  # active, completed, expired, canceled
    payment_status = Column(String, nullable=False, default="pending", index=True)
    payment_id = Column(String, nullable=True, index=True)
    payment_type = Column(String, nullable=False)  # presencial, online
    payment_method = Column(String, nullable=True)  # credit, debit, pix
    installments = Column(Integer, nullable=False, default=1)
    fee = Column(Numeric(5, 2), nullable=False, default=0)
    observation = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), index=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
