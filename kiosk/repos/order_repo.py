# kiosk/repos/order_repo.py
from datetime import datetime
from typing import Any, Dict, Iterable

from sqlalchemy import update
from sqlalchemy.orm import Session

from kiosk.data.models.order import OrderModel
from kiosk.data.models.reconciliation import ReconciliationModel
from kiosk.domain.statuses import OrderStatus, PaymentStatus


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id, populate_existing=True)

    def transition_from_pending(self, order_id: int, new_data: Dict[str, Any]) -> int:
        """
        Compare-and-swap on payment_status.
        UPDATE orders SET ... WHERE id = :id AND payment_status = 'pending'
        0 rows -> somebody else already moved the order out of pending.
        """
        res = self.db.execute(
            update(OrderModel)
            .where(
                OrderModel.id == order_id,
                OrderModel.payment_status == PaymentStatus.PENDING.value,
            )
            .values(**new_data)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def attach_payment_id(self, order_id: int, payment_id: str) -> int:
        return self.transition_from_pending(order_id, {"payment_id": payment_id})

    def complete_active(self, order_id: int, completed_at: datetime) -> int:
        """Same CAS idea on `status`: only an active order can be completed."""
        res = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.status == OrderStatus.ACTIVE.value)
            .values(status=OrderStatus.COMPLETED.value, completed_at=completed_at)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def list_orders(
        self,
        statuses: Iterable[str] | None = None,
        payment_statuses: Iterable[str] | None = None,
        user_id: int | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        newest_first: bool = True,
    ) -> list[OrderModel]:
        q = self.db.query(OrderModel)
        if statuses:
            q = q.filter(OrderModel.status.in_(list(statuses)))
        if payment_statuses:
            q = q.filter(OrderModel.payment_status.in_(list(payment_statuses)))
        if user_id is not None:
            q = q.filter(OrderModel.user_id == user_id)
        if start is not None:
            q = q.filter(OrderModel.created_at >= start)
        if end is not None:
            q = q.filter(OrderModel.created_at <= end)
        if newest_first:
            q = q.order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
        else:
            q = q.order_by(OrderModel.created_at.asc(), OrderModel.id.asc())
        return q.populate_existing().all()

    def find_stale_pending(self, cutoff: datetime) -> list[int]:
        rows = (
            self.db.query(OrderModel.id)
            .filter(
                OrderModel.payment_status == PaymentStatus.PENDING.value,
                OrderModel.created_at < cutoff,
            )
            .order_by(OrderModel.id)
            .all()
        )
        return [r.id for r in rows]

    def add_reconciliation(self, entry: ReconciliationModel) -> ReconciliationModel:
        self.db.add(entry)
        return entry

    def find_open_reconciliation(self, order_id: int, payment_id: str | None) -> ReconciliationModel | None:
        # == None renders as IS NULL
        return (
            self.db.query(ReconciliationModel)
            .filter(
                ReconciliationModel.order_id == order_id,
                ReconciliationModel.payment_id == payment_id,
                ReconciliationModel.resolved.is_(False),
            )
            .first()
        )

    def list_reconciliations(self, only_open: bool = True) -> list[ReconciliationModel]:
        q = self.db.query(ReconciliationModel)
        if only_open:
            q = q.filter(ReconciliationModel.resolved.is_(False))
        return q.order_by(ReconciliationModel.id).all()

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
