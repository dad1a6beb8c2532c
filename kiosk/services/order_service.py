# kiosk/services/order_service.py
from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from kiosk.data.models.order import OrderModel
from kiosk.data.models.reconciliation import ReconciliationModel
from kiosk.domain.charge import compute_charge, payment_kind, to_money, CARD_METHODS
from kiosk.domain.errors import (
    FinalizationConflict,
    KioskError,
    NotFound,
    OrderNotFound,
    ValidationError,
)
from kiosk.domain.schemas import OrderCreate
from kiosk.domain.statuses import OrderStatus, PaymentStatus, normalize_payment_id
from kiosk.repos.order_repo import OrderRepo
from kiosk.repos.product_repo import ProductRepo
from kiosk.repos.user_repo import UserRepo
from kiosk.services.gateway_client import MercadoPagoClient
from kiosk.utils.settings import ORDER_EXPIRY_MINUTES, MP_DEVICE_ID
from kiosk.utils.logging import get_logger

logger = get_logger(__name__)

GUEST_NAME = "Convidado"
PAID_STATUSES = (PaymentStatus.PAID.value, PaymentStatus.AUTHORIZED.value)


class OrderService:
    """
    Order lifecycle: pending -> paid | canceled | expired.

    Every transition out of pending is a conditional update on
    payment_status, so a finalizer and the expiry sweep racing on the same
    order cannot both apply. Stock moves in the same transaction as the
    transition that causes it.
    """

    def __init__(
        self,
        db: Session,
        gateway: MercadoPagoClient | None = None,
        device_id: str | None = None,
        expiry_minutes: int = ORDER_EXPIRY_MINUTES,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.products = ProductRepo(db)
        self.users = UserRepo(db)
        self.gateway = gateway
        self.device_id = device_id if device_id is not None else (MP_DEVICE_ID or None)
        self.expiry_minutes = expiry_minutes

    # query
    def get_order(self, order_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)
        if not order:
            raise OrderNotFound(order_id)
        return order

    # =====================================================
    # CREATE
    # =====================================================
    def create_order(self, payload: OrderCreate) -> OrderModel:
        """
        Snapshots name/price of every product, reserves the stock and stores
        the charged amount (fee included) as the order total.
        Any line failing rolls back the reservations of the others.
        """
        kind = payment_kind(payload.payment_type, payload.payment_method, payload.installments)

        try:
            user_id = None
            user_name = payload.user_name or GUEST_NAME
            if payload.user_id is not None:
                user = self.users.ensure_user(payload.user_id, user_name)
                user_id, user_name = user.id, payload.user_name or user.name

            lines: List[Dict[str, Any]] = []
            cart_total = Decimal("0.00")
            for item in payload.items:
                product = self.products.get_product(item.product_id)
                if not product:
                    raise NotFound(f"Product {item.product_id} not found")

                self.products.reserve(product, item.quantity)

                price = to_money(product.price)
                lines.append(
                    {
                        "product_id": product.id,
                        "name": product.name,
                        "price": str(price),
                        "price_raw": str(to_money(product.price_raw or 0)),
                        "quantity": item.quantity,
                    }
                )
                cart_total += price * item.quantity

            charge = compute_charge(cart_total, kind, payload.fee)

            order = OrderModel(
                user_id=user_id,
                user_name=user_name,
                items=lines,
                total=charge.amount,
                status=OrderStatus.ACTIVE.value,
                payment_status=PaymentStatus.PENDING.value,
                payment_type=payload.payment_type,
                payment_method=payload.payment_method,
                installments=charge.installments,
                fee=charge.fee,
                observation=payload.observation,
            )
            self.repo.add_order(order)
            self.repo.commit()

        except Exception as e:
            logger.error(f"Order for user {payload.user_id} not created: {e}")
            self.repo.rollback()
            raise

        logger.info(
            f"Order {order.id} created: {len(lines)} line(s), cart {cart_total}, "
            f"charged {charge.amount} ({payload.payment_type}/{payload.payment_method})"
        )
        return order

    def attach_payment(self, order_id: int, payment_id) -> bool:
        """Links the gateway id to a still pending order."""
        payment_id = normalize_payment_id(payment_id)
        if payment_id is None:
            return False
        rowcount = self.repo.attach_payment_id(order_id, payment_id)
        self.repo.commit()
        if rowcount == 0:
            logger.warning(f"Order {order_id} no longer pending, payment {payment_id} not attached")
        return rowcount == 1

    # =====================================================
    # FINALIZE
    # =====================================================
    def finalize_order(self, order_id: int, payment_id=None, method: str | None = None) -> OrderModel:
        """
        Marks the order paid exactly once per payment. Safe to call from a
        poller and a webhook at the same time: the second caller sees `paid`
        and returns the order untouched.
        """
        payment_id = normalize_payment_id(payment_id)
        order = self.get_order(order_id)

        if order.payment_status == PaymentStatus.PAID.value:
            logger.info(f"Order {order_id} already paid, nothing to do")
            return order

        now = datetime.now(timezone.utc)
        rowcount = self.repo.transition_from_pending(
            order_id,
            {
                "payment_id": payment_id or order.payment_id,
                "payment_status": PaymentStatus.PAID.value,
                "status": OrderStatus.ACTIVE.value,
                "paid_at": now,
            },
        )

        if rowcount == 0:
            self.repo.rollback()
            return self._finalize_lost_race(order_id, payment_id)

        try:
            for line in order.items or []:
                self.products.commit_sale(line["product_id"], int(line["quantity"]))

            if order.user_id is not None:
                self.users.append_history(order.user_id, self._history_entry(order, now))

            self.repo.commit()
        except Exception as e:
            logger.error(f"Finalizing order {order_id} failed, rolled back: {e}")
            self.repo.rollback()
            raise

        logger.info(f"Order {order_id} paid with {payment_id}, stock deducted")

        card_present = method == "card" or (
            method is None
            and order.payment_type == "presencial"
            and order.payment_method in CARD_METHODS
        )
        if card_present:
            self._clear_terminal_queue()

        return self.get_order(order_id)

    def _finalize_lost_race(self, order_id: int, payment_id: str | None) -> OrderModel:
        current = self.repo.get_order(order_id)
        if current is None:
            raise OrderNotFound(order_id)

        if current.payment_status == PaymentStatus.PAID.value:
            logger.info(f"Order {order_id} was paid by a concurrent finalizer")
            return current

        # approved money for an order whose stock hold is gone: a human decides
        if self.repo.find_open_reconciliation(order_id, payment_id) is None:
            self.repo.add_reconciliation(
                ReconciliationModel(
                    order_id=order_id,
                    payment_id=payment_id,
                    order_payment_status=current.payment_status,
                    reason=f"payment approved after order became {current.payment_status}",
                )
            )
            self.repo.commit()
            logger.error(
                f"Order {order_id} is {current.payment_status} but payment {payment_id} "
                f"was approved - queued for manual reconciliation"
            )
        else:
            logger.warning(f"Payment {payment_id} for order {order_id} already awaits reconciliation")
        raise FinalizationConflict(order_id, current.payment_status, payment_id)

    @staticmethod
    def _history_entry(order: OrderModel, paid_at: datetime) -> Dict[str, Any]:
        return {
            "order_id": order.id,
            "total": str(order.total),
            "paid_at": paid_at.isoformat(),
            "items": [
                {
                    "product_id": i["product_id"],
                    "name": i["name"],
                    "price": i["price"],
                    "quantity": i["quantity"],
                }
                for i in order.items or []
            ],
        }

    def _clear_terminal_queue(self):
        # terminal would otherwise keep offering the finished payment
        if not self.gateway or not self.device_id:
            return
        try:
            self.gateway.clear_intent_queue(self.device_id)
        except KioskError as e:
            # order is already committed as paid
            logger.warning(f"Could not clear terminal queue after payment: {e}")

    # =====================================================
    # CANCEL / EXPIRE
    # =====================================================
    def cancel_order(self, order_id: int) -> OrderModel:
        order = self.get_order(order_id)
        if order.payment_status != PaymentStatus.PENDING.value:
            logger.info(f"Order {order_id} is {order.payment_status}, not canceled")
            return order

        if self._close_pending(order, OrderStatus.CANCELED, PaymentStatus.CANCELED):
            logger.info(f"Order {order_id} canceled, reservation released")
        return self.get_order(order_id)

    def expire_order(self, order_id: int) -> bool:
        order = self.get_order(order_id)
        expired = self._close_pending(order, OrderStatus.EXPIRED, PaymentStatus.EXPIRED)
        if expired:
            logger.info(f"Order {order_id} expired, reservation released")
        return expired

    def _close_pending(
        self,
        order: OrderModel,
        status: OrderStatus,
        payment_status: PaymentStatus,
        extra: Dict[str, Any] | None = None,
    ) -> bool:
        try:
            rowcount = self.repo.transition_from_pending(
                order.id,
                {"status": status.value, "payment_status": payment_status.value, **(extra or {})},
            )
            if rowcount == 0:
                self.repo.rollback()
                return False

            for line in order.items or []:
                # product may have been deleted meanwhile; 0 rows is fine
                self.products.release(line["product_id"], int(line["quantity"]))

            self.repo.commit()
            return True
        except Exception:
            self.repo.rollback()
            raise

    # =====================================================
    # KITCHEN
    # =====================================================
    def complete_order(self, order_id: int) -> OrderModel:
        """
        Kitchen marks the order as delivered. An order still awaiting payment
        is dismissed instead: its payment is canceled and the hold released.
        """
        order = self.get_order(order_id)
        now = datetime.now(timezone.utc)

        if order.payment_status == PaymentStatus.PENDING.value and self._close_pending(
            order, OrderStatus.COMPLETED, PaymentStatus.CANCELED, {"completed_at": now}
        ):
            logger.info(f"Unpaid order {order_id} dismissed by the kitchen, reservation released")
            return self.get_order(order_id)

        rowcount = self.repo.complete_active(order_id, now)
        self.repo.commit()
        current = self.get_order(order_id)

        if rowcount == 1:
            logger.info(f"Order {order_id} completed")
        elif current.status != OrderStatus.COMPLETED.value:
            raise ValidationError(f"Order {order_id} is {current.status}, it cannot be completed")
        return current

    def kitchen_queue(self) -> List[OrderModel]:
        """Paid orders still to be prepared, oldest first."""
        return self.repo.list_orders(
            statuses=[OrderStatus.ACTIVE.value],
            payment_statuses=PAID_STATUSES,
            newest_first=False,
        )

    def order_history(
        self,
        user_id: int | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> List[OrderModel]:
        return self.repo.list_orders(payment_statuses=PAID_STATUSES, user_id=user_id, start=start, end=end)

    def expire_stale_orders(self, now: datetime | None = None) -> Dict[str, int]:
        """
        Expires every order still pending after `expiry_minutes`.
        Orders are handled one by one; a failing order is logged and skipped.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(minutes=self.expiry_minutes)
        order_ids = self.repo.find_stale_pending(cutoff)

        result = {"found": len(order_ids), "expired": 0, "skipped": 0, "failed": 0}
        logger.info(f"Found {len(order_ids)} pending order(s) older than {self.expiry_minutes} min")

        for order_id in order_ids:
            try:
                if self.expire_order(order_id):
                    result["expired"] += 1
                else:
                    # paid or canceled between the select and the update
                    result["skipped"] += 1
            except Exception as e:
                self.repo.rollback()
                logger.warning(f"Failed to expire order {order_id}: {e}")
                result["failed"] += 1

        return result

    def open_reconciliations(self) -> List[ReconciliationModel]:
        return self.repo.list_reconciliations(only_open=True)
