# kiosk/services/payment_service.py
import time
from decimal import Decimal
from typing import Any, Dict

from kiosk.domain.errors import (
    DeviceNotConfigured,
    FinalizationConflict,
    GatewayUnavailable,
    OrderNotFound,
    ValidationError,
)
from kiosk.domain.statuses import (
    FAILURE_STATUSES,
    SUCCESS_STATUSES,
    GatewayStatus,
    PaymentStatus,
)
from kiosk.services.gateway_client import MercadoPagoClient
from kiosk.services.order_service import OrderService
from kiosk.services.payment_cache import PaymentCache
from kiosk.services.poller import PaymentPoller, PollOutcome, PollState
from kiosk.utils.logging import get_logger

logger = get_logger(__name__)


class PaymentService:
    """
    Payment side of checkout: starts PIX / terminal / online payments for a
    pending order, answers status polls (cache first) and applies gateway
    notifications to the order through OrderService.
    """

    def __init__(
        self,
        orders: OrderService,
        gateway: MercadoPagoClient | None,
        cache: PaymentCache,
        device_id: str | None = None,
    ):
        self.orders = orders
        self.gateway = gateway
        self.cache = cache
        self.device_id = device_id or None

    def _require_gateway(self) -> MercadoPagoClient:
        if self.gateway is None:
            raise GatewayUnavailable("Payment gateway is not configured")
        return self.gateway

    def _require_device(self) -> str:
        if not self.device_id:
            raise DeviceNotConfigured()
        return self.device_id

    def _pending_order(self, order_id: int):
        order = self.orders.get_order(order_id)
        if order.payment_status != PaymentStatus.PENDING.value:
            raise ValidationError(f"Order {order_id} is {order.payment_status}, not awaiting payment")
        return order

    # =====================================================
    # INITIATE
    # =====================================================
    def create_pix(self, order_id: int, description: str | None = None, payer: Dict[str, Any] | None = None) -> Dict[str, Any]:
        gateway = self._require_gateway()
        order = self._pending_order(order_id)

        pix = gateway.create_pix_payment(
            amount=order.total,
            description=description or f"Pedido {order.id}",
            order_ref=str(order.id),
            payer=payer,
        )
        self.orders.attach_payment(order.id, pix.payment_id)

        return {
            "payment_id": pix.payment_id,
            "order_id": order.id,
            "amount": order.total,
            "status": pix.status,
            "qr_code": pix.qr_code,
            "qr_code_base64": pix.qr_code_base64,
            "ticket_url": pix.ticket_url,
            "type": "pix",
        }

    def create_card(
        self,
        order_id: int,
        description: str | None = None,
        method: str | None = None,
        installments: int | None = None,
    ) -> Dict[str, Any]:
        self._require_device()
        gateway = self._require_gateway()
        order = self._pending_order(order_id)

        method = method or order.payment_method
        if method == "pix":
            raise ValidationError("PIX payments go through /payment/create-pix")

        intent_id = gateway.create_card_payment(
            amount=order.total,
            description=description or f"Pedido {order.id}",
            order_ref=str(order.id),
            method=method,
            installments=installments or order.installments or 1,
        )
        self.orders.attach_payment(order.id, intent_id)

        return {
            "payment_id": intent_id,
            "order_id": order.id,
            "amount": order.total,
            "status": "open",
            "type": "point",
        }

    def create_online_card(
        self,
        order_id: int,
        token: str,
        payment_method_id: str,
        installments: int = 1,
        issuer_id: str | None = None,
        email: str | None = None,
        description: str | None = None,
    ) -> Dict[str, Any]:
        gateway = self._require_gateway()
        order = self._pending_order(order_id)

        result = gateway.create_online_card_payment(
            amount=order.total,
            token=token,
            description=description or f"Pedido {order.id}",
            order_ref=str(order.id),
            payment_method_id=payment_method_id,
            installments=installments,
            issuer_id=issuer_id,
            payer_email=email,
        )
        self.orders.attach_payment(order.id, result["payment_id"])

        status = result["status"]
        if status in ("approved", "authorized"):
            self._remember(result["payment_id"], status, order.total, str(order.id))

        return {
            "payment_id": result["payment_id"],
            "order_id": order.id,
            "amount": order.total,
            "status": status,
            "status_detail": result.get("status_detail"),
            "approved": status == "approved",
        }

    def create_preference(self, order_id: int, payer: Dict[str, Any] | None = None) -> Dict[str, Any]:
        """Hosted checkout: the customer pays on the gateway's own page."""
        gateway = self._require_gateway()
        order = self._pending_order(order_id)

        items = [dict(i) for i in order.items or []]
        subtotal = sum((Decimal(i["price"]) * int(i["quantity"]) for i in items), Decimal("0.00"))
        surcharge = Decimal(order.total) - subtotal
        if surcharge > 0:
            items.append({"name": "Taxa de parcelamento", "price": str(surcharge), "quantity": 1})

        return gateway.create_preference(items, str(order.id), payer)

    # =====================================================
    # STATUS / CANCEL
    # =====================================================
    def check_status(self, payment_id: str) -> Dict[str, Any]:
        cached = self.cache.get(payment_id)
        if cached:
            return {
                "payment_id": payment_id,
                "status": cached.get("status"),
                "amount": cached.get("amount"),
                "order_ref": cached.get("order_ref"),
                "cached": True,
            }

        gateway = self._require_gateway()
        result = gateway.check_status(payment_id)

        if result.status in SUCCESS_STATUSES:
            self._remember(payment_id, result.status.value, result.amount, result.order_ref)
        elif result.status in FAILURE_STATUSES:
            self.cache.delete(payment_id)

        logger.info(f"Payment {payment_id} status: {result.status.value}")
        return {
            "payment_id": payment_id,
            "status": result.status.value,
            "amount": result.amount,
            "order_ref": result.order_ref,
            "cached": False,
        }

    def _remember(self, payment_id: str, status: str, amount, order_ref: str | None):
        self.cache.put(
            payment_id,
            {
                "payment_id": payment_id,
                "status": status,
                "amount": str(amount) if amount is not None else None,
                "order_ref": order_ref,
                "timestamp": time.time(),
            },
        )

    def cancel_payment(self, payment_id: str) -> Dict[str, Any]:
        """Best effort; stock stays reserved until the order itself is canceled or expires."""
        self.cache.delete(payment_id)
        if self.gateway is None:
            return {"success": False, "message": "Payment gateway is not configured"}

        try:
            ok = self.gateway.cancel_payment(payment_id)
        except GatewayUnavailable as e:
            logger.warning(f"Cancel of {payment_id} failed: {e}")
            return {"success": False, "message": str(e)}

        if ok:
            return {"success": True, "message": f"Payment {payment_id} canceled"}
        return {"success": False, "message": "Payment could not be canceled, it may already be processed"}

    def watch_payment(self, payment_id: str, order_id: int | None = None, **poller_options) -> PollOutcome:
        """
        Blocks until the payment settles (see PaymentPoller) and finalizes the
        order when it was approved.
        """
        poller = PaymentPoller(lambda: GatewayStatus(self.check_status(payment_id)["status"]), **poller_options)
        outcome = poller.run()

        if order_id is not None and outcome.state == PollState.RESOLVED and outcome.status in SUCCESS_STATUSES:
            self.orders.finalize_order(order_id, payment_id)
        return outcome

    # =====================================================
    # TERMINAL
    # =====================================================
    def configure_terminal(self) -> Dict[str, Any]:
        device_id = self._require_device()
        ok = self._require_gateway().configure_terminal(device_id)
        return {"success": ok, "device_id": device_id, "mode": "PDV" if ok else None}

    def terminal_status(self) -> Dict[str, Any]:
        device_id = self._require_device()
        status = self._require_gateway().get_terminal_status(device_id)
        return {
            "connected": status.connected,
            "device_id": status.device_id,
            "mode": status.mode,
            "model": status.model,
            "status": status.status,
        }

    def clear_queue(self) -> Dict[str, Any]:
        device_id = self._require_device()
        cleared = self._require_gateway().clear_intent_queue(device_id)
        return {"success": True, "cleared": cleared}

    # =====================================================
    # NOTIFICATIONS
    # =====================================================
    def process_notification(self, payment_id: str) -> GatewayStatus:
        """
        Re-reads the payment from the gateway (notification bodies are not
        trusted) and applies it to the referenced order.
        """
        gateway = self._require_gateway()
        result = gateway.check_status(payment_id)
        order_id = self._order_id(result.order_ref)

        if result.status in SUCCESS_STATUSES:
            self._remember(payment_id, result.status.value, result.amount, result.order_ref)
            if order_id is not None:
                try:
                    self.orders.finalize_order(order_id, payment_id)
                except FinalizationConflict as e:
                    # stays in the reconciliation queue, gateway still gets 200
                    logger.error(f"Notification for {payment_id}: {e}")
                except OrderNotFound:
                    logger.warning(f"Notification for {payment_id} references unknown order {order_id}")

        elif result.status in FAILURE_STATUSES:
            # order stays pending so the customer can retry; the expiry sweep releases it otherwise
            self.cache.delete(payment_id)

        logger.info(f"Notification for {payment_id} processed: {result.status.value}, order {order_id}")
        return result.status

    @staticmethod
    def _order_id(order_ref: str | None) -> int | None:
        if not order_ref:
            return None
        try:
            return int(order_ref)
        except (TypeError, ValueError):
            logger.warning(f"External reference {order_ref!r} is not an order id")
            return None
