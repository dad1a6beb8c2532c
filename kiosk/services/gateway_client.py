# kiosk/services/gateway_client.py
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List

import requests
from requests import RequestException

from kiosk.domain.errors import GatewayUnavailable, NotFound, ValidationError
from kiosk.domain.statuses import GatewayStatus, normalize_gateway_status
from kiosk.utils.retry import http_retry
from kiosk.utils.settings import (
    MP_ACCESS_TOKEN,
    MP_API_URL,
    MP_DEVICE_ID,
    MP_NOTIFICATION_URL,
    FRONTEND_URL,
    GATEWAY_TIMEOUT_SECONDS,
)
from kiosk.utils.logging import get_logger

logger = get_logger(__name__)

CARD_TYPES = {"credit": "credit_card", "debit": "debit_card"}


@dataclass
class PixPayment:
    payment_id: str
    status: str
    qr_code: str | None = None
    qr_code_base64: str | None = None
    ticket_url: str | None = None


@dataclass
class GatewayPaymentStatus:
    payment_id: str
    status: GatewayStatus
    amount: Decimal | None = None
    order_ref: str | None = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PaymentIntent:
    id: str
    state: str


@dataclass
class TerminalStatus:
    connected: bool
    device_id: str | None = None
    mode: str | None = None
    model: str | None = None
    status: str | None = None


class MercadoPagoClient:
    """
    Thin adapter over the Mercado Pago REST API:
    - /v1/payments (PIX and tokenized card)
    - /point/integration-api (payment intents on the physical terminal)
    - /checkout/preferences (hosted checkout)

    Transport errors and 5xx are retried, then surface as GatewayUnavailable.
    4xx answers are returned to the calling method, which decides what they mean.
    """

    def __init__(
        self,
        access_token: str,
        device_id: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        notification_url: str | None = None,
        session: requests.Session | None = None,
    ):
        self.base_url = (base_url or MP_API_URL).rstrip("/")
        self.device_id = device_id or None
        self.timeout = timeout or GATEWAY_TIMEOUT_SECONDS
        self.notification_url = notification_url or MP_NOTIFICATION_URL or None
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {access_token}"})

    # =====================================================
    # HTTP
    # =====================================================
    @http_retry()
    def _send(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        logger.info(f"MercadoPago {method} {url}")
        resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        if resp.status_code >= 500:
            resp.raise_for_status()
        return resp

    def _call(self, method: str, path: str, **kwargs) -> requests.Response:
        try:
            return self._send(method, path, **kwargs)
        except RequestException as e:
            logger.error(f"MercadoPago {method} {path} failed: {e}")
            raise GatewayUnavailable(f"Payment gateway unavailable: {e}") from e

    @staticmethod
    def _error_message(resp: requests.Response) -> str:
        try:
            data = resp.json()
        except ValueError:
            return resp.text or f"HTTP {resp.status_code}"
        return data.get("message") or str(data.get("errors") or data)

    def _json(self, resp: requests.Response, what: str) -> Dict[str, Any]:
        if resp.status_code == 404:
            raise NotFound(f"{what} not found")
        if not resp.ok:
            raise ValidationError(f"Gateway rejected {what}: {self._error_message(resp)}")
        return resp.json()

    def _intents_path(self, device_id: str) -> str:
        return f"/point/integration-api/devices/{device_id}/payment-intents"

    # =====================================================
    # PAYMENTS
    # =====================================================
    def create_pix_payment(
        self,
        amount: Decimal,
        description: str,
        order_ref: str,
        payer: Dict[str, Any] | None = None,
    ) -> PixPayment:
        payer = payer or {}
        payload = {
            "transaction_amount": float(amount),
            "description": description,
            "payment_method_id": "pix",
            "external_reference": order_ref,
            "payer": {
                "email": payer.get("email") or "cliente@kiosk.com",
                "first_name": payer.get("name") or "Cliente",
            },
        }
        if self.notification_url:
            payload["notification_url"] = self.notification_url

        # one key per payment, reused by the retries
        headers = {"X-Idempotency-Key": f"pix_{order_ref}_{uuid.uuid4().hex}"}
        data = self._json(self._call("POST", "/v1/payments", json=payload, headers=headers), "PIX payment")

        tx = (data.get("point_of_interaction") or {}).get("transaction_data") or {}
        logger.info(f"PIX payment {data.get('id')} created for order {order_ref}")
        return PixPayment(
            payment_id=str(data["id"]),
            status=data.get("status") or "pending",
            qr_code=tx.get("qr_code"),
            qr_code_base64=tx.get("qr_code_base64"),
            ticket_url=tx.get("ticket_url"),
        )

    def create_card_payment(
        self,
        amount: Decimal,
        description: str,
        order_ref: str,
        method: str | None = None,
        installments: int = 1,
    ) -> str:
        """Pushes a payment intent to the terminal; returns the intent id."""
        if not self.device_id:
            raise ValidationError("No terminal device configured on the gateway client")

        payload: Dict[str, Any] = {
            "amount": int((Decimal(str(amount)) * 100).to_integral_value()),  # cents
            "description": description,
            "additional_info": {
                "external_reference": order_ref,
                "print_on_terminal": True,
            },
        }
        card_type = CARD_TYPES.get(method or "")
        if card_type:
            payload["payment"] = {"type": card_type}
            if method == "credit":
                payload["payment"]["installments"] = installments
                payload["payment"]["installments_cost"] = "buyer"

        resp = self._call("POST", self._intents_path(self.device_id), json=payload)
        data = self._json(resp, "payment intent")
        logger.info(f"Payment intent {data.get('id')} created on {self.device_id} for order {order_ref}")
        return str(data["id"])

    def create_online_card_payment(
        self,
        amount: Decimal,
        token: str,
        description: str,
        order_ref: str,
        payment_method_id: str,
        installments: int = 1,
        issuer_id: str | None = None,
        payer_email: str | None = None,
    ) -> Dict[str, Any]:
        payload = {
            "transaction_amount": float(amount),
            "token": token,
            "description": description,
            "installments": installments,
            "payment_method_id": payment_method_id,
            "external_reference": order_ref,
            "payer": {"email": payer_email or "cliente@kiosk.com"},
        }
        if issuer_id:
            payload["issuer_id"] = issuer_id
        if self.notification_url:
            payload["notification_url"] = self.notification_url

        headers = {"X-Idempotency-Key": f"card_{order_ref}_{uuid.uuid4().hex}"}
        data = self._json(self._call("POST", "/v1/payments", json=payload, headers=headers), "card payment")
        return {
            "payment_id": str(data["id"]),
            "status": data.get("status") or "pending",
            "status_detail": data.get("status_detail"),
        }

    def create_preference(
        self,
        items: List[Dict[str, Any]],
        order_ref: str,
        payer: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        payer = payer or {}
        payload = {
            "items": [
                {
                    "title": i["name"],
                    "quantity": int(i["quantity"]),
                    "unit_price": float(i["price"]),
                    "currency_id": "BRL",
                }
                for i in items
            ],
            "payer": {
                "email": payer.get("email") or "cliente@kiosk.com",
                "name": payer.get("name") or "Cliente",
            },
            "external_reference": order_ref,
            "back_urls": {
                "success": f"{FRONTEND_URL}/payment-success",
                "failure": f"{FRONTEND_URL}/payment-failure",
                "pending": f"{FRONTEND_URL}/payment-pending",
            },
            "auto_return": "approved",
        }
        if self.notification_url:
            payload["notification_url"] = self.notification_url

        data = self._json(self._call("POST", "/checkout/preferences", json=payload), "preference")
        return {
            "preference_id": str(data["id"]),
            "init_point": data.get("init_point"),
            "sandbox_init_point": data.get("sandbox_init_point"),
        }

    # =====================================================
    # STATUS
    # =====================================================
    def check_status(self, payment_id: str) -> GatewayPaymentStatus:
        """
        Terminal intents first, then plain payments (PIX / online card).
        An intent is only approved once the payment behind it is.
        """
        resp = self._call("GET", f"/point/integration-api/payment-intents/{payment_id}")
        if resp.ok:
            return self._status_from_intent(payment_id, resp.json())

        resp = self._call("GET", f"/v1/payments/{payment_id}")
        data = self._json(resp, f"Payment {payment_id}")
        return self._status_from_payment(payment_id, data)

    def _fetch_payment(self, payment_id) -> Dict[str, Any] | None:
        resp = self._call("GET", f"/v1/payments/{payment_id}")
        return resp.json() if resp.ok else None

    def _status_from_payment(self, payment_id: str, payment: Dict[str, Any], order_ref: str | None = None) -> GatewayPaymentStatus:
        amount = payment.get("transaction_amount")
        return GatewayPaymentStatus(
            payment_id=str(payment_id),
            status=normalize_gateway_status(payment.get("status")),
            amount=Decimal(str(amount)) if amount is not None else None,
            order_ref=payment.get("external_reference") or order_ref,
            raw=payment,
        )

    def _status_from_intent(self, payment_id: str, intent: Dict[str, Any]) -> GatewayPaymentStatus:
        order_ref = (intent.get("additional_info") or {}).get("external_reference")
        state = intent.get("state")
        cents = intent.get("amount")
        amount = (Decimal(cents) / 100) if cents is not None else None

        real_id = (intent.get("payment") or {}).get("id")
        if real_id:
            payment = self._fetch_payment(real_id)
            if payment is not None:
                return self._status_from_payment(payment_id, payment, order_ref)
            # the payment exists but could not be read yet: do not assume approval
            return GatewayPaymentStatus(payment_id, GatewayStatus.PENDING, amount, order_ref, intent)

        if state == "FINISHED" and order_ref:
            resp = self._call("GET", "/v1/payments/search", params={"external_reference": order_ref})
            results = resp.json().get("results") if resp.ok else None
            if results:
                return self._status_from_payment(payment_id, results[0], order_ref)

        if state == "CANCELED":
            status = GatewayStatus.CANCELED
        elif state == "ERROR":
            status = GatewayStatus.ERROR
        else:
            status = GatewayStatus.PENDING
        return GatewayPaymentStatus(payment_id, status, amount, order_ref, intent)

    def cancel_payment(self, payment_id: str) -> bool:
        if self.device_id:
            resp = self._call("DELETE", f"{self._intents_path(self.device_id)}/{payment_id}")
            if resp.ok or resp.status_code == 404:
                logger.info(f"Intent {payment_id} removed from terminal {self.device_id}")
                return True
            if resp.status_code == 409:
                # terminal is already processing the card
                logger.warning(f"Intent {payment_id} is being processed, cannot cancel")
                return False

        resp = self._call("PUT", f"/v1/payments/{payment_id}", json={"status": "cancelled"})
        if resp.ok:
            logger.info(f"Payment {payment_id} cancelled")
            return True
        logger.warning(f"Could not cancel {payment_id}: {self._error_message(resp)}")
        return False

    # =====================================================
    # TERMINAL
    # =====================================================
    def configure_terminal(self, device_id: str) -> bool:
        resp = self._call(
            "PATCH",
            f"/point/integration-api/devices/{device_id}",
            json={"operating_mode": "PDV"},
        )
        if not resp.ok:
            logger.warning(f"Terminal {device_id} not configured: {self._error_message(resp)}")
        return resp.ok

    def get_terminal_status(self, device_id: str) -> TerminalStatus:
        resp = self._call("GET", f"/point/integration-api/devices/{device_id}")
        if not resp.ok:
            return TerminalStatus(connected=False, device_id=device_id)
        data = resp.json()
        return TerminalStatus(
            connected=True,
            device_id=str(data.get("id") or device_id),
            mode=data.get("operating_mode"),
            model=data.get("model") or "Point Smart 2",
            status=data.get("status"),
        )

    def list_intents(self, device_id: str) -> List[PaymentIntent]:
        resp = self._call("GET", self._intents_path(device_id))
        data = self._json(resp, f"intents of {device_id}")
        return [
            PaymentIntent(id=str(ev.get("payment_intent_id") or ev.get("id")), state=ev.get("state") or "")
            for ev in data.get("events") or []
        ]

    def delete_intent(self, device_id: str, intent_id: str) -> bool:
        resp = self._call("DELETE", f"{self._intents_path(device_id)}/{intent_id}")
        return resp.ok or resp.status_code == 404

    def clear_intent_queue(self, device_id: str) -> int:
        """Drops every queued intent so the terminal goes back to idle."""
        cleared = 0
        for intent in self.list_intents(device_id):
            try:
                if self.delete_intent(device_id, intent.id):
                    cleared += 1
            except GatewayUnavailable as e:
                logger.warning(f"Failed to remove intent {intent.id}: {e}")
        logger.info(f"Cleared {cleared} intent(s) from terminal {device_id}")
        return cleared


def build_gateway() -> MercadoPagoClient | None:
    if not MP_ACCESS_TOKEN:
        logger.warning("MP_ACCESS_TOKEN not set - payment gateway disabled")
        return None
    return MercadoPagoClient(access_token=MP_ACCESS_TOKEN, device_id=MP_DEVICE_ID)
