"""Tests for payment initiation, status checks and notifications."""

from decimal import Decimal

import pytest

from kiosk.domain.errors import DeviceNotConfigured, GatewayUnavailable, NotFound, ValidationError
from kiosk.domain.schemas import OrderCreate
from kiosk.domain.statuses import GatewayStatus
from kiosk.services.payment_service import PaymentService
from kiosk.services.poller import PollState


def create_order(order_service, quantity=2, **kwargs):
    payload = {
        "user_id": 7,
        "items": [{"product_id": 1, "quantity": quantity}],
        "payment_type": "online",
        "payment_method": "pix",
    }
    payload.update(kwargs)
    return order_service.create_order(OrderCreate(**payload))


class TestInitiatePayments:
    def test_pix_charges_order_total_and_attaches_id(self, payment_service, order_service, products, gateway):
        order = create_order(order_service)

        result = payment_service.create_pix(order.id, payer={"email": "ana@x.com"})

        assert result["amount"] == Decimal("100.00")
        assert result["qr_code"] == "00020126-pix"
        assert gateway.called("create_pix_payment")[0]["amount"] == Decimal("100.00")
        assert gateway.called("create_pix_payment")[0]["order_ref"] == str(order.id)
        assert order_service.get_order(order.id).payment_id == result["payment_id"]

    def test_card_charges_total_with_fee(self, payment_service, order_service, products, gateway):
        order = create_order(
            order_service,
            payment_type="presencial",
            payment_method="credit",
            installments=2,
            fee="5",
        )

        result = payment_service.create_card(order.id)

        [call] = gateway.called("create_card_payment")
        assert call["amount"] == Decimal("105.00")
        assert call["method"] == "credit"
        assert call["installments"] == 2
        assert result["type"] == "point"
        assert order_service.get_order(order.id).payment_id == result["payment_id"]

    def test_card_without_device(self, order_service, products, gateway, cache):
        svc = PaymentService(order_service, gateway, cache, device_id=None)
        order = create_order(order_service, payment_type="presencial", payment_method="debit")

        with pytest.raises(DeviceNotConfigured):
            svc.create_card(order.id)
        assert gateway.called("create_card_payment") == []

    def test_no_gateway(self, order_service, products, cache):
        svc = PaymentService(order_service, None, cache, device_id="POINT-1")
        order = create_order(order_service)

        with pytest.raises(GatewayUnavailable):
            svc.create_pix(order.id)

    def test_order_must_be_pending(self, payment_service, order_service, products):
        order = create_order(order_service)
        order_service.cancel_order(order.id)

        with pytest.raises(ValidationError):
            payment_service.create_pix(order.id)

    def test_preference_adds_fee_line(self, payment_service, order_service, products, gateway):
        order = create_order(order_service, payment_method="credit", installments=2, fee="5")

        result = payment_service.create_preference(order.id)

        items = gateway.called("create_preference")[0]["items"]
        assert items[-1]["price"] == "5.00"
        assert result["preference_id"] == f"pref-{order.id}"

    def test_online_card_approval_is_cached(self, payment_service, order_service, products, cache):
        order = create_order(order_service, payment_method="credit")

        result = payment_service.create_online_card(order.id, token="tok", payment_method_id="visa")

        assert result["approved"] is True
        assert cache.get(result["payment_id"])["status"] == "approved"


class TestCheckStatus:
    def test_approved_is_cached(self, payment_service, gateway, cache):
        gateway.set_status("P1", "approved", "50.00", "3")

        first = payment_service.check_status("P1")
        second = payment_service.check_status("P1")

        assert first["cached"] is False
        assert second["cached"] is True
        assert second["status"] == "approved"
        assert second["amount"] == "50.00"
        assert len(gateway.called("check_status")) == 1

    def test_pending_is_not_cached(self, payment_service, gateway, cache):
        gateway.set_status("P1", "pending")

        assert payment_service.check_status("P1")["status"] == "pending"
        assert cache.get("P1") is None

    def test_rejected_is_not_cached(self, payment_service, gateway, cache):
        gateway.set_status("P1", "rejected")

        assert payment_service.check_status("P1")["status"] == "rejected"
        assert cache.get("P1") is None

    def test_gateway_down(self, payment_service, gateway):
        gateway.unavailable = True
        with pytest.raises(GatewayUnavailable):
            payment_service.check_status("P1")


class TestCancelPayment:
    def test_cancel_evicts_cache(self, payment_service, gateway, cache):
        cache.put("P1", {"status": "approved"})

        result = payment_service.cancel_payment("P1")

        assert result["success"] is True
        assert cache.get("P1") is None

    def test_cancel_refused(self, payment_service, gateway):
        gateway.cancel_result = False
        assert payment_service.cancel_payment("P1")["success"] is False

    def test_cancel_does_not_release_stock(self, payment_service, order_service, products, stock_of):
        order = create_order(order_service)
        pix = payment_service.create_pix(order.id)

        payment_service.cancel_payment(pix["payment_id"])

        assert order_service.get_order(order.id).payment_status == "pending"
        assert stock_of(1) == (10, 2)


class TestNotifications:
    def test_approval_finalizes_order(self, payment_service, order_service, products, gateway, stock_of):
        order = create_order(order_service)
        pix = payment_service.create_pix(order.id)
        gateway.set_status(pix["payment_id"], "approved", "100.00", str(order.id))

        status = payment_service.process_notification(pix["payment_id"])

        assert status == GatewayStatus.APPROVED
        assert order_service.get_order(order.id).payment_status == "paid"
        assert stock_of(1) == (8, 0)

    def test_duplicate_notification_is_harmless(self, payment_service, order_service, products, gateway, stock_of):
        order = create_order(order_service)
        gateway.set_status("P1", "approved", "100.00", str(order.id))

        payment_service.process_notification("P1")
        payment_service.process_notification("P1")

        assert stock_of(1) == (8, 0)

    def test_rejection_keeps_order_open_for_retry(self, payment_service, order_service, products, gateway, cache, stock_of):
        order = create_order(order_service)
        pix = payment_service.create_pix(order.id)
        cache.put(pix["payment_id"], {"status": "approved"})
        gateway.set_status(pix["payment_id"], "rejected", "100.00", str(order.id))

        assert payment_service.process_notification(pix["payment_id"]) == GatewayStatus.REJECTED

        current = order_service.get_order(order.id)
        assert current.payment_status == "pending"
        assert current.status == "active"
        assert cache.get(pix["payment_id"]) is None
        assert stock_of(1) == (10, 2)

        retry = payment_service.create_pix(order.id)
        assert retry["payment_id"] != pix["payment_id"]
        assert order_service.get_order(order.id).payment_id == retry["payment_id"]

    def test_canceled_payment_keeps_reservation(self, payment_service, order_service, products, gateway, stock_of):
        order = create_order(order_service)
        gateway.set_status("P1", "canceled", "100.00", str(order.id))

        payment_service.process_notification("P1")

        assert order_service.get_order(order.id).payment_status == "pending"
        assert stock_of(1) == (10, 2)

    def test_missing_product_during_finalize_is_not_swallowed(self, payment_service, order_service, products, gateway):
        order = create_order(order_service)
        gateway.set_status("P1", "approved", "100.00", str(order.id))

        def broken_sale(product_id, quantity):
            raise NotFound(f"Product {product_id} not found")

        order_service.products.commit_sale = broken_sale

        with pytest.raises(NotFound):
            payment_service.process_notification("P1")
        assert order_service.get_order(order.id).payment_status == "pending"

    def test_notification_for_missing_order_is_ignored(self, payment_service, gateway):
        gateway.set_status("P1", "approved", "1.00", "404")
        assert payment_service.process_notification("P1") == GatewayStatus.APPROVED

    def test_late_approval_is_queued_for_review(self, payment_service, order_service, products, gateway):
        order = create_order(order_service)
        order_service.expire_order(order.id)
        gateway.set_status("P1", "approved", "100.00", str(order.id))

        payment_service.process_notification("P1")

        [entry] = order_service.open_reconciliations()
        assert entry.payment_id == "P1"

    def test_unknown_reference_is_ignored(self, payment_service, gateway):
        gateway.set_status("P1", "approved", "1.00", "not-an-order")
        assert payment_service.process_notification("P1") == GatewayStatus.APPROVED


class TestWatchPayment:
    def test_finalizes_when_approved(self, payment_service, order_service, products, gateway):
        order = create_order(order_service)
        gateway.set_status("P1", "approved", "100.00", str(order.id))

        outcome = payment_service.watch_payment("P1", order.id, sleep=lambda s: None)

        assert outcome.state == PollState.RESOLVED
        assert order_service.get_order(order.id).payment_status == "paid"
