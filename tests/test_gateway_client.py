"""Tests for the Mercado Pago adapter, with the HTTP session mocked."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import requests

from kiosk.domain.errors import GatewayUnavailable, NotFound
from kiosk.domain.statuses import GatewayStatus
from kiosk.services.gateway_client import MercadoPagoClient


def response(status=200, body=None):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = status < 400
    resp.json.return_value = body or {}
    resp.text = ""
    return resp


def make_client(*responses, device_id="POINT-1"):
    session = MagicMock()
    session.headers = {}
    session.request.side_effect = list(responses)
    client = MercadoPagoClient("TOKEN", device_id=device_id, base_url="https://mp.test", session=session)
    return client, session


class TestCreatePayments:
    def test_pix_payload(self):
        client, session = make_client(
            response(201, {
                "id": 123,
                "status": "pending",
                "point_of_interaction": {"transaction_data": {"qr_code": "000201", "qr_code_base64": "b64"}},
            })
        )

        pix = client.create_pix_payment(Decimal("105.00"), "Pedido 9", "9")

        method, url = session.request.call_args.args
        kwargs = session.request.call_args.kwargs
        assert (method, url) == ("POST", "https://mp.test/v1/payments")
        assert kwargs["json"]["transaction_amount"] == 105.0
        assert kwargs["json"]["external_reference"] == "9"
        assert kwargs["headers"]["X-Idempotency-Key"].startswith("pix_9_")
        assert session.headers["Authorization"] == "Bearer TOKEN"
        assert pix.payment_id == "123"
        assert pix.qr_code == "000201"

    def test_card_intent_amount_in_cents(self):
        client, session = make_client(response(201, {"id": "intent-1"}))

        intent_id = client.create_card_payment(Decimal("105.00"), "Pedido 9", "9", method="credit", installments=2)

        payload = session.request.call_args.kwargs["json"]
        assert intent_id == "intent-1"
        assert payload["amount"] == 10500
        assert payload["payment"] == {"type": "credit_card", "installments": 2, "installments_cost": "buyer"}
        assert session.request.call_args.args[1].endswith("/devices/POINT-1/payment-intents")

    def test_server_errors_are_retried_then_unavailable(self):
        failing = response(502)
        failing.raise_for_status.side_effect = requests.HTTPError("502")
        client, session = make_client(failing, failing, failing)

        with pytest.raises(GatewayUnavailable):
            client.create_pix_payment(Decimal("1.00"), "x", "1")
        assert session.request.call_count == 3

    def test_idempotency_key_is_reused_by_retries(self):
        failing = response(502)
        failing.raise_for_status.side_effect = requests.HTTPError("502")
        client, session = make_client(failing, response(201, {"id": 1, "status": "pending"}))

        client.create_pix_payment(Decimal("1.00"), "x", "1")

        keys = {c.kwargs["headers"]["X-Idempotency-Key"] for c in session.request.call_args_list}
        assert len(keys) == 1


class TestCheckStatus:
    def test_plain_payment(self):
        client, _ = make_client(
            response(404),
            response(200, {"status": "approved", "transaction_amount": 50.5, "external_reference": "3"}),
        )

        status = client.check_status("P1")

        assert status.status == GatewayStatus.APPROVED
        assert status.amount == Decimal("50.5")
        assert status.order_ref == "3"

    def test_intent_with_payment(self):
        client, _ = make_client(
            response(200, {"state": "FINISHED", "amount": 10500, "payment": {"id": 77}, "additional_info": {"external_reference": "9"}}),
            response(200, {"status": "approved", "transaction_amount": 105.0}),
        )

        status = client.check_status("intent-1")

        assert status.status == GatewayStatus.APPROVED
        assert status.order_ref == "9"
        assert status.payment_id == "intent-1"

    def test_intent_payment_unreadable_stays_pending(self):
        client, _ = make_client(
            response(200, {"state": "FINISHED", "payment": {"id": 77}}),
            response(404),
        )
        assert client.check_status("intent-1").status == GatewayStatus.PENDING

    def test_canceled_intent(self):
        client, _ = make_client(response(200, {"state": "CANCELED", "amount": 500}))

        status = client.check_status("intent-1")

        assert status.status == GatewayStatus.CANCELED
        assert status.amount == Decimal("5")

    def test_unknown_payment(self):
        client, _ = make_client(response(404), response(404))
        with pytest.raises(NotFound):
            client.check_status("nope")


class TestTerminal:
    def test_cancel_open_intent(self):
        client, session = make_client(response(200))
        assert client.cancel_payment("intent-1") is True
        assert session.request.call_args.args[0] == "DELETE"

    def test_cancel_intent_being_processed(self):
        client, _ = make_client(response(409))
        assert client.cancel_payment("intent-1") is False

    def test_clear_queue_survives_failed_delete(self):
        boom = response(503)
        boom.raise_for_status.side_effect = requests.HTTPError("503")
        client, _ = make_client(
            response(200, {"events": [{"payment_intent_id": "a", "state": "OPEN"}, {"payment_intent_id": "b", "state": "FINISHED"}]}),
            boom, boom, boom,
            response(200),
        )

        assert client.clear_intent_queue("POINT-1") == 1

    def test_terminal_status_offline(self):
        client, _ = make_client(response(404))
        status = client.get_terminal_status("POINT-1")
        assert status.connected is False
