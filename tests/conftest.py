"""Pytest fixtures for kiosk tests."""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from kiosk.data import models  # noqa: F401
from kiosk.data.database import Base, get_db
from kiosk.data.models import ProductModel, UserModel
from kiosk.domain.errors import GatewayUnavailable, NotFound
from kiosk.domain.statuses import GatewayStatus
from kiosk.services.gateway_client import GatewayPaymentStatus, PaymentIntent, PixPayment, TerminalStatus
from kiosk.services.order_service import OrderService
from kiosk.services.payment_cache import MemoryPaymentCache
from kiosk.services.payment_service import PaymentService


class FakeGateway:
    """In-memory stand-in for MercadoPagoClient; records every call."""

    def __init__(self):
        self.calls = []
        self.statuses = {}
        self.intents = []
        self.failing_intents = set()
        self.cancel_result = True
        self.unavailable = False
        self.clear_error = None
        self._next_id = 1000

    def _record(self, name, **kwargs):
        if self.unavailable:
            raise GatewayUnavailable("Payment gateway unavailable: connection refused")
        self.calls.append((name, kwargs))

    def _new_id(self):
        self._next_id += 1
        return str(self._next_id)

    def set_status(self, payment_id, status, amount="0.00", order_ref=None):
        self.statuses[payment_id] = GatewayPaymentStatus(
            payment_id=payment_id,
            status=GatewayStatus(status),
            amount=Decimal(amount),
            order_ref=order_ref,
        )

    def create_pix_payment(self, amount, description, order_ref, payer=None):
        self._record("create_pix_payment", amount=amount, order_ref=order_ref, payer=payer)
        pid = self._new_id()
        self.set_status(pid, "pending", str(amount), order_ref)
        return PixPayment(payment_id=pid, status="pending", qr_code="00020126-pix", qr_code_base64="aGVsbG8=")

    def create_card_payment(self, amount, description, order_ref, method=None, installments=1):
        self._record("create_card_payment", amount=amount, order_ref=order_ref, method=method, installments=installments)
        intent_id = f"intent-{self._new_id()}"
        self.set_status(intent_id, "pending", str(amount), order_ref)
        return intent_id

    def create_online_card_payment(self, amount, token, description, order_ref, payment_method_id,
                                   installments=1, issuer_id=None, payer_email=None):
        self._record("create_online_card_payment", amount=amount, token=token, order_ref=order_ref)
        pid = self._new_id()
        self.set_status(pid, "approved", str(amount), order_ref)
        return {"payment_id": pid, "status": "approved", "status_detail": "accredited"}

    def create_preference(self, items, order_ref, payer=None):
        self._record("create_preference", items=items, order_ref=order_ref)
        return {"preference_id": f"pref-{order_ref}", "init_point": "https://mp/checkout", "sandbox_init_point": None}

    def check_status(self, payment_id):
        self._record("check_status", payment_id=payment_id)
        if payment_id not in self.statuses:
            raise NotFound(f"Payment {payment_id} not found")
        return self.statuses[payment_id]

    def cancel_payment(self, payment_id):
        self._record("cancel_payment", payment_id=payment_id)
        return self.cancel_result

    def configure_terminal(self, device_id):
        self._record("configure_terminal", device_id=device_id)
        return True

    def get_terminal_status(self, device_id):
        self._record("get_terminal_status", device_id=device_id)
        return TerminalStatus(connected=True, device_id=device_id, mode="PDV", model="Point Smart 2", status="ACTIVE")

    def list_intents(self, device_id):
        self._record("list_intents", device_id=device_id)
        return [PaymentIntent(id=i, state=s) for i, s in self.intents]

    def delete_intent(self, device_id, intent_id):
        self._record("delete_intent", device_id=device_id, intent_id=intent_id)
        if intent_id in self.failing_intents:
            raise GatewayUnavailable(f"timeout deleting {intent_id}")
        self.intents = [(i, s) for i, s in self.intents if i != intent_id]
        return True

    def clear_intent_queue(self, device_id):
        self._record("clear_intent_queue", device_id=device_id)
        if self.clear_error is not None:
            raise self.clear_error
        cleared = len(self.intents)
        self.intents = []
        return cleared

    def called(self, name):
        return [kw for n, kw in self.calls if n == name]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def products(db):
    """Coxinha (10 in stock), Suco (2 in stock), Cafe (unlimited)."""
    rows = [
        ProductModel(id=1, name="Coxinha", category="salgados", price=Decimal("50.00"), price_raw=Decimal("20.00"), stock=10, stock_reserved=0),
        ProductModel(id=2, name="Suco", category="bebidas", price=Decimal("9.00"), price_raw=Decimal("3.50"), stock=2, stock_reserved=0),
        ProductModel(id=3, name="Cafe", category="bebidas", price=Decimal("6.00"), price_raw=Decimal("1.20"), stock=None, stock_reserved=0),
    ]
    db.add_all(rows)
    db.add(UserModel(id=7, name="Ana", history=[]))
    db.commit()
    return {p.id: p for p in rows}


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def cache():
    return MemoryPaymentCache(ttl=3600)


@pytest.fixture
def order_service(db, gateway):
    return OrderService(db, gateway=gateway, device_id="POINT-1")


@pytest.fixture
def payment_service(order_service, gateway, cache):
    return PaymentService(order_service, gateway, cache, device_id="POINT-1")


@pytest.fixture
def client(session_factory, products, gateway, cache):
    from kiosk.api.deps import get_gateway, get_payment_cache, get_store, StoreContext
    from kiosk.main import create_app

    app = create_app()

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_payment_cache] = lambda: cache
    app.dependency_overrides[get_store] = lambda: StoreContext(store_id="loja-teste", name="Loja Teste", device_id="POINT-1")

    return TestClient(app)


@pytest.fixture
def stock_of(session_factory):
    """(stock, stock_reserved) of a product, read with a fresh session."""

    def _read(product_id):
        session = session_factory()
        try:
            p = session.get(ProductModel, product_id)
            return p.stock, p.stock_reserved
        finally:
            session.close()

    return _read
