# kiosk/api/deps.py
from dataclasses import dataclass
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from kiosk.data.database import get_db
from kiosk.services.gateway_client import MercadoPagoClient, build_gateway
from kiosk.services.order_service import OrderService
from kiosk.services.payment_cache import PaymentCache, build_payment_cache
from kiosk.services.payment_service import PaymentService
from kiosk.utils.settings import MP_DEVICE_ID, REDIS_URL, STORE_ID, STORE_NAME


@dataclass(frozen=True)
class StoreContext:
    """The single store this deployment serves."""

    store_id: str
    name: str
    device_id: str | None


@lru_cache
def get_store() -> StoreContext:
    return StoreContext(store_id=STORE_ID, name=STORE_NAME, device_id=MP_DEVICE_ID or None)


@lru_cache
def get_gateway() -> MercadoPagoClient | None:
    return build_gateway()


@lru_cache
def get_payment_cache() -> PaymentCache:
    return build_payment_cache(REDIS_URL)


def get_order_service(
    db: Session = Depends(get_db),
    gateway: MercadoPagoClient | None = Depends(get_gateway),
    store: StoreContext = Depends(get_store),
) -> OrderService:
    return OrderService(db, gateway=gateway, device_id=store.device_id or "")


def get_payment_service(
    orders: OrderService = Depends(get_order_service),
    gateway: MercadoPagoClient | None = Depends(get_gateway),
    cache: PaymentCache = Depends(get_payment_cache),
    store: StoreContext = Depends(get_store),
) -> PaymentService:
    return PaymentService(orders, gateway, cache, device_id=store.device_id)
