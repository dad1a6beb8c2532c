# kiosk/api/routers/health.py
from fastapi import APIRouter, Depends

from kiosk.api.deps import StoreContext, get_gateway, get_payment_cache, get_store
from kiosk.services.payment_cache import PaymentCache

router = APIRouter(tags=["health"])


@router.get("/health")
def health(
    store: StoreContext = Depends(get_store),
    gateway=Depends(get_gateway),
    cache: PaymentCache = Depends(get_payment_cache),
):
    return {
        "status": "ok",
        "store": store.store_id,
        "gateway": gateway is not None,
        "terminal": store.device_id is not None,
        "cache": cache.backend,
    }
