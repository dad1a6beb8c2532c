# kiosk/api/routers/orders.py
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from kiosk.api.deps import get_order_service
from kiosk.domain.errors import KioskError
from kiosk.domain.schemas import FinalizeIn, OrderCreate, OrderOut
from kiosk.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/", response_model=OrderOut, status_code=201)
def create_order(
    payload: OrderCreate,
    svc: OrderService = Depends(get_order_service),
):
    """
    Creates a pending order and reserves its stock.
    The total already includes the installment fee.
    """
    try:
        return svc.create_order(payload)
    except KioskError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/queue", response_model=List[OrderOut])
def kitchen_queue(svc: OrderService = Depends(get_order_service)):
    """Paid orders waiting to be prepared, oldest first."""
    return svc.kitchen_queue()


@router.get("/history", response_model=List[OrderOut])
def order_history(
    user_id: Optional[int] = Query(None, gt=0),
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    svc: OrderService = Depends(get_order_service),
):
    return svc.order_history(user_id=user_id, start=start, end=end)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: int, svc: OrderService = Depends(get_order_service)):
    try:
        return svc.get_order(order_id)
    except KioskError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/{order_id}/finalize", response_model=OrderOut)
def finalize_order(
    order_id: int,
    payload: FinalizeIn,
    svc: OrderService = Depends(get_order_service),
):
    """
    Called by the kiosk once it saw the payment approved. Repeating the call
    returns the already paid order.
    """
    try:
        return svc.finalize_order(order_id, payload.payment_id, payload.method)
    except KioskError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/{order_id}/complete", response_model=OrderOut)
def complete_order(order_id: int, svc: OrderService = Depends(get_order_service)):
    """Kitchen hands the order over. Repeating the call is harmless."""
    try:
        return svc.complete_order(order_id)
    except KioskError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(order_id: int, svc: OrderService = Depends(get_order_service)):
    try:
        return svc.cancel_order(order_id)
    except KioskError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
