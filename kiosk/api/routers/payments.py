# kiosk/api/routers/payments.py
from fastapi import APIRouter, Depends, HTTPException

from kiosk.api.deps import get_payment_service
from kiosk.domain.errors import KioskError
from kiosk.domain.schemas import (
    CancelOut,
    CardPaymentIn,
    CardPaymentOut,
    ClearQueueOut,
    PaymentStatusOut,
    PixPaymentIn,
    PixPaymentOut,
    TerminalStatusOut,
)
from kiosk.services.payment_service import PaymentService

router = APIRouter(prefix="/payment", tags=["payment"])


@router.post("/create-pix", response_model=PixPaymentOut)
def create_pix(payload: PixPaymentIn, svc: PaymentService = Depends(get_payment_service)):
    try:
        return svc.create_pix(
            payload.order_id,
            payload.description,
            {"email": payload.email, "name": payload.payer_name},
        )
    except KioskError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/create", response_model=CardPaymentOut)
def create_card(payload: CardPaymentIn, svc: PaymentService = Depends(get_payment_service)):
    """Pushes the charge to the Point terminal."""
    try:
        return svc.create_card(payload.order_id, payload.description, payload.method, payload.installments)
    except KioskError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/status/{payment_id}", response_model=PaymentStatusOut)
def payment_status(payment_id: str, svc: PaymentService = Depends(get_payment_service)):
    try:
        return svc.check_status(payment_id)
    except KioskError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.delete("/cancel/{payment_id}", response_model=CancelOut)
def cancel_payment(payment_id: str, svc: PaymentService = Depends(get_payment_service)):
    return svc.cancel_payment(payment_id)


@router.post("/point/configure")
def configure_terminal(svc: PaymentService = Depends(get_payment_service)):
    try:
        return svc.configure_terminal()
    except KioskError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/point/status", response_model=TerminalStatusOut)
def terminal_status(svc: PaymentService = Depends(get_payment_service)):
    try:
        return svc.terminal_status()
    except KioskError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/clear-queue", response_model=ClearQueueOut)
def clear_queue(svc: PaymentService = Depends(get_payment_service)):
    try:
        return svc.clear_queue()
    except KioskError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
