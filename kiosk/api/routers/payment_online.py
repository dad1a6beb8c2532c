# kiosk/api/routers/payment_online.py
from fastapi import APIRouter, Depends, HTTPException

from kiosk.api.deps import get_payment_service
from kiosk.domain.errors import KioskError
from kiosk.domain.schemas import (
    OnlineCardPaymentIn,
    OnlineCardPaymentOut,
    PreferenceIn,
    PreferenceOut,
)
from kiosk.services.payment_service import PaymentService

router = APIRouter(prefix="/payment-online", tags=["payment-online"])


@router.post("/create-card-payment", response_model=OnlineCardPaymentOut)
def create_card_payment(payload: OnlineCardPaymentIn, svc: PaymentService = Depends(get_payment_service)):
    """Card tokenized by the browser SDK; the token is single use."""
    try:
        return svc.create_online_card(
            payload.order_id,
            token=payload.token,
            payment_method_id=payload.payment_method_id,
            installments=payload.installments,
            issuer_id=payload.issuer_id,
            email=payload.email,
            description=payload.description,
        )
    except KioskError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/create-preference", response_model=PreferenceOut)
def create_preference(payload: PreferenceIn, svc: PaymentService = Depends(get_payment_service)):
    try:
        return svc.create_preference(payload.order_id, {"email": payload.email, "name": payload.payer_name})
    except KioskError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
