# kiosk/api/routers/webhooks.py
from fastapi import APIRouter, Depends

from kiosk.api.deps import get_payment_service
from kiosk.domain.errors import KioskError
from kiosk.domain.schemas import WebhookIn
from kiosk.domain.statuses import normalize_payment_id
from kiosk.services.payment_service import PaymentService
from kiosk.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

PAYMENT_ACTIONS = {"payment.created", "payment.updated"}


@router.post("/mercadopago")
def mercadopago_notification(payload: WebhookIn, svc: PaymentService = Depends(get_payment_service)):
    """
    Always 200: a non-2xx answer only makes the gateway resend the same
    notification, it never fixes anything on our side.
    """
    if payload.action not in PAYMENT_ACTIONS and payload.type != "payment":
        logger.info(f"Ignoring notification {payload.action or payload.type}")
        return {"received": True, "processed": False}

    payment_id = normalize_payment_id(payload.data.get("id"))
    if payment_id is None:
        logger.warning(f"Notification without payment id: {payload.model_dump()}")
        return {"received": True, "processed": False}

    try:
        status = svc.process_notification(payment_id)
    except KioskError as e:
        logger.error(f"Notification for payment {payment_id} not processed: {e}")
        return {"received": True, "processed": False}

    return {"received": True, "processed": True, "status": status.value}
