# kiosk/tasks/cleanup.py
from typing import Dict

from kiosk.celery_worker import celery_app
from kiosk.domain.errors import GatewayUnavailable
from kiosk.domain.statuses import STALE_INTENT_STATES
from kiosk.services.gateway_client import MercadoPagoClient, build_gateway
from kiosk.utils.settings import MP_DEVICE_ID
from kiosk.utils.logging import get_logger

logger = get_logger(__name__)


def cleanup_payment_intents(gateway: MercadoPagoClient | None, device_id: str | None) -> Dict[str, int]:
    """
    Deletes finished, canceled and errored intents from the terminal queue.
    Open intents are left alone, the customer may still be tapping the card.
    """
    result = {"found": 0, "deleted": 0, "failed": 0}
    if gateway is None or not device_id:
        logger.info("Intent cleanup skipped: gateway or terminal not configured")
        return result

    intents = gateway.list_intents(device_id)
    result["found"] = len(intents)

    for intent in intents:
        if intent.state not in STALE_INTENT_STATES:
            continue
        try:
            if gateway.delete_intent(device_id, intent.id):
                result["deleted"] += 1
            else:
                result["failed"] += 1
        except GatewayUnavailable as e:
            logger.warning(f"Failed to delete intent {intent.id}: {e}")
            result["failed"] += 1

    logger.info(f"Intent cleanup on {device_id}: {result['deleted']} of {result['found']} deleted")
    return result


@celery_app.task(
    name="kiosk.tasks.cleanup.cleanup_payment_intents_task",
    autoretry_for=(GatewayUnavailable,),
    retry_backoff=True,
    max_retries=3,
)
def cleanup_payment_intents_task():
    return cleanup_payment_intents(build_gateway(), MP_DEVICE_ID or None)
