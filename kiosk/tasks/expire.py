# kiosk/tasks/expire.py
from datetime import datetime
from typing import Callable, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kiosk.celery_worker import celery_app
from kiosk.data.database import SessionLocal
from kiosk.services.order_service import OrderService
from kiosk.utils.logging import get_logger

logger = get_logger(__name__)


def expire_pending_orders(
    session_factory: Callable[[], Session] = SessionLocal,
    now: datetime | None = None,
) -> Dict[str, int]:
    """Releases the stock held by orders nobody paid for."""
    logger.info("Expire pending orders started")

    db = session_factory()
    try:
        result = OrderService(db).expire_stale_orders(now)
    finally:
        db.close()

    logger.info(
        f"Expire pending orders done: {result['expired']} expired, "
        f"{result['skipped']} skipped, {result['failed']} failed"
    )
    return result


@celery_app.task(
    name="kiosk.tasks.expire.expire_pending_orders_task",
    autoretry_for=(SQLAlchemyError,),
    retry_backoff=True,
    max_retries=3,
)
def expire_pending_orders_task():
    return expire_pending_orders()
