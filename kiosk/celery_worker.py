# kiosk/celery_worker.py
from celery import Celery

from kiosk.utils.settings import (
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    EXPIRE_ORDERS_INTERVAL_SECONDS,
    CLEANUP_INTENTS_INTERVAL_SECONDS,
)

celery_app = Celery(
    "kiosk",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# tasks are registered by importing their modules
celery_app.conf.imports = (
    "kiosk.tasks.expire",
    "kiosk.tasks.cleanup",
)

celery_app.conf.beat_schedule = {
    "cleanup-payment-intents": {
        "task": "kiosk.tasks.cleanup.cleanup_payment_intents_task",
        "schedule": float(CLEANUP_INTENTS_INTERVAL_SECONDS),
    },
    "expire-pending-orders": {
        "task": "kiosk.tasks.expire.expire_pending_orders_task",
        "schedule": float(EXPIRE_ORDERS_INTERVAL_SECONDS),
    },
}

celery_app.conf.timezone = "UTC"
celery_app.conf.task_acks_late = True
