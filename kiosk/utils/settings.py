# kiosk/utils/settings.py
import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./kiosk.sqlite")
# empty REDIS_URL -> in-process payment cache
REDIS_URL = os.getenv("REDIS_URL", "")
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", REDIS_URL or "redis://redis:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", REDIS_URL or "redis://redis:6379/2")

STORE_ID = os.getenv("STORE_ID", "loja-unica")
STORE_NAME = os.getenv("STORE_NAME", "Loja Unica")

MP_ACCESS_TOKEN = os.getenv("MP_ACCESS_TOKEN", "")
MP_DEVICE_ID = os.getenv("MP_DEVICE_ID", "")
MP_API_URL = os.getenv("MP_API_URL", "https://api.mercadopago.com")
MP_NOTIFICATION_URL = os.getenv("MP_NOTIFICATION_URL", "")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
GATEWAY_TIMEOUT_SECONDS = float(os.getenv("GATEWAY_TIMEOUT_SECONDS", 5))
RETRY_ATTEMPTS = int(os.getenv("RETRY_ATTEMPTS", 3))

ORDER_EXPIRY_MINUTES = int(os.getenv("ORDER_EXPIRY_MINUTES", 30))
EXPIRE_ORDERS_INTERVAL_SECONDS = int(os.getenv("EXPIRE_ORDERS_INTERVAL_SECONDS", 10 * 60))
CLEANUP_INTENTS_INTERVAL_SECONDS = int(os.getenv("CLEANUP_INTENTS_INTERVAL_SECONDS", 2 * 60))
PAYMENT_CACHE_TTL_SECONDS = int(os.getenv("PAYMENT_CACHE_TTL_SECONDS", 60 * 60))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
