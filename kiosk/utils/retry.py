# kiosk/utils/retry.py
import logging

import redis
import requests
from tenacity import before_sleep_log, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from kiosk.utils.settings import RETRY_ATTEMPTS
from kiosk.utils.logging import get_logger

logger = get_logger(__name__)


def http_retry(attempts: int = RETRY_ATTEMPTS):
    # transport errors and 5xx from the payment gateway
    return retry(
        reraise=True,
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception_type(requests.RequestException),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )


def redis_retry(attempts: int = RETRY_ATTEMPTS):
    # payment cache; callers fall back to the local map once this gives up
    return retry(
        reraise=True,
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(redis.RedisError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )
